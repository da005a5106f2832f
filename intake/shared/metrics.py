"""Prometheus metrics for batch ingestion.

Exposes key metrics for monitoring:
- File outcomes per batch
- Saved and duplicate line items
- Extraction request counts and latency per provider

Metric names follow the Prometheus naming conventions:
https://prometheus.io/docs/practices/naming/

The worker serves the default registry with ``start_http_server`` when
APP_METRICS_PORT is set.
"""

from prometheus_client import Counter, Histogram

intake_files_total = Counter(
    "intake_files_total",
    "Total files processed by batch reconciliation",
    ["status"],  # success, all_duplicate, failed
)

intake_line_items_total = Counter(
    "intake_line_items_total",
    "Total extracted line items by reconciliation result",
    ["result"],  # saved, duplicate
)

extraction_requests_total = Counter(
    "extraction_requests_total",
    "Total extraction gateway calls",
    ["provider", "status"],  # success, failed
)

extraction_duration_seconds = Histogram(
    "extraction_duration_seconds",
    "Extraction gateway call duration in seconds",
    ["provider"],
    buckets=(0.5, 1.0, 2.5, 5.0, 10.0, 30.0, 60.0, 120.0),
)
