"""arq worker runner.

Run with: python -m intake.queue.worker
Or: arq intake.queue.tasks.WorkerSettings

This module configures and runs the batch ingestion worker.
"""

import logging

from arq import run_worker
from prometheus_client import start_http_server

from intake.extraction.factory import describe_target
from intake.queue.tasks import WorkerSettings
from intake.shared.config import get_settings

logger = logging.getLogger(__name__)


def main() -> None:
    """Run the arq worker."""
    settings = get_settings()

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info(f"Starting worker with Redis: {settings.redis_url}")
    logger.info(f"Max jobs: {settings.queue_max_jobs}")
    logger.info(f"Job timeout: {settings.queue_job_timeout}s")
    logger.info(
        f"Extraction provider: {settings.extraction_provider} ({describe_target(settings)})"
    )

    if settings.metrics_port is not None:
        start_http_server(settings.metrics_port)
        logger.info(f"Serving Prometheus metrics on port {settings.metrics_port}")

    WorkerSettings.redis_settings = WorkerSettings.get_redis_settings()
    WorkerSettings.max_jobs = settings.queue_max_jobs
    WorkerSettings.job_timeout = settings.queue_job_timeout

    run_worker(WorkerSettings)  # type: ignore[arg-type]


if __name__ == "__main__":
    main()
