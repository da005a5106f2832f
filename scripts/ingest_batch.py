#!/usr/bin/env python3
"""Reconcile a batch of invoice scans into the ledger from the command line.

Runs the batch in-process against the Redis ledger configured by APP_REDIS_URL,
using the extraction provider selected by APP_EXTRACTION_PROVIDER.

Usage:
    python scripts/ingest_batch.py scans/*.jpg --intake-date 2024-07-15 --owner alice

Requirements:
    - Redis reachable at APP_REDIS_URL
    - OPENAI_API_KEY set (openai provider) or an Ollama server (ollama provider)

Exits 0 when every file succeeded or was a duplicate, 1 when any file failed,
2 when the extraction provider is not available.
"""

import argparse
import asyncio
import logging
import mimetypes
import sys
from datetime import date
from pathlib import Path

from redis.asyncio import Redis

from intake.extraction.factory import ProviderUnavailableError, create_extraction_service
from intake.ledger.redis_store import RedisFailureStore, RedisLedgerStore
from intake.reconciliation.controller import BatchReconciliationController
from intake.reconciliation.models import BatchFile, BatchResult, FileStatus, StatusEvent
from intake.shared.config import Settings, get_settings


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("files", nargs="+", type=Path, help="Invoice images or PDFs")
    parser.add_argument(
        "--intake-date",
        type=date.fromisoformat,
        default=date.today(),
        help="Intake date applied to every new record (YYYY-MM-DD, default today)",
    )
    parser.add_argument("--owner", required=True, help="Operator the records belong to")
    return parser.parse_args(argv)


def to_batch_files(paths: list[Path]) -> list[BatchFile]:
    """Build batch inputs that are read lazily when the batch reaches them."""
    return [
        BatchFile(
            file_name=path.name,
            mime_type=mimetypes.guess_type(path.name)[0] or "application/octet-stream",
            path=path,
        )
        for path in paths
    ]


def print_progress(event: StatusEvent) -> None:
    if event.status == FileStatus.QUEUED:
        return
    prefix = f"[{event.index + 1}] {event.file_name}: {event.status.value}"
    if not event.status.is_terminal:
        print(f"{prefix}...")
    elif event.message:
        print(f"{prefix} ({event.message})")
    else:
        print(f"{prefix} (saved {event.saved_count}, duplicates {event.duplicate_count})")


def print_summary(result: BatchResult) -> None:
    print("\n" + "=" * 80)
    for outcome in result.files:
        line = (
            f"{outcome.file_name:<40} {outcome.status.value:<14} "
            f"saved={outcome.saved_count} duplicates={outcome.duplicate_count}"
        )
        if outcome.intake_number:
            line += f" intake_no={outcome.intake_number}"
        if outcome.error:
            line += f" error={outcome.error}"
        print(line)
    print("=" * 80)
    print(f"Records saved: {result.total_saved} (ledger changed: {result.ledger_changed})")


async def run(args: argparse.Namespace, settings: Settings) -> BatchResult:
    # Fail before touching the ledger: an unavailable provider fails every file
    provider = create_extraction_service(settings, require_available=True)
    redis = Redis.from_url(settings.redis_url)
    try:
        controller = BatchReconciliationController(
            settings=settings,
            extraction_provider=provider,
            ledger_store=RedisLedgerStore(redis, settings.ledger_namespace),
            failure_store=RedisFailureStore(redis, settings.ledger_namespace),
        )
        return await controller.run(
            to_batch_files(args.files), args.intake_date, args.owner, on_status=print_progress
        )
    finally:
        await redis.aclose()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        result = asyncio.run(run(args, settings))
    except ProviderUnavailableError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    print_summary(result)
    return 1 if any(o.status == FileStatus.FAILED for o in result.files) else 0


if __name__ == "__main__":
    sys.exit(main())
