"""Async batch ingestion jobs.

Uses arq (async Redis queue) so upload batches run in a background worker.
The per-file status feed is published to Redis as a BatchJobStatus document
that callers poll to render progress.

Based on arq documentation:
https://arq-docs.helpmanual.io/
"""

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any

from arq.connections import ArqRedis, RedisSettings
from pydantic import BaseModel

from intake.extraction.factory import create_extraction_service
from intake.ledger.redis_store import RedisFailureStore, RedisLedgerStore
from intake.reconciliation.controller import BatchReconciliationController
from intake.reconciliation.models import BatchFile, FileStatus, StatusEvent
from intake.shared.config import Settings, get_settings

logger = logging.getLogger(__name__)

BATCH_STATUS_KEY = "batch:{batch_id}"


class FileProgress(BaseModel):
    """Latest known state of one file in a batch."""

    file_name: str
    status: FileStatus = FileStatus.QUEUED
    saved_count: int = 0
    duplicate_count: int = 0
    message: str | None = None


class BatchJobStatus(BaseModel):
    """Status document of a background batch.

    Attributes:
        batch_id: Unique batch identifier
        status: Batch status (pending, processing, completed, failed)
        owner_id: Operator who uploaded the batch
        intake_date: Intake date applied to new records
        files: Per-file progress in upload order
        total_saved: Records saved across the batch
        ledger_changed: Whether ledger views should refresh
        error: Error message if the batch could not run
        created_at: Batch creation timestamp
        completed_at: Batch completion timestamp
    """

    batch_id: str
    status: str
    owner_id: str
    intake_date: date
    files: list[FileProgress]
    total_saved: int = 0
    ledger_changed: bool = False
    error: str | None = None
    created_at: str
    completed_at: str | None = None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _store_status(redis: ArqRedis, job: BatchJobStatus, ttl: int) -> None:
    await redis.set(BATCH_STATUS_KEY.format(batch_id=job.batch_id), job.model_dump_json(), ex=ttl)


async def get_batch_status(redis: ArqRedis, batch_id: str) -> BatchJobStatus | None:
    """Read the status document of a batch, None if unknown or expired."""
    raw = await redis.get(BATCH_STATUS_KEY.format(batch_id=batch_id))
    if raw is None:
        return None
    return BatchJobStatus.model_validate_json(raw)


async def enqueue_batch(
    pool: ArqRedis,
    owner_id: str,
    intake_date: date,
    files: list[dict[str, Any]],
    settings: Settings | None = None,
) -> str:
    """Publish a pending status document and enqueue the batch job.

    Args:
        pool: arq Redis pool
        owner_id: Operator uploading the batch
        intake_date: Intake date for every record of the batch
        files: Dicts with file_name, mime_type and content (bytes)
        settings: Application settings (defaults to environment)

    Returns:
        Generated batch id
    """
    settings = settings or get_settings()
    batch_id = str(uuid.uuid4())
    job = BatchJobStatus(
        batch_id=batch_id,
        status="pending",
        owner_id=owner_id,
        intake_date=intake_date,
        files=[FileProgress(file_name=f["file_name"]) for f in files],
        created_at=_now(),
    )
    await _store_status(pool, job, settings.batch_status_ttl_seconds)
    await pool.enqueue_job(
        "process_batch", batch_id, owner_id, intake_date.isoformat(), files, _job_id=batch_id
    )
    logger.info(f"Enqueued batch {batch_id} with {len(files)} files for {owner_id}")
    return batch_id


async def process_batch(
    ctx: dict[str, Any],
    batch_id: str,
    owner_id: str,
    intake_date: str,
    files: list[dict[str, Any]],
) -> dict[str, Any]:
    """Reconcile one upload batch into the ledger.

    Args:
        ctx: arq context (contains redis connection and shared services)
        batch_id: Batch identifier (also the arq job id)
        owner_id: Operator who uploaded the batch
        intake_date: Intake date in ISO format
        files: Dicts with file_name, mime_type and content (bytes)

    Returns:
        BatchJobStatus as dict
    """
    logger.info(f"Processing batch {batch_id} ({len(files)} files)")

    redis: ArqRedis = ctx["redis"]
    settings: Settings = ctx.get("settings") or get_settings()
    controller: BatchReconciliationController = ctx.get("controller") or _build_controller(
        settings, redis
    )
    ttl = settings.batch_status_ttl_seconds

    batch_files = [
        BatchFile(
            file_name=f["file_name"],
            mime_type=f.get("mime_type") or "application/octet-stream",
            content=f.get("content"),
        )
        for f in files
    ]
    job = BatchJobStatus(
        batch_id=batch_id,
        status="processing",
        owner_id=owner_id,
        intake_date=date.fromisoformat(intake_date),
        files=[FileProgress(file_name=f.file_name) for f in batch_files],
        created_at=_now(),
    )
    await _store_status(redis, job, ttl)

    async def publish(event: StatusEvent) -> None:
        job.files[event.index] = FileProgress(
            file_name=event.file_name,
            status=event.status,
            saved_count=event.saved_count,
            duplicate_count=event.duplicate_count,
            message=event.message,
        )
        await _store_status(redis, job, ttl)

    try:
        result = await controller.run(batch_files, job.intake_date, owner_id, on_status=publish)
        job.status = "completed"
        job.total_saved = result.total_saved
        job.ledger_changed = result.ledger_changed
    except Exception as e:
        # Only batch-level problems land here (e.g. the ledger snapshot could not load)
        logger.exception(f"Batch {batch_id} failed with error: {e}")
        job.status = "failed"
        job.error = str(e)

    job.completed_at = _now()
    await _store_status(redis, job, ttl)
    logger.info(f"Batch {batch_id} completed with status: {job.status}")

    return job.model_dump(mode="json")


def _build_controller(settings: Settings, redis: ArqRedis) -> BatchReconciliationController:
    return BatchReconciliationController(
        settings=settings,
        extraction_provider=create_extraction_service(settings),
        ledger_store=RedisLedgerStore(redis, settings.ledger_namespace),
        failure_store=RedisFailureStore(redis, settings.ledger_namespace),
    )


async def startup(ctx: dict[str, Any]) -> None:
    """Worker startup hook - initialize services.

    Called once when worker starts so providers and stores are not
    re-created for each batch.
    """
    logger.info("Initializing worker services...")
    settings = get_settings()
    ctx["settings"] = settings
    ctx["controller"] = _build_controller(settings, ctx["redis"])
    logger.info("Worker services initialized")


async def shutdown(ctx: dict[str, Any]) -> None:
    """Worker shutdown hook - cleanup resources."""
    logger.info("Worker shutting down...")


class WorkerSettings:
    """arq worker settings.

    max_jobs stays at 1 by default: batches sharing one ledger must not
    interleave, otherwise intake numbers can collide.
    """

    functions = [process_batch]
    on_startup = startup
    on_shutdown = shutdown

    # These will be set from environment
    redis_settings: RedisSettings | None = None
    max_jobs = 1
    job_timeout = 1800

    @classmethod
    def get_redis_settings(cls) -> RedisSettings:
        """Get Redis settings from configuration."""
        return RedisSettings.from_dsn(get_settings().redis_url)
