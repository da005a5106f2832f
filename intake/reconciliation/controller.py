"""Batch reconciliation of uploaded invoice scans into the stock-intake ledger.

For each file, in order:
1. Read the payload and keep it as a data URL for storage/preview
2. Run the extraction provider
3. Reject invoices without a recognized invoice number
4. Drop line items already in the ledger (same invoice number, item name
   and amount within 0.01), across all owners
5. Post the remaining items under one new intake number per file

Files are processed strictly one after another. The ledger snapshot loaded at
batch start is extended with every record the batch writes, so later files
see earlier ones both for duplicate detection and for intake numbering.
A failing file is recorded and skipped; it never aborts the batch.
"""

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Sequence
from datetime import date, datetime, timezone

from intake.extraction.base import ExtractionProvider
from intake.extraction.documents import encode_data_url
from intake.extraction.schema import ExtractedInvoice, ExtractedLineItem
from intake.ledger.dedup import DedupKey, is_duplicate
from intake.ledger.models import FailureRecord, LedgerRecord
from intake.ledger.sequence import IntakeNumberAllocator
from intake.ledger.store import FailureStore, LedgerStore
from intake.reconciliation.errors import (
    INVOICE_NUMBER_NOT_RECOGNIZED,
    ExtractionError,
    IntakeError,
    PersistError,
    ValidationError,
)
from intake.reconciliation.models import (
    BatchFile,
    BatchResult,
    FileOutcome,
    FileStatus,
    StatusCallback,
    StatusEvent,
)
from intake.shared import metrics
from intake.shared.config import Settings

logger = logging.getLogger(__name__)

SHORT_NUMBER_LENGTH = 8


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class _FileProgress:
    """Mutable counters for the file currently being reconciled."""

    def __init__(self, index: int, batch_file: BatchFile) -> None:
        self.index = index
        self.batch_file = batch_file
        self.source_file_content = ""
        self.saved_count = 0
        self.duplicate_count = 0
        self.intake_number: str | None = None


class BatchReconciliationController:
    """Runs upload batches against a ledger.

    One controller may serve many batches, but each ``run`` call owns its
    snapshot and allocator exclusively. Running two batches concurrently
    against the same ledger can allocate colliding intake numbers.
    """

    def __init__(
        self,
        settings: Settings,
        extraction_provider: ExtractionProvider,
        ledger_store: LedgerStore,
        failure_store: FailureStore,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        """Initialize controller.

        Args:
            settings: Application settings
            extraction_provider: Vision extraction gateway
            ledger_store: Ledger record persistence
            failure_store: Failed-file persistence
            clock: Source of ``created_at`` timestamps
        """
        self.settings = settings
        self.extraction_provider = extraction_provider
        self.ledger_store = ledger_store
        self.failure_store = failure_store
        self.clock = clock

    async def run(
        self,
        files: Sequence[BatchFile],
        intake_date: date,
        owner_id: str,
        on_status: StatusCallback | None = None,
    ) -> BatchResult:
        """Reconcile a batch of files into the ledger.

        Args:
            files: Uploaded files, processed in this order
            intake_date: Operator-chosen intake date applied to every new record
            owner_id: Operator uploading the batch
            on_status: Optional sync or async callback receiving every status change

        Returns:
            BatchResult with one terminal outcome per file
        """
        snapshot = list(await self.ledger_store.list_all())
        allocator = IntakeNumberAllocator.for_intake_date(snapshot, intake_date)
        logger.info(
            f"Starting batch of {len(files)} files for {owner_id}: intake date {intake_date}, "
            f"{len(snapshot)} existing records, last sequence {allocator.last_sequence}"
        )

        for index, batch_file in enumerate(files):
            await self._emit(on_status, StatusEvent(
                index=index, file_name=batch_file.file_name, status=FileStatus.QUEUED
            ))

        result = BatchResult()
        for index, batch_file in enumerate(files):
            outcome = await self._process_file(
                _FileProgress(index, batch_file), snapshot, allocator, intake_date, owner_id,
                on_status,
            )
            result.files.append(outcome)
            metrics.intake_files_total.labels(status=outcome.status.value).inc()

        logger.info(
            f"Batch finished: {result.total_saved} records saved, "
            f"ledger changed: {result.ledger_changed}"
        )
        return result

    async def _process_file(
        self,
        progress: _FileProgress,
        snapshot: list[LedgerRecord],
        allocator: IntakeNumberAllocator,
        intake_date: date,
        owner_id: str,
        on_status: StatusCallback | None,
    ) -> FileOutcome:
        batch_file = progress.batch_file
        try:
            await self._emit_progress(on_status, progress, FileStatus.READING)
            content = await batch_file.read()
            progress.source_file_content = encode_data_url(content, batch_file.mime_type)

            await self._emit_progress(on_status, progress, FileStatus.EXTRACTING)
            invoice = await self._extract(content, batch_file.mime_type)
            if not invoice.has_invoice_number:
                raise ValidationError(INVOICE_NUMBER_NOT_RECOGNIZED)

            for item in invoice.items:
                await self._reconcile_item(
                    item, invoice, progress, snapshot, allocator, intake_date, owner_id
                )

        except IntakeError as e:
            message = str(e)
            logger.warning(f"File {batch_file.file_name} failed: {message}")
            await self._record_failure(progress, owner_id, message)
            await self._emit_progress(on_status, progress, FileStatus.FAILED, message)
            return FileOutcome(
                file_name=batch_file.file_name,
                status=FileStatus.FAILED,
                saved_count=progress.saved_count,
                duplicate_count=progress.duplicate_count,
                intake_number=progress.intake_number,
                error=message,
            )

        if progress.saved_count == 0 and progress.duplicate_count > 0:
            status = FileStatus.ALL_DUPLICATE
        else:
            # Includes invoices with no line items: nothing to save, not an error
            status = FileStatus.SUCCESS

        logger.info(
            f"File {batch_file.file_name}: {status.value}, saved {progress.saved_count}, "
            f"duplicates {progress.duplicate_count}, intake number {progress.intake_number}"
        )
        await self._emit_progress(on_status, progress, status)
        return FileOutcome(
            file_name=batch_file.file_name,
            status=status,
            saved_count=progress.saved_count,
            duplicate_count=progress.duplicate_count,
            intake_number=progress.intake_number,
        )

    async def _extract(self, content: bytes, mime_type: str) -> ExtractedInvoice:
        """Run the extraction provider off the event loop.

        Raises:
            ExtractionError: If the provider fails or returns no invoice
        """
        provider = self.extraction_provider.provider_name
        start = time.time()
        try:
            result = await asyncio.to_thread(
                self.extraction_provider.extract_invoice, content, mime_type
            )
        except Exception as e:
            metrics.extraction_requests_total.labels(provider=provider, status="failed").inc()
            raise ExtractionError(str(e) or type(e).__name__) from e
        finally:
            metrics.extraction_duration_seconds.labels(provider=provider).observe(
                time.time() - start
            )

        if not result.success or result.invoice is None:
            metrics.extraction_requests_total.labels(provider=provider, status="failed").inc()
            raise ExtractionError(
                result.error or "Extraction returned no data",
                result.reason or "transport_error",
            )

        metrics.extraction_requests_total.labels(provider=provider, status="success").inc()
        return result.invoice

    async def _reconcile_item(
        self,
        item: ExtractedLineItem,
        invoice: ExtractedInvoice,
        progress: _FileProgress,
        snapshot: list[LedgerRecord],
        allocator: IntakeNumberAllocator,
        intake_date: date,
        owner_id: str,
    ) -> None:
        if is_duplicate(DedupKey(invoice.invoice_number, item.item_name, item.amount), snapshot):
            logger.debug(
                f"Skipping duplicate item {item.item_name!r} of invoice {invoice.invoice_number}"
            )
            progress.duplicate_count += 1
            metrics.intake_line_items_total.labels(result="duplicate").inc()
            return

        # One intake number per file, consumed once its first new item is saved
        intake_number = progress.intake_number or allocator.peek()
        record = self._build_record(item, invoice, progress, intake_number, intake_date, owner_id)
        try:
            record_id = await self.ledger_store.insert(record)
        except Exception as e:
            raise PersistError(f"Failed to save ledger record: {e}") from e

        if progress.intake_number is None:
            progress.intake_number = allocator.allocate()

        snapshot.append(record.model_copy(update={"id": record_id}))
        progress.saved_count += 1
        metrics.intake_line_items_total.labels(result="saved").inc()

    def _build_record(
        self,
        item: ExtractedLineItem,
        invoice: ExtractedInvoice,
        progress: _FileProgress,
        intake_number: str,
        intake_date: date,
        owner_id: str,
    ) -> LedgerRecord:
        gross = item.amount + item.tax_amount
        is_special = self.settings.special_invoice_marker in invoice.invoice_type
        first_saved = progress.saved_count == 0

        return LedgerRecord(
            owner_id=owner_id,
            invoice_type=invoice.invoice_type,
            invoice_number=invoice.invoice_number,
            invoice_date=invoice.date,
            buyer_name=invoice.buyer.name,
            buyer_tax_id=invoice.buyer.tax_id,
            seller_name=invoice.seller.name,
            seller_tax_id=invoice.seller.tax_id,
            total_amount_words=invoice.total.amount_words,
            total_amount_num=invoice.total.amount_num,
            remark=invoice.remark,
            issuer=invoice.issuer,
            source_file_content=progress.source_file_content,
            item_name=item.item_name,
            specification=item.specification,
            unit=item.unit,
            quantity=item.quantity,
            unit_price=item.unit_price,
            amount=item.amount,
            tax_rate=item.tax_rate,
            tax_amount=item.tax_amount,
            created_at=self.clock(),
            intake_date=intake_date,
            intake_amount=item.amount if is_special else gross,
            purchase_amount=gross,
            invoice_short_number=(
                invoice.invoice_number[-SHORT_NUMBER_LENGTH:] if first_saved else ""
            ),
            intake_number=intake_number,
        )

    async def _record_failure(self, progress: _FileProgress, owner_id: str, message: str) -> None:
        failure = FailureRecord(
            owner_id=owner_id,
            file_name=progress.batch_file.file_name,
            error_message=message,
            source_file_content=progress.source_file_content,
            created_at=self.clock(),
        )
        try:
            await self.failure_store.insert(failure)
        except Exception:
            # Best-effort: the file is still reported as failed in the outcome
            logger.exception(f"Could not save failure record for {failure.file_name}")

    async def _emit_progress(
        self,
        on_status: StatusCallback | None,
        progress: _FileProgress,
        status: FileStatus,
        message: str | None = None,
    ) -> None:
        await self._emit(on_status, StatusEvent(
            index=progress.index,
            file_name=progress.batch_file.file_name,
            status=status,
            saved_count=progress.saved_count,
            duplicate_count=progress.duplicate_count,
            message=message,
        ))

    @staticmethod
    async def _emit(on_status: StatusCallback | None, event: StatusEvent) -> None:
        if on_status is None:
            return
        try:
            outcome = on_status(event)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception:
            # A broken status feed must not stop the remaining files
            logger.exception(
                f"Status callback failed for {event.file_name} ({event.status.value})"
            )
