"""Owner-scoped ledger maintenance.

Operators see their own rows, administrators see everyone's. Edits replace
the whole record (e.g. after filling in the using department).
"""

import logging
from collections.abc import Iterable

from intake.ledger.models import FailureRecord, LedgerRecord
from intake.ledger.store import FailureStore, LedgerStore

logger = logging.getLogger(__name__)


class LedgerService:
    """Listing, editing and deleting ledger and failure records."""

    def __init__(self, ledger_store: LedgerStore, failure_store: FailureStore) -> None:
        self.ledger_store = ledger_store
        self.failure_store = failure_store

    async def list_records(self, owner_id: str, include_all: bool = False) -> list[LedgerRecord]:
        """List ledger records, newest first.

        Args:
            owner_id: Operator whose records to return
            include_all: Return every owner's records (administrators)

        Returns:
            Records sorted by created_at descending
        """
        records = await self.ledger_store.list_all()
        if not include_all:
            records = [record for record in records if record.owner_id == owner_id]
        return sorted(records, key=lambda record: record.created_at, reverse=True)

    async def update_record(self, record: LedgerRecord) -> None:
        """Replace a stored record.

        Raises:
            ValueError: If the record has no id
            RecordNotFoundError: If the id is unknown to the store
        """
        if record.id is None:
            raise ValueError("Cannot update a ledger record without an id")
        await self.ledger_store.update(record)
        logger.info(f"Updated ledger record {record.id}")

    async def delete_records(self, ids: Iterable[int]) -> int:
        return await self.ledger_store.delete_many(ids)

    async def list_failures(self, owner_id: str, include_all: bool = False) -> list[FailureRecord]:
        """List failure records, newest first."""
        failures = await self.failure_store.list_all()
        if not include_all:
            failures = [failure for failure in failures if failure.owner_id == owner_id]
        return sorted(failures, key=lambda failure: failure.created_at, reverse=True)

    async def delete_failure(self, failure_id: int) -> None:
        await self.failure_store.delete_one(failure_id)
