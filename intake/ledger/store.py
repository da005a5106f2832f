"""Ledger and failure store interfaces.

The reconciliation core only needs list/insert/update/delete; filtering and
deduplication happen in memory. Stores are async because every real backend
is network I/O.

Writers are expected to be serialized by the deployment (one batch at a time
per ledger): a batch computes intake numbers and duplicates from the snapshot
it loaded at start.
"""

from abc import ABC, abstractmethod
from collections.abc import Iterable

from intake.ledger.models import FailureRecord, LedgerRecord


class RecordNotFoundError(KeyError):
    """Raised when updating or deleting a record id that does not exist."""


class LedgerStore(ABC):
    """Persistence for ledger records."""

    @abstractmethod
    async def list_all(self) -> list[LedgerRecord]:
        """Return every record of every owner, ordered by id."""

    @abstractmethod
    async def insert(self, record: LedgerRecord) -> int:
        """Persist a new record and return its generated id.

        Any id already set on ``record`` is ignored.
        """

    @abstractmethod
    async def update(self, record: LedgerRecord) -> None:
        """Replace the stored record with the same id.

        Raises:
            RecordNotFoundError: If no record has ``record.id``
        """

    @abstractmethod
    async def delete_many(self, ids: Iterable[int]) -> int:
        """Delete records by id and return how many existed."""


class FailureStore(ABC):
    """Persistence for failed-file records."""

    @abstractmethod
    async def list_all(self) -> list[FailureRecord]:
        """Return every failure record, ordered by id."""

    @abstractmethod
    async def insert(self, failure: FailureRecord) -> int:
        """Persist a failure record and return its generated id."""

    @abstractmethod
    async def delete_one(self, failure_id: int) -> None:
        """Delete a failure record; unknown ids are ignored."""


class InMemoryLedgerStore(LedgerStore):
    """Ledger store kept in process memory (tests, local runs)."""

    def __init__(self, records: Iterable[LedgerRecord] = ()) -> None:
        self._records: dict[int, LedgerRecord] = {}
        self._next_id = 1
        for record in records:
            self._put_new(record)

    def _put_new(self, record: LedgerRecord) -> int:
        record_id = self._next_id
        self._next_id += 1
        self._records[record_id] = record.model_copy(update={"id": record_id})
        return record_id

    async def list_all(self) -> list[LedgerRecord]:
        return [self._records[key] for key in sorted(self._records)]

    async def insert(self, record: LedgerRecord) -> int:
        return self._put_new(record)

    async def update(self, record: LedgerRecord) -> None:
        if record.id is None or record.id not in self._records:
            raise RecordNotFoundError(record.id)
        self._records[record.id] = record.model_copy()

    async def delete_many(self, ids: Iterable[int]) -> int:
        deleted = 0
        for record_id in set(ids):
            if self._records.pop(record_id, None) is not None:
                deleted += 1
        return deleted


class InMemoryFailureStore(FailureStore):
    """Failure store kept in process memory (tests, local runs)."""

    def __init__(self) -> None:
        self._failures: dict[int, FailureRecord] = {}
        self._next_id = 1

    async def list_all(self) -> list[FailureRecord]:
        return [self._failures[key] for key in sorted(self._failures)]

    async def insert(self, failure: FailureRecord) -> int:
        failure_id = self._next_id
        self._next_id += 1
        self._failures[failure_id] = failure.model_copy(update={"id": failure_id})
        return failure_id

    async def delete_one(self, failure_id: int) -> None:
        self._failures.pop(failure_id, None)
