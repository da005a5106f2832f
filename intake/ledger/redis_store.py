"""Redis-backed ledger and failure stores.

Each store keeps its records as JSON documents in one Redis hash keyed by
record id, with ids generated by INCR on a companion counter key. Uses the
same redis.asyncio connection arq hands to background jobs.

Key layout (namespace defaults to 'intake'):
    <namespace>:ledger:records      hash  id -> LedgerRecord JSON
    <namespace>:ledger:next_id      int   last ledger id issued
    <namespace>:failures:records    hash  id -> FailureRecord JSON
    <namespace>:failures:next_id    int   last failure id issued
"""

import logging
from collections.abc import Iterable

from redis.asyncio import Redis

from intake.ledger.models import FailureRecord, LedgerRecord
from intake.ledger.store import FailureStore, LedgerStore, RecordNotFoundError

logger = logging.getLogger(__name__)


def _sorted_by_id(raw: dict) -> list[tuple[int, bytes | str]]:
    return sorted(((int(key), value) for key, value in raw.items()), key=lambda kv: kv[0])


class RedisLedgerStore(LedgerStore):
    """Ledger store on a Redis hash."""

    def __init__(self, redis: Redis, namespace: str = "intake") -> None:
        """Initialize the store.

        Args:
            redis: Async Redis connection
            namespace: Key prefix shared by all stores of one deployment
        """
        self._redis = redis
        self._records_key = f"{namespace}:ledger:records"
        self._next_id_key = f"{namespace}:ledger:next_id"

    async def list_all(self) -> list[LedgerRecord]:
        raw = await self._redis.hgetall(self._records_key)
        return [LedgerRecord.model_validate_json(value) for _, value in _sorted_by_id(raw)]

    async def insert(self, record: LedgerRecord) -> int:
        record_id = int(await self._redis.incr(self._next_id_key))
        stored = record.model_copy(update={"id": record_id})
        await self._redis.hset(self._records_key, str(record_id), stored.model_dump_json())
        logger.debug(f"Inserted ledger record {record_id} ({record.intake_number})")
        return record_id

    async def update(self, record: LedgerRecord) -> None:
        if record.id is None or not await self._redis.hexists(self._records_key, str(record.id)):
            raise RecordNotFoundError(record.id)
        await self._redis.hset(self._records_key, str(record.id), record.model_dump_json())

    async def delete_many(self, ids: Iterable[int]) -> int:
        fields = [str(record_id) for record_id in set(ids)]
        if not fields:
            return 0
        deleted = int(await self._redis.hdel(self._records_key, *fields))
        logger.info(f"Deleted {deleted} ledger records")
        return deleted


class RedisFailureStore(FailureStore):
    """Failure store on a Redis hash."""

    def __init__(self, redis: Redis, namespace: str = "intake") -> None:
        self._redis = redis
        self._records_key = f"{namespace}:failures:records"
        self._next_id_key = f"{namespace}:failures:next_id"

    async def list_all(self) -> list[FailureRecord]:
        raw = await self._redis.hgetall(self._records_key)
        return [FailureRecord.model_validate_json(value) for _, value in _sorted_by_id(raw)]

    async def insert(self, failure: FailureRecord) -> int:
        failure_id = int(await self._redis.incr(self._next_id_key))
        stored = failure.model_copy(update={"id": failure_id})
        await self._redis.hset(self._records_key, str(failure_id), stored.model_dump_json())
        return failure_id

    async def delete_one(self, failure_id: int) -> None:
        await self._redis.hdel(self._records_key, str(failure_id))
