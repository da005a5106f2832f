"""Line item deduplication against the ledger.

An item is already in the ledger when a record has the same invoice number,
the same item name and an amount within AMOUNT_TOLERANCE. Matching ignores
the record owner so two operators cannot post the same paper invoice twice.
"""

from collections.abc import Iterable
from typing import NamedTuple

from intake.ledger.models import LedgerRecord

# Absolute tolerance for float currency values
AMOUNT_TOLERANCE = 0.01


class DedupKey(NamedTuple):
    """Identity of a line item for deduplication."""

    invoice_number: str
    item_name: str
    amount: float

    @classmethod
    def of(cls, record: LedgerRecord) -> "DedupKey":
        return cls(record.invoice_number, record.item_name, record.amount)


def amounts_match(a: float, b: float) -> bool:
    return abs(a - b) < AMOUNT_TOLERANCE


def is_duplicate(candidate: DedupKey, snapshot: Iterable[LedgerRecord]) -> bool:
    """Check whether a candidate line item already exists in the snapshot.

    Args:
        candidate: Invoice number, item name and amount of the new item
        snapshot: Ledger records of all owners, including rows added earlier
            in the current batch

    Returns:
        True if a matching record exists
    """
    return any(
        record.invoice_number == candidate.invoice_number
        and record.item_name == candidate.item_name
        and amounts_match(record.amount, candidate.amount)
        for record in snapshot
    )
