"""Intake number allocation.

Intake numbers look like ``wz20240700017``: the ``wz`` prefix, the intake
year-month and a zero-padded sequence scoped to that year-month. The
sequence continues from the highest number already in the ledger, across
all owners.
"""

import logging
from collections.abc import Iterable
from datetime import date

from intake.ledger.models import LedgerRecord

logger = logging.getLogger(__name__)

INTAKE_NUMBER_PREFIX = "wz"
SEQUENCE_WIDTH = 3


def year_month(intake_date: date) -> str:
    """Return the ``YYYYMM`` period an intake date belongs to."""
    return f"{intake_date.year:04d}{intake_date.month:02d}"


def format_intake_number(period: str, sequence: int) -> str:
    """Format an intake number, e.g. ``format_intake_number("202407", 17) == "wz202407017"``."""
    return f"{INTAKE_NUMBER_PREFIX}{period}{sequence:0{SEQUENCE_WIDTH}d}"


def compute_starting_sequence(records: Iterable[LedgerRecord], period: str) -> int:
    """Find the highest sequence already used for a year-month.

    Every record whose intake number starts with ``wz<period>`` contributes
    the integer value of its trailing three characters. Numbers whose tail
    is not numeric are ignored.

    Args:
        records: All ledger records, regardless of owner
        period: Year-month in ``YYYYMM`` form

    Returns:
        Highest sequence found, 0 if the period has no intake numbers yet
    """
    prefix = f"{INTAKE_NUMBER_PREFIX}{period}"
    highest = 0
    for record in records:
        if not record.intake_number.startswith(prefix):
            continue
        try:
            sequence = int(record.intake_number[-SEQUENCE_WIDTH:])
        except ValueError:
            logger.debug(f"Ignoring malformed intake number: {record.intake_number}")
            continue
        highest = max(highest, sequence)
    return highest


class IntakeNumberAllocator:
    """Hands out consecutive intake numbers for one batch's year-month.

    The allocator is owned by a single batch run; it is seeded from the
    ledger snapshot loaded at batch start.
    """

    def __init__(self, period: str, last_sequence: int = 0) -> None:
        self.period = period
        self.last_sequence = last_sequence

    @classmethod
    def for_intake_date(
        cls, records: Iterable[LedgerRecord], intake_date: date
    ) -> "IntakeNumberAllocator":
        period = year_month(intake_date)
        return cls(period, compute_starting_sequence(records, period))

    def peek(self) -> str:
        """Return the intake number the next allocate() call will hand out."""
        return format_intake_number(self.period, self.last_sequence + 1)

    def allocate(self) -> str:
        """Consume the next sequence and return its intake number."""
        self.last_sequence += 1
        return format_intake_number(self.period, self.last_sequence)
