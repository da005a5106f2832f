"""Unit tests for line item deduplication."""

from datetime import date, datetime, timezone

import pytest

from intake.ledger.dedup import DedupKey, amounts_match, is_duplicate
from intake.ledger.models import LedgerRecord


def record(invoice_number: str, item_name: str, amount: float, owner_id: str = "alice"):
    return LedgerRecord(
        owner_id=owner_id,
        invoice_type="增值税普通发票",
        invoice_number=invoice_number,
        item_name=item_name,
        amount=amount,
        created_at=datetime(2024, 7, 1, tzinfo=timezone.utc),
        intake_date=date(2024, 7, 1),
    )


@pytest.fixture
def snapshot() -> list[LedgerRecord]:
    return [
        record("04403190", "A4 paper", 100.0),
        record("04403190", "Toner", 300.5, owner_id="bob"),
    ]


@pytest.mark.parametrize(
    "a,b,expected",
    [
        (100.0, 100.0, True),
        (100.005, 100.0, True),
        (100.0, 100.009, True),
        (100.005, 100.02, False),
        (100.0, 100.02, False),
        (0.0, 0.0, True),
    ],
)
def test_amounts_match(a: float, b: float, expected: bool) -> None:
    assert amounts_match(a, b) is expected


def test_exact_match_is_duplicate(snapshot: list[LedgerRecord]) -> None:
    assert is_duplicate(DedupKey("04403190", "A4 paper", 100.0), snapshot)


def test_match_ignores_owner(snapshot: list[LedgerRecord]) -> None:
    assert is_duplicate(DedupKey("04403190", "Toner", 300.5), snapshot)


@pytest.mark.parametrize(
    "candidate",
    [
        DedupKey("04403191", "A4 paper", 100.0),
        DedupKey("04403190", "A4 Paper", 100.0),
        DedupKey("04403190", "A4 paper", 100.5),
    ],
)
def test_any_differing_field_is_new(snapshot: list[LedgerRecord], candidate: DedupKey) -> None:
    assert not is_duplicate(candidate, snapshot)


def test_empty_snapshot() -> None:
    assert not is_duplicate(DedupKey("04403190", "A4 paper", 100.0), [])


def test_key_of_record() -> None:
    assert DedupKey.of(record("1", "Paper", 9.9)) == DedupKey("1", "Paper", 9.9)
