"""Ledger data models.

A LedgerRecord is one (invoice, line item) pair: invoice-level fields are
denormalized onto every item row, plus the intake fields assigned when the
item is posted to stock.
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


class LedgerRecord(BaseModel):
    """One stock-intake ledger row."""

    id: int | None = None
    owner_id: str

    # Invoice header, repeated on every item row
    invoice_type: str
    invoice_number: str
    invoice_date: str = ""
    buyer_name: str = ""
    buyer_tax_id: str = ""
    seller_name: str = ""
    seller_tax_id: str = ""
    total_amount_words: str = ""
    total_amount_num: float = 0.0
    remark: str = ""
    issuer: str = ""
    source_file_content: str = Field("", description="Original document as a data URL")

    # Line item
    item_name: str
    specification: str = ""
    unit: str = ""
    quantity: float = 0.0
    unit_price: float = 0.0
    amount: float = Field(0.0, description="Net amount, excluding tax")
    tax_rate: str = ""
    tax_amount: float = 0.0

    # Intake
    created_at: datetime
    intake_date: date
    intake_amount: float = Field(0.0, description="Amount posted to stock")
    purchase_amount: float = Field(0.0, description="Gross amount, amount + tax")
    invoice_short_number: str = Field("", description="Last 8 characters of the invoice number")
    intake_number: str = ""
    use_unit: str = Field("", description="Department using the goods, edited by operators")


class FailureRecord(BaseModel):
    """A file that produced no usable ledger rows because of an error."""

    id: int | None = None
    owner_id: str
    file_name: str
    error_message: str
    source_file_content: str = ""
    created_at: datetime
