"""Invoice data models for structured extraction.

Field set follows the layout of Chinese VAT invoices: invoice-level header
fields, buyer/seller parties, a table of line items and the tax-inclusive
total. Money values stay floats; deduplication compares them with a tolerance.
"""

from pydantic import BaseModel, Field

# Placeholders used when the model omits a field
UNKNOWN_INVOICE_NUMBER = "未知"
DEFAULT_INVOICE_TYPE = "普通发票"
UNKNOWN_ITEM_NAME = "未知项目"


class Party(BaseModel):
    """Buyer or seller as printed on the invoice."""

    name: str = ""
    tax_id: str = ""


class InvoiceTotals(BaseModel):
    """Tax-inclusive total in words and figures."""

    amount_words: str = ""
    amount_num: float = 0.0


class ExtractedLineItem(BaseModel):
    """One row of the invoice's goods/services table."""

    item_name: str = Field(UNKNOWN_ITEM_NAME, description="Goods or service name")
    specification: str = Field("", description="Specification / model")
    unit: str = Field("", description="Unit of measure")
    quantity: float = 0.0
    unit_price: float = 0.0
    amount: float = Field(0.0, description="Net amount, excluding tax")
    tax_rate: str = Field("", description="Tax rate as printed, e.g. '13%'")
    tax_amount: float = 0.0


class ExtractedInvoice(BaseModel):
    """Structured invoice returned by an extraction provider."""

    invoice_type: str = Field(DEFAULT_INVOICE_TYPE, description="Invoice category name")
    invoice_number: str = Field(UNKNOWN_INVOICE_NUMBER, description="Invoice number")
    date: str = Field("", description="Issue date as printed")
    buyer: Party = Field(default_factory=Party)
    seller: Party = Field(default_factory=Party)
    items: list[ExtractedLineItem] = Field(default_factory=list)
    total: InvoiceTotals = Field(default_factory=InvoiceTotals)
    remark: str = ""
    issuer: str = ""

    @property
    def has_invoice_number(self) -> bool:
        """Whether a usable invoice number was recognized."""
        number = self.invoice_number.strip()
        return bool(number) and number != UNKNOWN_INVOICE_NUMBER
