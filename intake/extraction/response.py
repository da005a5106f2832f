"""Parsing and normalization of raw model responses.

Vision models are prompted to return a bare JSON object with camelCase keys,
but in practice wrap it in markdown fences, add commentary, or omit fields.
Everything downstream relies on ExtractedInvoice being fully populated.
"""

import json
import math
import re
from typing import Any

from intake.extraction.schema import (
    DEFAULT_INVOICE_TYPE,
    UNKNOWN_INVOICE_NUMBER,
    UNKNOWN_ITEM_NAME,
    ExtractedInvoice,
    ExtractedLineItem,
    InvoiceTotals,
    Party,
)

UNPARSEABLE_RESPONSE_MESSAGE = "Model response could not be parsed, retry or switch models"


class ResponseParseError(ValueError):
    """Raised when no JSON object can be recovered from a model response."""


def parse_model_response(response_text: str | None) -> dict[str, Any]:
    """Extract and parse the JSON object from an LLM response.

    Args:
        response_text: Raw LLM response

    Returns:
        Parsed JSON dict

    Raises:
        ResponseParseError: If no JSON object can be recovered
    """
    if not response_text or not response_text.strip():
        raise ResponseParseError("Model returned an empty response")

    cleaned = response_text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```(?:json)?\s*", "", cleaned)
        cleaned = re.sub(r"\s*```$", "", cleaned)

    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        # Surrounding prose: fall back to the outermost braces
        match = re.search(r"\{[\s\S]*\}", cleaned)
        if not match:
            raise ResponseParseError(UNPARSEABLE_RESPONSE_MESSAGE) from None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise ResponseParseError(UNPARSEABLE_RESPONSE_MESSAGE) from e

    if not isinstance(parsed, dict):
        raise ResponseParseError(UNPARSEABLE_RESPONSE_MESSAGE)
    return parsed


def _to_float(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) or math.isinf(number) else number


def _to_str(value: Any, default: str = "") -> str:
    if value is None or value == "":
        return default
    return str(value)


def _to_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _normalize_item(raw: dict[str, Any]) -> ExtractedLineItem:
    return ExtractedLineItem(
        item_name=_to_str(raw.get("itemName"), UNKNOWN_ITEM_NAME),
        specification=_to_str(raw.get("specification")),
        unit=_to_str(raw.get("unit")),
        quantity=_to_float(raw.get("quantity")),
        unit_price=_to_float(raw.get("unitPrice")),
        amount=_to_float(raw.get("amount")),
        tax_rate=_to_str(raw.get("taxRate")),
        tax_amount=_to_float(raw.get("taxAmount")),
    )


def normalize_extraction(raw: dict[str, Any]) -> ExtractedInvoice:
    """Build an ExtractedInvoice from the model's camelCase JSON.

    Missing text fields become empty strings (or the unknown placeholders for
    invoice type, invoice number and item name), numeric fields that are
    missing or not numbers become 0, and a non-list ``items`` becomes empty.
    The invoice number is stripped so deduplication and the short number
    see the same value the ledger stores.

    Args:
        raw: Parsed JSON object from the model

    Returns:
        Fully populated ExtractedInvoice
    """
    buyer = _to_dict(raw.get("buyer"))
    seller = _to_dict(raw.get("seller"))
    total = _to_dict(raw.get("total"))
    raw_items = raw.get("items")
    items = raw_items if isinstance(raw_items, list) else []

    return ExtractedInvoice(
        invoice_type=_to_str(raw.get("invoiceType"), DEFAULT_INVOICE_TYPE),
        invoice_number=_to_str(raw.get("invoiceNumber"), UNKNOWN_INVOICE_NUMBER).strip(),
        date=_to_str(raw.get("date")),
        buyer=Party(name=_to_str(buyer.get("name")), tax_id=_to_str(buyer.get("taxId"))),
        seller=Party(name=_to_str(seller.get("name")), tax_id=_to_str(seller.get("taxId"))),
        items=[_normalize_item(_to_dict(item)) for item in items],
        total=InvoiceTotals(
            amount_words=_to_str(total.get("amountWords")),
            amount_num=_to_float(total.get("amountNum")),
        ),
        remark=_to_str(raw.get("remark")),
        issuer=_to_str(raw.get("issuer")),
    )
