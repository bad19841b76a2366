# Overview: Shared parsing for sales and purchase documents (header amounts, dates, line items).

"""
Document Service

Sales and purchases share one input shape:

    {
      "customerId": 3 | "customer": {"id": 3, "name": "..."},
      "transactionDate" | "saleDate" | "purchaseDate": "2025-01-31",
      "totalAmount": 10000, "vatAmount": 1000,
      "items": [{"productId", "productName", "spec", "unit", "taxType",
                 "quantity", "unitPrice", "amount", "vatRate"}]
    }

These helpers validate that shape and return plain dicts of Decimals; the
sales/purchase services turn them into rows inside a single transaction.
All problems are collected and raised together as one ValidationError.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from ..money import VAT_RATE, ZERO
from ..validation import ValidationError, parse_decimal, parse_optional_int
from erp.time_utils import parse_iso_date, today


MIN_QUANTITY = Decimal("0.01")
CENT = Decimal("0.01")

# Line tax types that never carry VAT
EXEMPT_TAX_TYPES = {"면세", "영세", "tax_free", "tax_exempt", "zero_rated"}


@dataclass
class LineInput:
    product_id: int | None
    product_code: str | None
    product_name: str
    spec: str | None
    unit: str | None
    tax_type: str | None
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    vat_rate: Decimal
    remark: str | None = None
    explicit_tax: Decimal | None = None

    @property
    def tax_amount(self) -> Decimal:
        if self.explicit_tax is not None:
            return self.explicit_tax
        if self.tax_type in EXEMPT_TAX_TYPES:
            return ZERO
        return (self.amount * self.vat_rate).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class DocumentInput:
    customer_id: int | None
    document_date: date
    total_amount: Decimal
    vat_amount: Decimal
    description: str | None
    memo: str | None
    items: list[LineInput]


def _text(value, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None
    return s[:max_length] if max_length else s


def resolve_customer_id(payload: dict) -> int | None:
    """customer.id wins over customerId, as the UI sends either."""
    customer = payload.get("customer")
    if isinstance(customer, dict) and customer.get("id"):
        return parse_optional_int("customer.id", customer.get("id"))
    return parse_optional_int("customerId", payload.get("customerId"))


def parse_line_items(raw_items) -> list[LineInput]:
    """
    Validate line items.

    amount is the line supply amount; when omitted it is quantity * unitPrice.
    taxAmount, when given, overrides the VAT computed from vatRate.
    """
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError(errors=["items must be a list"])

    errors: list[str] = []
    items: list[LineInput] = []
    for index, raw in enumerate(raw_items):
        prefix = f"items[{index}]"
        if not isinstance(raw, dict):
            errors.append(f"{prefix} must be an object")
            continue

        line_errors: list[str] = []

        def grab(fn, *args, **kwargs):
            try:
                return fn(*args, **kwargs)
            except ValidationError as e:
                line_errors.extend(e.errors)
                return None

        name = _text(raw.get("productName") or raw.get("itemName"), 200)
        if not name:
            line_errors.append(f"{prefix}.productName is required")

        product_id = grab(parse_optional_int, f"{prefix}.productId", raw.get("productId"))
        quantity = grab(parse_decimal, f"{prefix}.quantity", raw.get("quantity"), minimum=MIN_QUANTITY)
        unit_price = grab(parse_decimal, f"{prefix}.unitPrice", raw.get("unitPrice"), minimum=ZERO)

        raw_amount = raw.get("amount")
        if raw_amount is None or raw_amount == "":
            raw_amount = raw.get("supplyAmount")
        if (raw_amount is None or raw_amount == "") and quantity is not None and unit_price is not None:
            amount = quantity * unit_price
        else:
            amount = grab(parse_decimal, f"{prefix}.amount", raw_amount, minimum=ZERO)

        raw_rate = raw.get("vatRate")
        if raw_rate is None or raw_rate == "":
            vat_rate = VAT_RATE
        else:
            vat_rate = grab(parse_decimal, f"{prefix}.vatRate", raw_rate, minimum=ZERO, maximum=Decimal("1"))

        raw_tax = raw.get("taxAmount")
        explicit_tax = None
        if raw_tax is not None and raw_tax != "":
            explicit_tax = grab(parse_decimal, f"{prefix}.taxAmount", raw_tax, minimum=ZERO)

        if line_errors:
            errors.extend(line_errors)
            continue

        items.append(LineInput(
            product_id=product_id,
            product_code=_text(raw.get("productCode"), 50),
            product_name=name,
            spec=_text(raw.get("spec") or raw.get("specification"), 50),
            unit=_text(raw.get("unit"), 20),
            tax_type=_text(raw.get("taxType"), 20),
            quantity=quantity,
            unit_price=unit_price,
            amount=amount,
            vat_rate=vat_rate,
            remark=_text(raw.get("remark")),
            explicit_tax=explicit_tax,
        ))

    if errors:
        raise ValidationError(errors=errors)
    return items


def parse_document(payload: dict, *, date_keys: tuple[str, ...]) -> DocumentInput:
    """
    Validate a sales/purchase body.

    date_keys are tried in order; the first present one is used. A missing
    date means today.
    """
    if not isinstance(payload, dict):
        raise ValidationError(errors=["Invalid JSON payload"])

    errors: list[str] = []

    def grab(fn, *args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except ValidationError as e:
            errors.extend(e.errors)
            return None

    customer_id = grab(resolve_customer_id, payload)

    document_date = today()
    for key in date_keys:
        raw = payload.get(key)
        if raw:
            try:
                document_date = parse_iso_date(raw)
            except (TypeError, ValueError):
                errors.append(f"{key} must be an ISO-8601 date")
            break

    total = grab(parse_decimal, "totalAmount", payload.get("totalAmount"), minimum=ZERO)
    raw_vat = payload.get("vatAmount")
    vat = ZERO if raw_vat is None or raw_vat == "" else grab(parse_decimal, "vatAmount", raw_vat, minimum=ZERO)
    items = grab(parse_line_items, payload.get("items"))

    if errors:
        raise ValidationError(errors=errors)

    return DocumentInput(
        customer_id=customer_id,
        document_date=document_date,
        total_amount=total,
        vat_amount=vat,
        description=_text(payload.get("description"), 500),
        memo=_text(payload.get("memo")),
        items=items or [],
    )


def apply_date_range(query, column, start_date=None, end_date=None):
    """Filter query by an inclusive date range given as ISO strings (either may be absent)."""
    errors = []
    start = end = None
    try:
        start = parse_iso_date(start_date) if start_date else None
    except (TypeError, ValueError):
        errors.append("startDate must be an ISO-8601 date")
    try:
        end = parse_iso_date(end_date) if end_date else None
    except (TypeError, ValueError):
        errors.append("endDate must be an ISO-8601 date")
    if errors:
        raise ValidationError(errors=errors)

    if start:
        query = query.filter(column >= start)
    if end:
        query = query.filter(column <= end)
    return query
