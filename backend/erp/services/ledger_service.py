# Overview: Service-layer operations for the per-customer transaction ledger (거래원장).

"""
Transaction Ledger Service

Balance convention (positive = the customer owes the business):
- sales     (+ grand total)
- purchases (- grand total)
- receipts  (수금, - amount)
- payments  (입금/지급, + amount)

Entries are sorted by date (then kind, then id) before the running balance
is computed, so the balance column always reads top to bottom.
previousBalance carries everything dated before the period start.

MULTI-TENANT: every query filters by business_id and the customer must be
an active customer of the same business.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ..extensions import db
from ..models import Business, Customer, Payment, Purchase, Sales
from ..models.transactions import PAYMENT_TYPE_RECEIPT
from ..money import ZERO, to_decimal, to_number
from ..validation import ValidationError
from .customer_service import get_customer
from erp.time_utils import month_bounds, parse_iso_date, to_iso_date, today


ENTRY_ORDER = {"sales": 0, "purchase": 1, "receipt": 2, "payment": 3}
ENTRY_LABELS = {"sales": "매출", "purchase": "매입", "receipt": "수금", "payment": "지급"}


@dataclass
class LedgerEntry:
    kind: str
    source_id: int
    day: date
    supply: Decimal
    vat: Decimal
    memo: str
    item_info: dict | None = None
    item_count: int = 0

    @property
    def total(self) -> Decimal:
        return self.supply + self.vat

    @property
    def signed_total(self) -> Decimal:
        if self.kind in ("sales", "payment"):
            return self.total
        return -self.total


def resolve_range(start_date: str | None, end_date: str | None) -> tuple[date, date]:
    """Defaults to the current calendar month."""
    default_start, default_end = month_bounds(today())
    try:
        start = parse_iso_date(start_date) if start_date else default_start
        end = parse_iso_date(end_date) if end_date else default_end
    except (TypeError, ValueError):
        raise ValidationError(errors=["startDate/endDate must be ISO-8601 dates"])
    if start > end:
        raise ValidationError(errors=["startDate must be on or before endDate"])
    return start, end


def _first_item(items, name_attr: str, spec_attr: str, amount_attr: str) -> dict | None:
    if not items:
        return None
    item = items[0]
    return {
        "itemCode": item.product.product_code if item.product else "",
        "itemName": getattr(item, name_attr) or "",
        "spec": getattr(item, spec_attr) or "",
        "quantity": to_number(item.quantity or 0),
        "unitPrice": to_number(item.unit_price or 0),
        "amount": to_number(getattr(item, amount_attr) or 0),
    }


def collect_entries(
    *,
    business_id: int,
    customer_id: int,
    start: date | None = None,
    end: date | None = None,
) -> list[LedgerEntry]:
    """Ledger entries for one customer; start/end are inclusive and optional."""
    sales_q = db.session.query(Sales).filter(Sales.business_id == business_id, Sales.customer_id == customer_id)
    purchase_q = db.session.query(Purchase).filter(Purchase.business_id == business_id, Purchase.customer_id == customer_id)
    payment_q = db.session.query(Payment).filter(Payment.business_id == business_id, Payment.customer_id == customer_id)

    if start is not None:
        sales_q = sales_q.filter(Sales.transaction_date >= start)
        purchase_q = purchase_q.filter(Purchase.purchase_date >= start)
        payment_q = payment_q.filter(Payment.payment_date >= start)
    if end is not None:
        sales_q = sales_q.filter(Sales.transaction_date <= end)
        purchase_q = purchase_q.filter(Purchase.purchase_date <= end)
        payment_q = payment_q.filter(Payment.payment_date <= end)

    entries: list[LedgerEntry] = []
    for sale in sales_q.all():
        entries.append(LedgerEntry(
            kind="sales",
            source_id=sale.id,
            day=sale.transaction_date,
            supply=to_decimal(sale.total_amount),
            vat=to_decimal(sale.vat_amount),
            memo=sale.memo or sale.description or "",
            item_info=_first_item(sale.items, "item_name", "specification", "supply_amount"),
            item_count=len(sale.items),
        ))
    for purchase in purchase_q.all():
        entries.append(LedgerEntry(
            kind="purchase",
            source_id=purchase.id,
            day=purchase.purchase_date,
            supply=to_decimal(purchase.total_amount),
            vat=to_decimal(purchase.vat_amount),
            memo=purchase.memo or "",
            item_info=_first_item(purchase.items, "product_name", "spec", "amount"),
            item_count=len(purchase.items),
        ))
    for payment in payment_q.all():
        entries.append(LedgerEntry(
            kind="receipt" if payment.payment_type == PAYMENT_TYPE_RECEIPT else "payment",
            source_id=payment.id,
            day=payment.payment_date,
            supply=to_decimal(payment.amount),
            vat=ZERO,
            memo=payment.memo or payment.description or "",
        ))

    entries.sort(key=lambda e: (e.day, ENTRY_ORDER[e.kind], e.source_id))
    return entries


def _totals(entries: list[LedgerEntry]) -> dict[str, Decimal]:
    totals = {kind: ZERO for kind in ENTRY_ORDER}
    for entry in entries:
        totals[entry.kind] += entry.total
    return totals


def final_balance(totals: dict[str, Decimal]) -> Decimal:
    return totals["sales"] - totals["purchase"] - totals["receipt"] + totals["payment"]


def _company_block(business: Business) -> dict:
    return {
        "name": business.company_name,
        "businessNumber": business.formatted_business_number,
        "representative": business.representative,
        "address": business.address or "",
        "phone": business.phone or "",
        "fax": business.fax or "",
        "email": business.email or "",
    }


def _customer_block(customer: Customer) -> dict:
    return {
        "name": customer.name,
        "businessNumber": customer.business_number or "",
        "representative": customer.representative or "",
        "address": customer.address or "",
        "phone": customer.phone or "",
        "email": customer.email or "",
    }


def get_ledger(
    *,
    business: Business,
    customer_id: int | None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    """Full ledger document for one customer and period."""
    if customer_id is None:
        raise ValidationError(errors=["customerId is required"])
    customer = get_customer(business_id=business.id, customer_id=customer_id)
    start, end = resolve_range(start_date, end_date)

    before = collect_entries(business_id=business.id, customer_id=customer.id, end=date.fromordinal(start.toordinal() - 1))
    previous_balance = sum((e.signed_total for e in before), ZERO)

    entries = collect_entries(business_id=business.id, customer_id=customer.id, start=start, end=end)

    running = previous_balance
    rows = []
    for entry in entries:
        running += entry.signed_total
        row = {
            "id": f"{entry.kind}-{entry.source_id}",
            "sourceId": entry.source_id,
            "date": to_iso_date(entry.day),
            "type": entry.kind,
            "description": ENTRY_LABELS[entry.kind],
            "customerName": customer.name,
            "amount": to_number(entry.total),
            "supplyAmount": to_number(entry.supply),
            "vatAmount": to_number(entry.vat),
            "totalAmount": to_number(entry.total),
            "balance": to_number(running),
            "memo": entry.memo,
        }
        if entry.kind in ("sales", "purchase"):
            row["itemCount"] = entry.item_count
            row["itemInfo"] = entry.item_info
        rows.append(row)

    totals = _totals(entries)
    total_quantity = sum(
        (to_decimal(e.item_info["quantity"]) for e in entries if e.item_info),
        ZERO,
    )
    return {
        "companyName": customer.name,
        "companyAddress": customer.address,
        "fromCompany": _company_block(business),
        "toCompany": _customer_block(customer),
        "period": {"start": to_iso_date(start), "end": to_iso_date(end)},
        "previousBalance": to_number(previous_balance),
        "entries": rows,
        "totalSales": to_number(totals["sales"]),
        "totalPurchase": to_number(totals["purchase"]),
        "totalReceipt": to_number(totals["receipt"]),
        "totalPayment": to_number(totals["payment"]),
        "finalBalance": to_number(final_balance(totals)),
        "transactionCount": len(rows),
        "totalQuantity": to_number(total_quantity),
    }


def get_summary(
    *,
    business_id: int,
    customer_id: int | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
) -> dict:
    """Per-customer totals for the period plus a grand total row."""
    start, end = resolve_range(start_date, end_date)

    query = db.session.query(Customer).filter(
        Customer.business_id == business_id,
        Customer.is_active.is_(True),
    )
    if customer_id is not None:
        query = query.filter(Customer.id == customer_id)

    customers = []
    grand = {kind: ZERO for kind in ENTRY_ORDER}
    transaction_count = 0
    for customer in query.order_by(Customer.name.asc(), Customer.id.asc()).all():
        entries = collect_entries(business_id=business_id, customer_id=customer.id, start=start, end=end)
        if not entries:
            continue
        totals = _totals(entries)
        for kind, value in totals.items():
            grand[kind] += value
        transaction_count += len(entries)
        customers.append({
            "customerId": customer.id,
            "customerName": customer.name,
            "totalSales": to_number(totals["sales"]),
            "totalPurchase": to_number(totals["purchase"]),
            "totalReceipt": to_number(totals["receipt"]),
            "totalPayment": to_number(totals["payment"]),
            "finalBalance": to_number(final_balance(totals)),
            "transactionCount": len(entries),
        })

    return {
        "period": {"start": to_iso_date(start), "end": to_iso_date(end)},
        "customers": customers,
        "totalSales": to_number(grand["sales"]),
        "totalPurchase": to_number(grand["purchase"]),
        "totalReceipt": to_number(grand["receipt"]),
        "totalPayment": to_number(grand["payment"]),
        "finalBalance": to_number(final_balance(grand)),
        "transactionCount": transaction_count,
    }


def get_customer_balance(*, business_id: int, customer_id: int) -> dict:
    """Outstanding balance over the customer's whole history."""
    customer = get_customer(business_id=business_id, customer_id=customer_id)
    entries = collect_entries(business_id=business_id, customer_id=customer.id)
    totals = _totals(entries)
    return {
        "customerId": customer.id,
        "customerName": customer.name,
        "balance": to_number(final_balance(totals)),
        "lastTransactionDate": to_iso_date(entries[-1].day) if entries else None,
    }
