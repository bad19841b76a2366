# Overview: Service-layer operations for dashboard statistics and charts.

"""
Dashboard Service

All amounts are grand totals (supply + VAT). Periods are calendar based:
- month: first..last day of the current month
- week:  Monday..Sunday of the current week
- year:  Jan 1..Dec 31
- custom startDate/endDate pair

Growth compares with the previous equal period and is rounded to one
decimal; with no previous amount it is 0.

Grouping by month/day happens in Python so the same code runs on SQLite,
MySQL and PostgreSQL.
"""

from __future__ import annotations

import math
from collections import defaultdict
from datetime import date, timedelta
from decimal import Decimal

from ..extensions import db
from ..models import Customer, Product, Purchase, Sales
from ..money import ZERO, to_number
from ..validation import ValidationError
from .product_service import category_counts
from erp.time_utils import add_months, month_bounds, parse_iso_date, to_iso_date, today


PERIODS = {"month", "week", "year"}
CHART_MONTHS = {"month": 6, "year": 12, "week": 8}

SALES_COLOR = ("rgba(24, 144, 255, 0.6)", "rgba(24, 144, 255, 1)")
PURCHASE_COLOR = ("rgba(255, 99, 132, 0.6)", "rgba(255, 99, 132, 1)")
CATEGORY_COLORS = [
    "rgba(24, 144, 255, 0.8)",
    "rgba(82, 196, 26, 0.8)",
    "rgba(250, 173, 20, 0.8)",
    "rgba(245, 34, 45, 0.8)",
    "rgba(114, 46, 209, 0.8)",
    "rgba(255, 99, 132, 0.8)",
    "rgba(54, 162, 235, 0.8)",
    "rgba(255, 206, 86, 0.8)",
]
UNASSIGNED_CUSTOMER = "미지정"


def resolve_period(period: str | None, start_date: str | None, end_date: str | None) -> tuple[str, date, date]:
    """Returns (period, start, end). Explicit dates win over the named period."""
    period = period if period in PERIODS else "month"
    if start_date and end_date:
        try:
            return period, parse_iso_date(start_date), parse_iso_date(end_date)
        except (TypeError, ValueError):
            raise ValidationError(errors=["startDate/endDate must be ISO-8601 dates"])

    now = today()
    if period == "year":
        return period, date(now.year, 1, 1), date(now.year, 12, 31)
    if period == "week":
        start = now - timedelta(days=now.weekday())
        return period, start, start + timedelta(days=6)
    start, end = month_bounds(now)
    return period, start, end


def previous_period(period: str, start: date, end: date) -> tuple[date, date]:
    if period == "week":
        return start - timedelta(days=7), end - timedelta(days=7)
    if period == "year":
        return add_months(start, -12), add_months(end, -12)
    if start.day == 1 and end == month_bounds(end)[1]:
        # Whole months: previous month's full range
        return month_bounds(add_months(start, -1))[0], month_bounds(add_months(end, -1))[1]
    return add_months(start, -1), add_months(end, -1)


def sales_total(business_id: int, start: date, end: date) -> Decimal:
    value = db.session.query(
        db.func.coalesce(db.func.sum(Sales.total_amount + Sales.vat_amount), 0)
    ).filter(
        Sales.business_id == business_id,
        Sales.transaction_date >= start,
        Sales.transaction_date <= end,
    ).scalar()
    return Decimal(str(value or 0))


def purchase_total(business_id: int, start: date, end: date) -> Decimal:
    value = db.session.query(
        db.func.coalesce(db.func.sum(Purchase.total_amount + Purchase.vat_amount), 0)
    ).filter(
        Purchase.business_id == business_id,
        Purchase.purchase_date >= start,
        Purchase.purchase_date <= end,
    ).scalar()
    return Decimal(str(value or 0))


def _growth(current: Decimal, previous: Decimal) -> float:
    if previous <= 0:
        return 0.0
    return round(float((current - previous) / previous * 100), 1)


def active_customer_count(business_id: int) -> int:
    return db.session.query(Customer).filter(
        Customer.business_id == business_id, Customer.is_active.is_(True)
    ).count()


def active_product_count(business_id: int) -> int:
    return db.session.query(Product).filter(
        Product.business_id == business_id, Product.is_active.is_(True)
    ).count()


def get_stats(*, business_id: int, period: str | None = None, start_date: str | None = None, end_date: str | None = None) -> dict:
    period, start, end = resolve_period(period, start_date, end_date)
    prev_start, prev_end = previous_period(period, start, end)

    current_sales = sales_total(business_id, start, end)
    current_purchases = purchase_total(business_id, start, end)
    prev_sales = sales_total(business_id, prev_start, prev_end)
    prev_purchases = purchase_total(business_id, prev_start, prev_end)

    return {
        "totalSales": to_number(current_sales),
        "totalPurchases": to_number(current_purchases),
        "totalCustomers": active_customer_count(business_id),
        "totalProducts": active_product_count(business_id),
        "salesGrowth": _growth(current_sales, prev_sales),
        "purchaseGrowth": _growth(current_purchases, prev_purchases),
        "netProfit": to_number(current_sales - current_purchases),
        "period": {"start": to_iso_date(start), "end": to_iso_date(end)},
    }


def _sales_entry(sale: Sales) -> dict:
    return {
        "id": f"sale-{sale.id}",
        "type": "매출",
        "customer": sale.customer.name if sale.customer else UNASSIGNED_CUSTOMER,
        "amount": to_number(sale.grand_total),
        "date": to_iso_date(sale.transaction_date),
        "status": "완료",
        "description": sale.description or "",
    }


def _purchase_entry(purchase: Purchase) -> dict:
    return {
        "id": f"purchase-{purchase.id}",
        "type": "매입",
        "customer": purchase.customer.name if purchase.customer else UNASSIGNED_CUSTOMER,
        "amount": to_number(purchase.grand_total),
        "date": to_iso_date(purchase.purchase_date),
        "status": "완료",
        "description": purchase.memo or "",
    }


def recent_transactions(*, business_id: int, limit: int = 5) -> list[dict]:
    """Newest sales and purchases, ceil(limit/2) of each, merged by date."""
    limit = max(1, min(limit, 100))
    half = math.ceil(limit / 2)

    sales = db.session.query(Sales).filter(Sales.business_id == business_id).order_by(
        Sales.transaction_date.desc(), Sales.created_at.desc(), Sales.id.desc()
    ).limit(half).all()
    purchases = db.session.query(Purchase).filter(Purchase.business_id == business_id).order_by(
        Purchase.purchase_date.desc(), Purchase.created_at.desc(), Purchase.id.desc()
    ).limit(half).all()

    entries = [_sales_entry(s) for s in sales] + [_purchase_entry(p) for p in purchases]
    entries.sort(key=lambda e: e["date"], reverse=True)
    return entries[:limit]


def _monthly_totals(rows) -> dict[tuple[int, int], Decimal]:
    totals: dict[tuple[int, int], Decimal] = defaultdict(lambda: ZERO)
    for day, supply, vat in rows:
        totals[(day.year, day.month)] += Decimal(str(supply or 0)) + Decimal(str(vat or 0))
    return totals


def sales_chart(*, business_id: int, period: str | None = None) -> dict:
    """Monthly sales/purchase bars ending with the current month."""
    months = CHART_MONTHS.get(period or "month", 6)
    now = today()
    start = add_months(now.replace(day=1), -(months - 1))
    end = month_bounds(now)[1]

    sales_rows = db.session.query(Sales.transaction_date, Sales.total_amount, Sales.vat_amount).filter(
        Sales.business_id == business_id,
        Sales.transaction_date >= start,
        Sales.transaction_date <= end,
    ).all()
    purchase_rows = db.session.query(Purchase.purchase_date, Purchase.total_amount, Purchase.vat_amount).filter(
        Purchase.business_id == business_id,
        Purchase.purchase_date >= start,
        Purchase.purchase_date <= end,
    ).all()

    sales_by_month = _monthly_totals(sales_rows)
    purchases_by_month = _monthly_totals(purchase_rows)

    labels, sales_data, purchase_data = [], [], []
    for i in range(months):
        month = add_months(start, i)
        key = (month.year, month.month)
        labels.append(f"{month.month:02d}월")
        sales_data.append(to_number(sales_by_month.get(key, ZERO)))
        purchase_data.append(to_number(purchases_by_month.get(key, ZERO)))

    return {
        "labels": labels,
        "datasets": [
            {"label": "매출", "data": sales_data, "backgroundColor": SALES_COLOR[0],
             "borderColor": SALES_COLOR[1], "borderWidth": 2},
            {"label": "매입", "data": purchase_data, "backgroundColor": PURCHASE_COLOR[0],
             "borderColor": PURCHASE_COLOR[1], "borderWidth": 2},
        ],
    }


def category_data(*, business_id: int) -> dict:
    """Active product counts per category; a missing category counts as 기타."""
    counts: dict[str, int] = defaultdict(int)
    for category, count in category_counts(business_id):
        counts[category or "기타"] += count

    if not counts:
        return {"labels": ["기타"], "datasets": [{"data": [0], "backgroundColor": [CATEGORY_COLORS[0]], "borderWidth": 0}]}

    ordered = sorted(counts.items(), key=lambda kv: kv[1], reverse=True)
    labels = [label for label, _ in ordered]
    return {
        "labels": labels,
        "datasets": [{
            "data": [count for _, count in ordered],
            "backgroundColor": [CATEGORY_COLORS[i % len(CATEGORY_COLORS)] for i in range(len(labels))],
            "borderWidth": 0,
        }],
    }


def monthly_trend(*, business_id: int) -> dict:
    """Daily sales for every day of the current month."""
    start, end = month_bounds(today())
    rows = db.session.query(Sales.transaction_date, Sales.total_amount, Sales.vat_amount).filter(
        Sales.business_id == business_id,
        Sales.transaction_date >= start,
        Sales.transaction_date <= end,
    ).all()

    by_day: dict[int, Decimal] = defaultdict(lambda: ZERO)
    for day, supply, vat in rows:
        by_day[day.day] += Decimal(str(supply or 0)) + Decimal(str(vat or 0))

    labels = [f"{d}일" for d in range(1, end.day + 1)]
    data = [to_number(by_day.get(d, ZERO)) for d in range(1, end.day + 1)]
    return {
        "labels": labels,
        "datasets": [{
            "label": "일별 매출",
            "data": data,
            "borderColor": "rgba(24, 144, 255, 1)",
            "backgroundColor": "rgba(24, 144, 255, 0.1)",
            "tension": 0.4,
            "fill": True,
        }],
    }


def all_transactions(
    *,
    business_id: int,
    start_date: str | None = None,
    end_date: str | None = None,
    search: str | None = None,
) -> list[dict]:
    """Every sale and purchase in the range, newest first. search matches customer name or amount."""
    sales_q = db.session.query(Sales).outerjoin(Customer, Sales.customer_id == Customer.id).filter(
        Sales.business_id == business_id
    )
    purchase_q = db.session.query(Purchase).outerjoin(Customer, Purchase.customer_id == Customer.id).filter(
        Purchase.business_id == business_id
    )

    if start_date and end_date:
        try:
            start, end = parse_iso_date(start_date), parse_iso_date(end_date)
        except (TypeError, ValueError):
            raise ValidationError(errors=["startDate/endDate must be ISO-8601 dates"])
        sales_q = sales_q.filter(Sales.transaction_date >= start, Sales.transaction_date <= end)
        purchase_q = purchase_q.filter(Purchase.purchase_date >= start, Purchase.purchase_date <= end)

    if search:
        like = f"%{search.strip()}%"
        sales_q = sales_q.filter(db.or_(
            Customer.name.ilike(like),
            db.cast(Sales.total_amount, db.String).like(like),
        ))
        purchase_q = purchase_q.filter(db.or_(
            Customer.name.ilike(like),
            db.cast(Purchase.total_amount, db.String).like(like),
        ))

    entries = [_sales_entry(s) for s in sales_q.all()] + [_purchase_entry(p) for p in purchase_q.all()]
    for entry in entries:
        entry.pop("description", None)
        if entry["customer"] == UNASSIGNED_CUSTOMER:
            entry["customer"] = "알 수 없음"
    entries.sort(key=lambda e: e["date"], reverse=True)
    return entries
