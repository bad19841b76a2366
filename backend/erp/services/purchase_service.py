# Overview: Service-layer operations for purchases; encapsulates business logic and database work.

"""
Purchase Service

MULTI-TENANT: Same parent-chain rule as sales, with one difference kept from
the UI contract: a customer id that does not belong to the business is
stored as NULL instead of being rejected.

Header and lines are written in one transaction; update replaces lines;
delete is hard.
"""

from __future__ import annotations

from ..error_codes import ApiError
from ..errors import NotFoundError
from ..extensions import db
from ..models import Purchase, PurchaseItem
from .document_service import DocumentInput, apply_date_range, parse_document
from .product_service import find_product_in_business
from .tenant_service import find_customer_in_business


PURCHASE_NOT_FOUND_MESSAGE = "매입 정보를 찾을 수 없습니다."
DATE_KEYS = ("purchaseDate", "transactionDate")


def list_purchases(
    *,
    business_id: int,
    start_date: str | None = None,
    end_date: str | None = None,
    customer_id: int | None = None,
):
    query = db.session.query(Purchase).filter(Purchase.business_id == business_id)
    query = apply_date_range(query, Purchase.purchase_date, start_date, end_date)
    if customer_id:
        query = query.filter(Purchase.customer_id == customer_id)
    return query.order_by(Purchase.purchase_date.desc(), Purchase.created_at.desc(), Purchase.id.desc())


def get_purchase(*, business_id: int, purchase_id: int) -> Purchase:
    purchase = db.session.query(Purchase).filter(
        Purchase.id == purchase_id,
        Purchase.business_id == business_id,
    ).first()
    if not purchase:
        raise NotFoundError(PURCHASE_NOT_FOUND_MESSAGE)
    return purchase


def _customer_or_none(business_id: int, customer_id: int | None) -> int | None:
    customer = find_customer_in_business(customer_id, business_id)
    return customer.id if customer else None


def _build_items(business_id: int, doc: DocumentInput) -> list[PurchaseItem]:
    items = []
    for item in doc.items:
        product = find_product_in_business(business_id, item.product_id) if item.product_id else None
        if item.product_id and product is None:
            raise ApiError("ERR_BIZ_003")
        items.append(PurchaseItem(
            product_id=item.product_id,
            product_code=item.product_code or (product.product_code if product else None),
            product_name=item.product_name,
            spec=item.spec,
            unit=item.unit,
            quantity=item.quantity,
            unit_price=item.unit_price,
            amount=item.amount,
        ))
    return items


def create_purchase(*, business_id: int, payload: dict, commit: bool = True) -> Purchase:
    doc = parse_document(payload, date_keys=DATE_KEYS)

    purchase = Purchase(
        business_id=business_id,
        customer_id=_customer_or_none(business_id, doc.customer_id),
        purchase_date=doc.document_date,
        total_amount=doc.total_amount,
        vat_amount=doc.vat_amount,
        memo=doc.memo,
    )
    purchase.items = _build_items(business_id, doc)
    db.session.add(purchase)

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return purchase


def update_purchase(*, business_id: int, purchase_id: int, payload: dict) -> Purchase:
    purchase = get_purchase(business_id=business_id, purchase_id=purchase_id)
    doc = parse_document(payload, date_keys=DATE_KEYS)

    purchase.customer_id = _customer_or_none(business_id, doc.customer_id)
    purchase.purchase_date = doc.document_date
    purchase.total_amount = doc.total_amount
    purchase.vat_amount = doc.vat_amount
    purchase.memo = doc.memo
    purchase.items = _build_items(business_id, doc)

    db.session.commit()
    return purchase


def delete_purchase(*, business_id: int, purchase_id: int) -> None:
    purchase = get_purchase(business_id=business_id, purchase_id=purchase_id)
    db.session.delete(purchase)
    db.session.commit()
