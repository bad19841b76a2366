# Overview: Service-layer operations for sales; encapsulates business logic and database work.

"""
Sales Service

MULTI-TENANT: A sale, its customer and every line's product must belong to
the same business. A customer id from another business is answered with the
same 404 as a missing customer.

WHY: Header and lines are written in one transaction. Update replaces all
lines. Delete is hard and removes the lines with the header.

E-SIGNATURE: sign_sales stores a JPEG, records signer and time once, and
sends the signed statement link to the customer over Alimtalk (best effort).
A signed document can be neither signed again nor edited.
"""

from __future__ import annotations

from flask import current_app

from ..error_codes import ApiError
from ..errors import NotFoundError
from ..extensions import db
from ..models import Business, Sales, SalesItem, User
from . import alimtalk_service, upload_service
from .document_service import DocumentInput, apply_date_range, parse_document
from .product_service import find_product_in_business
from .tenant_service import find_customer_in_business
from erp.time_utils import utcnow


SALES_NOT_FOUND_MESSAGE = "매출 정보를 찾을 수 없습니다."
DATE_KEYS = ("saleDate", "transactionDate")


def list_sales(
    *,
    business_id: int,
    start_date: str | None = None,
    end_date: str | None = None,
    customer_id: int | None = None,
):
    query = db.session.query(Sales).filter(Sales.business_id == business_id)
    query = apply_date_range(query, Sales.transaction_date, start_date, end_date)
    if customer_id:
        query = query.filter(Sales.customer_id == customer_id)
    return query.order_by(Sales.transaction_date.desc(), Sales.created_at.desc(), Sales.id.desc())


def get_sales(*, business_id: int, sales_id: int) -> Sales:
    sales = db.session.query(Sales).filter(
        Sales.id == sales_id,
        Sales.business_id == business_id,
    ).first()
    if not sales:
        raise NotFoundError(SALES_NOT_FOUND_MESSAGE)
    return sales


def _check_references(business_id: int, doc: DocumentInput) -> None:
    if doc.customer_id and not find_customer_in_business(doc.customer_id, business_id):
        raise ApiError("ERR_BIZ_002")
    for item in doc.items:
        if item.product_id and not find_product_in_business(business_id, item.product_id):
            raise ApiError("ERR_BIZ_003")


def _build_items(doc: DocumentInput) -> list[SalesItem]:
    return [
        SalesItem(
            product_id=item.product_id,
            item_name=item.product_name,
            specification=item.spec,
            unit=item.unit,
            quantity=item.quantity,
            unit_price=item.unit_price,
            supply_amount=item.amount,
            tax_amount=item.tax_amount,
            remark=item.remark,
        )
        for item in doc.items
    ]


def create_sales(*, business_id: int, payload: dict, commit: bool = True) -> Sales:
    """
    Create a sale with its lines.

    Raises:
        ValidationError: malformed body
        ApiError ERR_BIZ_002 / ERR_BIZ_003: customer or product not in the business
    """
    doc = parse_document(payload, date_keys=DATE_KEYS)
    _check_references(business_id, doc)

    sales = Sales(
        business_id=business_id,
        customer_id=doc.customer_id,
        transaction_date=doc.document_date,
        total_amount=doc.total_amount,
        vat_amount=doc.vat_amount,
        description=doc.description,
        memo=doc.memo,
    )
    sales.items = _build_items(doc)
    db.session.add(sales)

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return sales


def update_sales(*, business_id: int, sales_id: int, payload: dict) -> Sales:
    """Replace header fields and all lines."""
    sales = get_sales(business_id=business_id, sales_id=sales_id)
    if sales.is_signed:
        raise ApiError("ERR_BIZ_010")

    doc = parse_document(payload, date_keys=DATE_KEYS)
    _check_references(business_id, doc)

    sales.customer_id = doc.customer_id
    sales.transaction_date = doc.document_date
    sales.total_amount = doc.total_amount
    sales.vat_amount = doc.vat_amount
    sales.description = doc.description
    sales.memo = doc.memo
    sales.items = _build_items(doc)

    db.session.commit()
    return sales


def delete_sales(*, business_id: int, sales_id: int) -> None:
    """Hard delete; lines go with the header."""
    sales = get_sales(business_id=business_id, sales_id=sales_id)
    signature = sales.signature_image
    db.session.delete(sales)
    db.session.commit()
    upload_service.remove("signatures", signature)


def sign_sales(*, business: Business, sales_id: int, user: User, file) -> Sales:
    """
    Attach an e-signature to a sale.

    Raises:
        NotFoundError: sale not in the business
        ApiError ERR_BIZ_010: already signed
        ApiError ERR_FILE_00x: image rejected
    """
    sales = get_sales(business_id=business.id, sales_id=sales_id)
    if sales.is_signed:
        raise ApiError("ERR_BIZ_010")

    filename = upload_service.save_signature(sales.id, file)

    sales.signature_image = filename
    sales.signed_by_user_id = user.id
    sales.signed_at = utcnow()
    db.session.commit()

    _send_signed_statement(business, sales)
    return sales


def _send_signed_statement(business: Business, sales: Sales) -> None:
    customer = sales.customer
    phone = customer.contact_phone if customer else None
    if not phone:
        current_app.logger.info("Sales %s signed; customer has no phone, statement not sent", sales.id)
        return

    image_url = f"{current_app.config['PUBLIC_BASE_URL']}/uploads/signatures/{sales.signature_image}"
    if not alimtalk_service.send_signature_statement(phone, business.company_name, image_url):
        current_app.logger.warning("Signed statement for sales %s was not delivered", sales.id)
