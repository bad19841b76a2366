# Overview: Service-layer operations for company settings, data export, backup/restore and account removal.

"""
Settings Service

Settings are free-form key/value pairs per business (CompanySettings). Two
keys are interpreted by the server:
- sessionTimeout: 1, 4, 8 or 24 hours (with or without an "h" suffix)
- twoFactorAuth: "true"/"false", read before login to decide on OTP

DESTRUCTIVE OPERATIONS (owner only, confirm text required):
- reset_data: deletes every sale, purchase, payment, customer and product
- delete_account: reset_data plus settings, notes, logs, sub-users, the
  business itself and, when it owns nothing else, the owner's account

Backup is a JSON document (version "1.0"). Restore replaces the business
data inside one transaction; any invalid record aborts the whole restore.
"""

from __future__ import annotations

from datetime import datetime, timezone

from flask import current_app
from sqlalchemy import select

from ..error_codes import ApiError
from ..errors import NotFoundError
from ..extensions import db
from ..models import (
    OTP,
    ActivityLog,
    Business,
    CompanySettings,
    Customer,
    Note,
    Notification,
    Payment,
    Product,
    Purchase,
    PurchaseItem,
    Sales,
    SalesItem,
    SecurityEvent,
    User,
)
from ..money import to_number
from ..validation import ValidationError
from . import customer_service, excel_service, payment_service, product_service, purchase_service, sales_service
from .security_service import log_request_event
from .tenant_service import get_user_businesses, resolve_default_business_id
from .token_service import ALLOWED_SESSION_HOURS, session_timeout_hours
from erp.time_utils import to_iso_date


RESET_CONFIRM_TEXT = "데이터 초기화"
DELETE_CONFIRM_TEXT = "계정 삭제"
CONFIRM_MISMATCH_MESSAGE = "확인 텍스트가 일치하지 않습니다."
BACKUP_VERSION = "1.0"

EXPORT_KINDS = {"customers", "products", "transactions", "all"}

TRANSACTION_COLUMNS = [("날짜", 12), ("거래처", 20), ("공급가액", 15), ("부가세", 12), ("합계", 15), ("비고", 30)]
PAYMENT_COLUMNS = [("날짜", 12), ("거래처", 20), ("구분", 10), ("금액", 15), ("결제수단", 12), ("비고", 30)]


# ---------------------------------------------------------------------------
# Key/value settings
# ---------------------------------------------------------------------------

def get_settings(business_id: int) -> dict[str, str]:
    rows = db.session.query(CompanySettings).filter(CompanySettings.business_id == business_id).all()
    return {row.setting_key: row.setting_value for row in rows}


def _normalize_setting(key: str, value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    text = "" if value is None else str(value).strip()
    if key == "sessionTimeout":
        try:
            hours = int(text.rstrip("hH"))
        except ValueError:
            hours = None
        if hours not in ALLOWED_SESSION_HOURS:
            raise ValidationError(errors=["sessionTimeout must be one of: 1, 4, 8, 24"])
    if key == "twoFactorAuth" and text.lower() not in ("true", "false"):
        raise ValidationError(errors=["twoFactorAuth must be a boolean"])
    return text


def update_settings(business_id: int, payload: dict) -> dict[str, str]:
    """Upsert every key in payload. Values are stored as text."""
    if not isinstance(payload, dict) or not payload:
        raise ValidationError(errors=["settings object is required"])

    errors = []
    normalized = {}
    for key, value in payload.items():
        if not isinstance(key, str) or not key.strip() or len(key) > 50:
            errors.append(f"invalid setting key: {key}")
            continue
        if isinstance(value, (dict, list)):
            errors.append(f"{key} must be a scalar value")
            continue
        try:
            normalized[key] = _normalize_setting(key, value)
        except ValidationError as e:
            errors.extend(e.errors)
    if errors:
        raise ValidationError(errors=errors)

    existing = {
        row.setting_key: row
        for row in db.session.query(CompanySettings).filter(CompanySettings.business_id == business_id).all()
    }
    for key, value in normalized.items():
        row = existing.get(key)
        if row is None:
            db.session.add(CompanySettings(business_id=business_id, setting_key=key, setting_value=value))
        else:
            row.setting_value = value
    db.session.commit()
    return get_settings(business_id)


def security_settings_for_email(email: str) -> dict:
    """Pre-login lookup: does this account need an OTP, and how long will the session last."""
    user = db.session.query(User).filter(User.email == (email or "").strip()).first()
    if user is None:
        raise NotFoundError("사용자를 찾을 수 없습니다.")

    business_id = resolve_default_business_id(user)
    two_factor = True
    if business_id:
        setting = db.session.query(CompanySettings).filter_by(
            business_id=business_id, setting_key="twoFactorAuth"
        ).first()
        if setting is not None:
            two_factor = setting.setting_value.strip().lower() == "true"
    return {
        "twoFactorAuth": two_factor,
        "sessionTimeout": f"{session_timeout_hours(business_id)}h",
    }


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def _document_rows(documents, date_attr: str) -> list[list]:
    return [[
        to_iso_date(getattr(doc, date_attr)),
        doc.customer.name if doc.customer else "",
        to_number(doc.total_amount),
        to_number(doc.vat_amount),
        to_number(doc.grand_total),
        doc.memo or "",
    ] for doc in documents]


def _transaction_sheets(business_id: int) -> list:
    sales = db.session.query(Sales).filter(Sales.business_id == business_id).order_by(
        Sales.transaction_date.asc(), Sales.id.asc()
    ).all()
    purchases = db.session.query(Purchase).filter(Purchase.business_id == business_id).order_by(
        Purchase.purchase_date.asc(), Purchase.id.asc()
    ).all()
    return [
        ("매출", TRANSACTION_COLUMNS, _document_rows(sales, "transaction_date")),
        ("매입", TRANSACTION_COLUMNS, _document_rows(purchases, "purchase_date")),
    ]


def _payment_sheet(business_id: int):
    payments = db.session.query(Payment).filter(Payment.business_id == business_id).order_by(
        Payment.payment_date.asc(), Payment.id.asc()
    ).all()
    rows = [[
        to_iso_date(p.payment_date), p.customer.name if p.customer else "", p.payment_type,
        to_number(p.amount), p.payment_method or "", p.memo or "",
    ] for p in payments]
    return ("수금지급", PAYMENT_COLUMNS, rows)


def export_data(business_id: int, kind: str) -> tuple[bytes, str]:
    if kind not in EXPORT_KINDS:
        raise NotFoundError("지원하지 않는 내보내기 유형입니다.")

    customers = ("거래처", excel_service.CUSTOMER_COLUMNS, excel_service.customer_rows(business_id))
    products = ("품목", excel_service.PRODUCT_COLUMNS, excel_service.product_rows(business_id))
    if kind == "customers":
        sheets = [customers]
    elif kind == "products":
        sheets = [products]
    elif kind == "transactions":
        sheets = _transaction_sheets(business_id)
    else:
        sheets = [customers, products, *_transaction_sheets(business_id), _payment_sheet(business_id)]
    return excel_service.build_workbook(sheets), f"{kind}.xlsx"


# ---------------------------------------------------------------------------
# Backup / restore
# ---------------------------------------------------------------------------

def backup(business_id: int) -> dict:
    customers = db.session.query(Customer).filter(Customer.business_id == business_id).order_by(Customer.id).all()
    products = db.session.query(Product).filter(Product.business_id == business_id).order_by(Product.id).all()
    sales = db.session.query(Sales).filter(Sales.business_id == business_id).order_by(Sales.id).all()
    purchases = db.session.query(Purchase).filter(Purchase.business_id == business_id).order_by(Purchase.id).all()
    payments = db.session.query(Payment).filter(Payment.business_id == business_id).order_by(Payment.id).all()

    return {
        "version": BACKUP_VERSION,
        "createdAt": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "businessId": business_id,
        "data": {
            "customers": [{
                "customerCode": c.customer_code,
                "name": c.name,
                "businessNumber": c.business_number,
                "representative": c.representative,
                "phone": c.phone,
                "address": c.address,
                "email": c.email,
                "fax": c.fax,
                "managerContact": c.manager_contact,
                "businessType": c.business_type,
                "businessItem": c.business_item,
                "customerType": c.customer_type,
                "memo": c.memo,
                "isActive": c.is_active,
            } for c in customers],
            "products": [{
                "productCode": p.product_code,
                "name": p.name,
                "spec": p.spec,
                "unit": p.unit,
                "buyPrice": to_number(p.buy_price),
                "sellPrice": to_number(p.sell_price),
                "taxType": p.tax_type,
                "category": p.category,
                "memo": p.memo,
                "currentStock": p.current_stock,
                "isActive": p.is_active,
            } for p in products],
            "sales": [{
                "transactionDate": to_iso_date(s.transaction_date),
                "customerCode": s.customer.customer_code if s.customer else None,
                "customerName": s.customer.name if s.customer else None,
                "totalAmount": to_number(s.total_amount),
                "vatAmount": to_number(s.vat_amount),
                "description": s.description,
                "memo": s.memo,
                "items": [{
                    "itemName": i.item_name,
                    "specification": i.specification,
                    "unit": i.unit,
                    "quantity": to_number(i.quantity),
                    "unitPrice": to_number(i.unit_price),
                    "supplyAmount": to_number(i.supply_amount),
                    "taxAmount": to_number(i.tax_amount),
                    "remark": i.remark,
                } for i in s.items],
            } for s in sales],
            "purchases": [{
                "purchaseDate": to_iso_date(p.purchase_date),
                "customerCode": p.customer.customer_code if p.customer else None,
                "customerName": p.customer.name if p.customer else None,
                "totalAmount": to_number(p.total_amount),
                "vatAmount": to_number(p.vat_amount),
                "memo": p.memo,
                "items": [{
                    "productCode": i.product_code,
                    "productName": i.product_name,
                    "spec": i.spec,
                    "unit": i.unit,
                    "quantity": to_number(i.quantity),
                    "unitPrice": to_number(i.unit_price),
                    "amount": to_number(i.amount),
                } for i in p.items],
            } for p in purchases],
            "payments": [{
                "paymentDate": to_iso_date(p.payment_date),
                "customerCode": p.customer.customer_code if p.customer else None,
                "customerName": p.customer.name if p.customer else None,
                "paymentType": p.payment_type,
                "amount": to_number(p.amount),
                "paymentMethod": p.payment_method,
                "bankAccount": p.bank_account,
                "description": p.description,
                "memo": p.memo,
            } for p in payments],
        },
    }


def _delete_business_data(business_id: int) -> None:
    """Hard delete of documents, payments, customers and products (no commit)."""
    sales_ids = select(Sales.id).where(Sales.business_id == business_id)
    purchase_ids = select(Purchase.id).where(Purchase.business_id == business_id)
    db.session.query(SalesItem).filter(SalesItem.sales_id.in_(sales_ids)).delete(synchronize_session=False)
    db.session.query(PurchaseItem).filter(PurchaseItem.purchase_id.in_(purchase_ids)).delete(synchronize_session=False)
    for model in (Sales, Purchase, Payment, Customer, Product):
        db.session.query(model).filter(model.business_id == business_id).delete(synchronize_session=False)
    db.session.expire_all()


def _restore_error(section: str, index: int, exc: Exception) -> ValidationError:
    return ValidationError(
        "유효하지 않은 백업 파일입니다.",
        errors=[f"{section}[{index}]: {excel_service.describe_error(exc)}"],
    )


def _lookup_customer(ref: dict, by_code: dict, by_name: dict) -> int | None:
    return by_code.get(ref.get("customerCode")) or by_name.get(ref.get("customerName"))


def restore(business_id: int, payload: dict) -> dict:
    """Replace all business data with a backup document. All or nothing."""
    if not isinstance(payload, dict) or not payload.get("version") or not isinstance(payload.get("data"), dict):
        raise ValidationError("유효하지 않은 백업 파일입니다.", errors=["version and data are required"])
    data = payload["data"]
    sections = {}
    for name in ("customers", "products", "sales", "purchases", "payments"):
        section = data.get(name) or []
        if not isinstance(section, list) or not all(isinstance(r, dict) for r in section):
            raise ValidationError("유효하지 않은 백업 파일입니다.", errors=[f"{name} must be a list of objects"])
        sections[name] = section

    try:
        _delete_business_data(business_id)

        by_code: dict = {}
        by_name: dict = {}
        for index, record in enumerate(sections["customers"]):
            try:
                fields = {k: v for k, v in record.items() if k != "isActive"}
                customer = customer_service.create_customer(business_id=business_id, payload=fields, commit=False)
            except Exception as e:
                raise _restore_error("customers", index, e)
            customer.is_active = record.get("isActive", True) is not False
            by_code[customer.customer_code] = customer.id
            by_name.setdefault(customer.name, customer.id)

        for index, record in enumerate(sections["products"]):
            try:
                fields = {k: v for k, v in record.items() if k != "isActive"}
                product = product_service.create_product(business_id=business_id, payload=fields, commit=False)
            except Exception as e:
                raise _restore_error("products", index, e)
            product.is_active = record.get("isActive", True) is not False

        for index, record in enumerate(sections["sales"]):
            try:
                body = dict(record, customerId=_lookup_customer(record, by_code, by_name))
                sales_service.create_sales(business_id=business_id, payload=body, commit=False)
            except Exception as e:
                raise _restore_error("sales", index, e)

        for index, record in enumerate(sections["purchases"]):
            try:
                body = dict(record, customerId=_lookup_customer(record, by_code, by_name))
                purchase_service.create_purchase(business_id=business_id, payload=body, commit=False)
            except Exception as e:
                raise _restore_error("purchases", index, e)

        skipped_payments = 0
        for index, record in enumerate(sections["payments"]):
            customer_id = _lookup_customer(record, by_code, by_name)
            if customer_id is None:
                skipped_payments += 1
                continue
            try:
                body = {k: v for k, v in record.items() if k not in ("customerCode", "customerName")}
                body["customerId"] = customer_id
                payment_service.create_payment(business_id=business_id, payload=body, commit=False)
            except Exception as e:
                raise _restore_error("payments", index, e)

        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info("Backup restored for business %s", business_id)
    return {
        "customers": len(sections["customers"]),
        "products": len(sections["products"]),
        "sales": len(sections["sales"]),
        "purchases": len(sections["purchases"]),
        "payments": len(sections["payments"]) - skipped_payments,
    }


# ---------------------------------------------------------------------------
# Destructive operations
# ---------------------------------------------------------------------------

def _require_owner(user: User, business: Business) -> None:
    if business.user_id != user.id:
        raise ApiError("ERR_AUTH_006")


def _check_confirm(confirm_text, expected: str) -> None:
    if confirm_text != expected:
        raise ValidationError(CONFIRM_MISMATCH_MESSAGE, errors=[f"confirmText must be '{expected}'"])


def reset_data(*, user: User, business: Business, confirm_text) -> None:
    _require_owner(user, business)
    _check_confirm(confirm_text, RESET_CONFIRM_TEXT)
    try:
        _delete_business_data(business.id)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    current_app.logger.warning("All data reset for business %s by user %s", business.id, user.id)


def delete_account(*, user: User, business: Business, confirm_text) -> bool:
    """
    Remove a business and everything under it. Returns True when the
    owner's user account was removed as well.
    """
    _require_owner(user, business)
    _check_confirm(confirm_text, DELETE_CONFIRM_TEXT)

    business_id = business.id
    user_id = user.id
    other_businesses = [b for b in get_user_businesses(user, active_only=False) if b.id != business_id]
    remove_user = not other_businesses

    try:
        _delete_business_data(business_id)
        for model in (CompanySettings, Note, ActivityLog, Notification):
            db.session.query(model).filter(model.business_id == business_id).delete(synchronize_session=False)

        sub_user_ids = select(User.id).where(User.business_id == business_id, User.id != user_id)
        doomed = [user_id] if remove_user else []
        doomed_ids = [uid for (uid,) in db.session.execute(sub_user_ids).all()] + doomed
        if doomed_ids:
            db.session.query(Sales).filter(Sales.signed_by_user_id.in_(doomed_ids)).update(
                {Sales.signed_by_user_id: None}, synchronize_session=False
            )
            db.session.query(Note).filter(Note.created_by.in_(doomed_ids)).update(
                {Note.created_by: None}, synchronize_session=False
            )
            db.session.query(SecurityEvent).filter(SecurityEvent.user_id.in_(doomed_ids)).update(
                {SecurityEvent.user_id: None}, synchronize_session=False
            )
            for model in (ActivityLog, Notification):
                db.session.query(model).filter(model.user_id.in_(doomed_ids)).delete(synchronize_session=False)
            emails = [e for (e,) in db.session.query(User.email).filter(User.id.in_(doomed_ids)).all()]
            db.session.query(OTP).filter(OTP.email.in_(emails)).delete(synchronize_session=False)

        db.session.query(SecurityEvent).filter(SecurityEvent.business_id == business_id).update(
            {SecurityEvent.business_id: None}, synchronize_session=False
        )
        db.session.query(User).filter(User.business_id == business_id).update(
            {User.business_id: None}, synchronize_session=False
        )
        if doomed_ids:
            db.session.query(User).filter(User.id.in_(doomed_ids)).delete(synchronize_session=False)
        db.session.query(Business).filter(Business.id == business_id).delete(synchronize_session=False)
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    db.session.expire_all()
    log_request_event(
        "ACCOUNT_DELETED",
        success=True,
        reason=f"business {business_id} deleted; user removed={remove_user}",
        user_id=None if remove_user else user_id,
    )
    return remove_user
