# Overview: Service-layer operations for spreadsheet templates, bulk upload and export (openpyxl).

"""
Excel Service

Templates, uploads and exports share one column vocabulary (Korean headers)
so an exported sheet can be edited and uploaded again.

UPLOAD RULES:
- only the first worksheet is read; the first row holds the headers
- blank rows are skipped; row numbers in errors are spreadsheet rows
- customers are upserted by 거래처코드 (C001 is read as C0001)
- products are created; a duplicate active 품목코드 fails that row
- sales/purchases rows are grouped by (date, customer) into one document
  with one line per row
- receivables/payables rows become 수금/입금 payments

Every row (or group) is validated before anything is added to the session,
and the whole upload is committed once at the end.
"""

from __future__ import annotations

import re
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime
from io import BytesIO
from zipfile import BadZipFile

from flask import current_app
from openpyxl import Workbook, load_workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import InvalidFileException

from ..error_codes import ApiError
from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer, Product, Purchase, Sales
from ..models.transactions import PAYMENT_TYPE_PAYMENT, PAYMENT_TYPE_RECEIPT
from ..money import to_number
from ..validation import ConflictError, ValidationError
from . import customer_service, payment_service, product_service, purchase_service, sales_service
from .document_service import parse_line_items
from erp.time_utils import to_iso_date


XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

HEADER_FONT = Font(bold=True)
HEADER_FILL = PatternFill(start_color="FFD9E1F2", end_color="FFD9E1F2", fill_type="solid")

CUSTOMER_COLUMNS = [
    ("거래처코드", 15), ("거래처명", 25), ("사업자번호", 15), ("주소", 30), ("업태", 12),
    ("종목", 12), ("대표자", 15), ("전화번호", 15), ("팩스번호", 15), ("이메일", 25),
    ("담당자 연락처", 15), ("거래처구분", 12), ("활성여부", 10),
]
PRODUCT_COLUMNS = [
    ("품목코드", 15), ("품목명", 25), ("규격", 15), ("단위", 10), ("매입단가", 12),
    ("매출단가", 12), ("분류", 15), ("세금구분", 15), ("비고", 25), ("활성여부", 10),
]
SALES_COLUMNS = [
    ("매출일자", 12), ("거래처명", 20), ("품목명", 25), ("규격", 15), ("수량", 10),
    ("단위", 10), ("단가", 12), ("공급가액", 15), ("세액", 12), ("비고", 25),
]
PURCHASE_COLUMNS = [
    ("매입일자", 12), ("거래처명", 20), ("품목명", 25), ("규격", 15), ("수량", 10),
    ("단위", 10), ("단가", 12), ("공급가액", 15), ("세액", 12), ("비고", 25),
]
RECEIVABLE_COLUMNS = [("No.", 8), ("수금일자", 12), ("거래처", 20), ("수금금액", 15), ("메모", 25)]
PAYABLE_COLUMNS = [("No.", 8), ("지급일자", 12), ("거래처", 20), ("지급금액", 15), ("메모", 25)]


@dataclass(frozen=True)
class SheetSpec:
    sheet_name: str
    filename: str
    columns: list
    example: list


TEMPLATES = {
    "customers": SheetSpec("거래처", "customer_template.xlsx", CUSTOMER_COLUMNS, [
        "C0001", "예시거래처", "123-45-67890", "서울시 강남구", "도소매", "사무용품", "홍길동",
        "02-1234-5678", "02-1234-5679", "example@email.com", "010-1234-5678", "매출처", "Y",
    ]),
    "products": SheetSpec("품목", "product_template.xlsx", PRODUCT_COLUMNS, [
        "P001", "예시품목", "A4", "EA", 10000, 15000, "사무용품", "tax_separate", "", "Y",
    ]),
    "sales": SheetSpec("매출", "sales_template.xlsx", SALES_COLUMNS, [
        "2025-01-01", "예시거래처", "예시품목", "A4", 10, "EA", 15000, 150000, 15000, "",
    ]),
    "purchases": SheetSpec("매입", "purchase_template.xlsx", PURCHASE_COLUMNS, [
        "2025-01-01", "예시거래처", "예시품목", "A4", 10, "EA", 10000, 100000, 10000, "",
    ]),
    "receivables": SheetSpec("수금", "receivable_template.xlsx", RECEIVABLE_COLUMNS, [
        1, "2025-01-01", "예시거래처", 1000000, "",
    ]),
    "payables": SheetSpec("지급", "payable_template.xlsx", PAYABLE_COLUMNS, [
        1, "2025-01-01", "예시거래처", 1000000, "",
    ]),
}

UPLOAD_TYPES = {"customers", "products", "sales", "purchases", "receivables", "payables"}
EXPORT_TYPES = {"customers", "products", "sales", "purchases"}

MANAGER_CONTACT_HEADERS = ("담당자 연락처", "담당자연락처", "담당자 휴대폰", "담당자휴대폰", "휴대폰", "핸드폰")
_SHORT_CODE_RE = re.compile(r"^C(\d{1,3})$")


@dataclass
class UploadResult:
    success: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)

    def fail(self, label: str, exc: Exception) -> None:
        self.failed += 1
        self.errors.append(f"{label}: {describe_error(exc)}")

    def to_dict(self) -> dict:
        return {"success": self.success, "failed": self.failed, "errors": self.errors}


def describe_error(exc: Exception) -> str:
    if isinstance(exc, ValidationError):
        return ", ".join(exc.errors) if exc.errors else exc.message
    if isinstance(exc, ApiError):
        return exc.message
    return str(exc)


# ---------------------------------------------------------------------------
# Workbook building
# ---------------------------------------------------------------------------

def build_workbook(sheets: list[tuple[str, list, list[list]]]) -> bytes:
    """sheets: [(title, [(header, width)], rows)] -> .xlsx bytes."""
    wb = Workbook()
    wb.remove(wb.active)
    for title, columns, rows in sheets:
        ws = wb.create_sheet(title=title)
        ws.append([header for header, _ in columns])
        for index, (_, width) in enumerate(columns, start=1):
            ws.column_dimensions[get_column_letter(index)].width = width
            cell = ws.cell(row=1, column=index)
            cell.font = HEADER_FONT
            cell.fill = HEADER_FILL
            cell.alignment = Alignment(horizontal="center")
        for row in rows:
            ws.append(row)
        ws.freeze_panes = "A2"
    buffer = BytesIO()
    wb.save(buffer)
    return buffer.getvalue()


def template_workbook(template_type: str) -> tuple[bytes, str]:
    spec = TEMPLATES.get(template_type)
    if spec is None:
        raise NotFoundError("지원하지 않는 템플릿 유형입니다.")
    return build_workbook([(spec.sheet_name, spec.columns, [spec.example])]), spec.filename


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------

def read_rows(data: bytes) -> list[tuple[int, dict]]:
    """(spreadsheet row number, {header: value}) for every non-blank row of the first sheet."""
    try:
        wb = load_workbook(BytesIO(data), read_only=True, data_only=True)
    except (BadZipFile, InvalidFileException, KeyError, ValueError, OSError) as e:
        current_app.logger.warning("Unreadable spreadsheet upload: %s", e)
        raise ApiError("ERR_FILE_002", "엑셀 파일을 읽을 수 없습니다.")

    try:
        values = list(wb.active.iter_rows(values_only=True))
    finally:
        wb.close()
    if not values:
        return []

    headers = [str(h).strip() if h is not None else "" for h in values[0]]
    rows = []
    for offset, raw in enumerate(values[1:], start=2):
        if raw is None or all(v is None or (isinstance(v, str) and not v.strip()) for v in raw):
            continue
        rows.append((offset, {headers[i]: raw[i] for i in range(min(len(headers), len(raw))) if headers[i]}))
    return rows


def cell_text(value) -> str | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


def _is_active_flag(value) -> bool:
    text = cell_text(value)
    return text is None or text.upper() in ("Y", "YES", "TRUE", "1", "사용")


def normalize_customer_code(value) -> str | None:
    code = cell_text(value)
    if code:
        m = _SHORT_CODE_RE.match(code)
        if m:
            return f"C{int(m.group(1)):04d}"
    return code


# ---------------------------------------------------------------------------
# Uploads
# ---------------------------------------------------------------------------

def _upsert_customer(business_id: int, row: dict) -> Customer:
    payload = {
        "customerCode": normalize_customer_code(row.get("거래처코드")),
        "name": cell_text(row.get("거래처명")),
        "businessNumber": cell_text(row.get("사업자번호")),
        "address": cell_text(row.get("주소")),
        "businessType": cell_text(row.get("업태")),
        "businessItem": cell_text(row.get("종목")),
        "representative": cell_text(row.get("대표자")),
        "phone": cell_text(row.get("전화번호")),
        "fax": cell_text(row.get("팩스번호")),
        "email": cell_text(row.get("이메일")),
        "managerContact": next((cell_text(row.get(h)) for h in MANAGER_CONTACT_HEADERS if cell_text(row.get(h))), None),
        "customerType": cell_text(row.get("거래처구분")),
    }
    active = _is_active_flag(row.get("활성여부"))

    existing = None
    if payload["customerCode"]:
        existing = db.session.query(Customer).filter(
            Customer.business_id == business_id,
            Customer.customer_code == payload["customerCode"],
        ).first()

    if existing is not None:
        if not payload["name"]:
            raise ValidationError(errors=["name is required"])
        was_active = existing.is_active
        existing.is_active = True
        try:
            customer = customer_service.update_customer(
                business_id=business_id, customer_id=existing.id, payload=payload, commit=False,
            )
        except (ValidationError, ConflictError):
            existing.is_active = was_active
            raise
    else:
        customer = customer_service.create_customer(business_id=business_id, payload=payload, commit=False)
    customer.is_active = active
    return customer


def upload_customers(business_id: int, rows: list[tuple[int, dict]]) -> UploadResult:
    result = UploadResult()
    for row_number, row in rows:
        try:
            _upsert_customer(business_id, row)
            result.success += 1
        except (ValidationError, ConflictError, ApiError) as e:
            result.fail(f"{row_number}행 ({cell_text(row.get('거래처코드')) or cell_text(row.get('거래처명')) or '-'})", e)
    return result


def upload_products(business_id: int, rows: list[tuple[int, dict]]) -> UploadResult:
    result = UploadResult()
    for row_number, row in rows:
        payload = {
            "productCode": cell_text(row.get("품목코드")),
            "name": cell_text(row.get("품목명")),
            "spec": cell_text(row.get("규격")),
            "unit": cell_text(row.get("단위")),
            "buyPrice": row.get("매입단가") if row.get("매입단가") not in (None, "") else 0,
            "sellPrice": row.get("매출단가") if row.get("매출단가") not in (None, "") else 0,
            "category": cell_text(row.get("분류")),
            "taxType": cell_text(row.get("세금구분")) or "tax_separate",
            "memo": cell_text(row.get("비고")),
        }
        try:
            product = product_service.create_product(business_id=business_id, payload=payload, commit=False)
            product.is_active = _is_active_flag(row.get("활성여부"))
            result.success += 1
        except (ValidationError, ConflictError, ApiError) as e:
            result.fail(f"{row_number}행 ({payload['productCode'] or '-'})", e)
    return result


def _resolve_customer(business_id: int, row: dict, name_header: str) -> Customer | None:
    """Customer by 거래처코드, then exact name, then partial name/business number."""
    code = normalize_customer_code(row.get("거래처코드"))
    name = cell_text(row.get(name_header))
    base = db.session.query(Customer).filter(
        Customer.business_id == business_id,
        Customer.is_active.is_(True),
    )
    if code:
        customer = base.filter(Customer.customer_code == code).first()
        if customer:
            return customer
    if not name:
        if code:
            raise NotFoundError(f"거래처 코드 '{code}'를 찾을 수 없습니다.")
        return None
    customer = base.filter(Customer.name == name).order_by(Customer.id.asc()).first()
    if customer is None:
        customer = customer_service.find_by_name_or_number(business_id, name)
    if customer is None:
        raise NotFoundError(f"거래처 '{name}'를 찾을 수 없습니다.")
    return customer


def _group_rows(rows: list[tuple[int, dict]], date_header: str, name_header: str) -> "OrderedDict[tuple, list]":
    groups: OrderedDict[tuple, list] = OrderedDict()
    for row_number, row in rows:
        key = (
            cell_text(row.get(date_header)) or "",
            normalize_customer_code(row.get("거래처코드")) or cell_text(row.get(name_header)) or "",
        )
        groups.setdefault(key, []).append((row_number, row))
    return groups


def _line_payload(row: dict) -> dict:
    line = {
        "productCode": cell_text(row.get("품목코드")),
        "productName": cell_text(row.get("품목명")),
        "spec": cell_text(row.get("규격")),
        "unit": cell_text(row.get("단위")),
        "quantity": row.get("수량") if row.get("수량") not in (None, "") else 1,
        "unitPrice": row.get("단가") if row.get("단가") not in (None, "") else 0,
        "remark": cell_text(row.get("비고")),
    }
    supply = row.get("공급가액", row.get("금액"))
    if supply not in (None, ""):
        line["amount"] = supply
    if row.get("세액") not in (None, ""):
        line["taxAmount"] = row.get("세액")
    return line


def _upload_documents(business_id: int, rows, *, date_header: str, date_key: str, create) -> UploadResult:
    result = UploadResult()
    for (day, customer_key), group in _group_rows(rows, date_header, "거래처명").items():
        first_row_number, first_row = group[0]
        label = f"{first_row_number}행 ({day or '-'} / {customer_key or '-'})"
        try:
            if not day:
                raise ValidationError(errors=[f"{date_header} is required"])
            customer = _resolve_customer(business_id, first_row, "거래처명")
            lines = [_line_payload(row) for _, row in group]
            items = parse_line_items(lines)
            payload = {
                date_key: day,
                "customerId": customer.id if customer else None,
                "totalAmount": sum((item.amount for item in items), 0),
                "vatAmount": sum((item.tax_amount for item in items), 0),
                "memo": cell_text(first_row.get("비고")),
                "items": lines,
            }
            create(business_id=business_id, payload=payload, commit=False)
            result.success += 1
        except (ValidationError, ConflictError, ApiError, NotFoundError) as e:
            result.fail(label, e)
    return result


def upload_sales(business_id: int, rows) -> UploadResult:
    return _upload_documents(
        business_id, rows, date_header="매출일자", date_key="transactionDate", create=sales_service.create_sales,
    )


def upload_purchases(business_id: int, rows) -> UploadResult:
    return _upload_documents(
        business_id, rows, date_header="매입일자", date_key="purchaseDate", create=purchase_service.create_purchase,
    )


def _upload_payments(business_id: int, rows, *, payment_type: str, date_header: str, amount_header: str) -> UploadResult:
    result = UploadResult()
    for row_number, row in rows:
        try:
            customer = _resolve_customer(business_id, row, "거래처")
            if customer is None:
                raise ValidationError(errors=["거래처 is required"])
            payment_service.create_payment(business_id=business_id, payload={
                "customerId": customer.id,
                "paymentDate": cell_text(row.get(date_header)),
                "type": payment_type,
                "amount": row.get(amount_header),
                "memo": cell_text(row.get("메모")),
            }, commit=False)
            result.success += 1
        except (ValidationError, ConflictError, ApiError, NotFoundError) as e:
            result.fail(f"{row_number}행", e)
    return result


def upload(business_id: int, upload_type: str, data: bytes) -> UploadResult:
    """
    Import one spreadsheet. Rows that fail are reported; the rest are
    committed together.
    """
    if upload_type not in UPLOAD_TYPES:
        raise NotFoundError("지원하지 않는 업로드 유형입니다.")
    rows = read_rows(data)

    try:
        if upload_type == "customers":
            result = upload_customers(business_id, rows)
        elif upload_type == "products":
            result = upload_products(business_id, rows)
        elif upload_type == "sales":
            result = upload_sales(business_id, rows)
        elif upload_type == "purchases":
            result = upload_purchases(business_id, rows)
        elif upload_type == "receivables":
            result = _upload_payments(business_id, rows, payment_type=PAYMENT_TYPE_RECEIPT,
                                      date_header="수금일자", amount_header="수금금액")
        else:
            result = _upload_payments(business_id, rows, payment_type=PAYMENT_TYPE_PAYMENT,
                                      date_header="지급일자", amount_header="지급금액")
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    current_app.logger.info(
        "Spreadsheet upload %s for business %s: %s ok, %s failed",
        upload_type, business_id, result.success, result.failed,
    )
    return result


# ---------------------------------------------------------------------------
# Export
# ---------------------------------------------------------------------------

def customer_rows(business_id: int) -> list[list]:
    customers = db.session.query(Customer).filter(Customer.business_id == business_id).order_by(
        Customer.customer_code.asc()
    ).all()
    return [[
        c.customer_code, c.name, c.business_number, c.address, c.business_type, c.business_item,
        c.representative, c.phone, c.fax, c.email, c.manager_contact, c.customer_type,
        "Y" if c.is_active else "N",
    ] for c in customers]


def product_rows(business_id: int) -> list[list]:
    products = db.session.query(Product).filter(Product.business_id == business_id).order_by(
        Product.product_code.asc()
    ).all()
    return [[
        p.product_code, p.name, p.spec, p.unit, to_number(p.buy_price), to_number(p.sell_price),
        p.category, p.tax_type, p.memo, "Y" if p.is_active else "N",
    ] for p in products]


def sales_rows(business_id: int) -> list[list]:
    """One row per line so the sheet can be uploaded again."""
    rows = []
    documents = db.session.query(Sales).filter(Sales.business_id == business_id).order_by(
        Sales.transaction_date.asc(), Sales.id.asc()
    ).all()
    for sale in documents:
        customer = sale.customer.name if sale.customer else ""
        if not sale.items:
            rows.append([to_iso_date(sale.transaction_date), customer, sale.description or "", None, None, None,
                         None, to_number(sale.total_amount), to_number(sale.vat_amount), sale.memo])
        for item in sale.items:
            rows.append([
                to_iso_date(sale.transaction_date), customer, item.item_name, item.specification,
                to_number(item.quantity), item.unit, to_number(item.unit_price),
                to_number(item.supply_amount), to_number(item.tax_amount), item.remark,
            ])
    return rows


def purchase_rows(business_id: int) -> list[list]:
    rows = []
    documents = db.session.query(Purchase).filter(Purchase.business_id == business_id).order_by(
        Purchase.purchase_date.asc(), Purchase.id.asc()
    ).all()
    for purchase in documents:
        customer = purchase.customer.name if purchase.customer else ""
        if not purchase.items:
            rows.append([to_iso_date(purchase.purchase_date), customer, "", None, None, None,
                         None, to_number(purchase.total_amount), to_number(purchase.vat_amount), purchase.memo])
        for item in purchase.items:
            rows.append([
                to_iso_date(purchase.purchase_date), customer, item.product_name, item.spec,
                to_number(item.quantity), item.unit, to_number(item.unit_price),
                to_number(item.amount), None, purchase.memo,
            ])
    return rows


EXPORTERS = {
    "customers": ("거래처", CUSTOMER_COLUMNS, customer_rows),
    "products": ("품목", PRODUCT_COLUMNS, product_rows),
    "sales": ("매출", SALES_COLUMNS, sales_rows),
    "purchases": ("매입", PURCHASE_COLUMNS, purchase_rows),
}


def export_workbook(business_id: int, export_type: str) -> tuple[bytes, str]:
    if export_type not in EXPORTERS:
        raise NotFoundError("지원하지 않는 내보내기 유형입니다.")
    title, columns, rows_for = EXPORTERS[export_type]
    return build_workbook([(title, columns, rows_for(business_id))]), f"{export_type}_{business_id}.xlsx"
