# Overview: Chatbot that answers ERP questions and registers transactions from free text.

"""
Chatbot Service

A message is either a question ("이번 달 매출 얼마야?") or a registration
("홍길동에게 노트북 2대 100만원에 판매했어"):

1. is_query_intent() decides by keyword. Questions gather this month's
   figures into a context block and the LLM phrases the answer.
2. Registrations go through llm.extract_transactions(). Every draft is
   resolved on its own: customer by name/business number, each line's
   product by name/code, VAT treatment by infer_price_type(), then stored as
   Sales, Purchase or Payment. One failing draft does not stop the rest.
3. When extraction yields nothing usable the message is answered as a
   question instead.

MULTI-TENANT: every lookup and write is scoped to the business the route
resolved for the caller.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app

from ..error_codes import ApiError
from ..errors import NotFoundError
from ..extensions import db
from ..models import Customer, Product, Purchase, Sales
from ..models.products import TAX_FREE, TAX_INCLUSIVE, TAX_SEPARATE
from ..money import VAT_RATE, ZERO, round_won, to_decimal, to_number
from . import customer_service, payment_service, product_service, purchase_service, sales_service
from .excel_service import describe_error
from .llm_service import LLMError, get_llm_client, has_api_key
from erp.time_utils import month_bounds, to_iso_date, to_utc_z, today, utcnow


PRICE_TAX_EXEMPT = "tax_exempt"
PRICE_VAT_INCLUDED = "vat_included"
PRICE_VAT_SEPARATE = "vat_separate"

TAXABLE = "과세"
EXEMPT = "면세"
ZERO_RATED = "영세"
NO_VAT_TYPES = {EXEMPT, ZERO_RATED}

QUERY_KEYWORDS = ("얼마", "조회", "확인", "알려", "보여", "어때", "어떻게", "통계", "현황", "?")
REGISTER_KEYWORDS = ("등록", "판매", "구매")

SALES_KEYWORDS = ("매출", "판매", "sales")
PURCHASE_KEYWORDS = ("매입", "구매", "purchase")
CUSTOMER_KEYWORDS = ("고객", "거래처", "customer")
PRODUCT_KEYWORDS = ("재고", "제품", "product", "inventory")
OVERVIEW_KEYWORDS = ("전체", "통계", "현황", "dashboard")

FEATURES = [
    "매출/매입 통계 조회",
    "고객 정보 조회",
    "제품 재고 관리",
    "대시보드 통계",
    "자연어 질의응답",
    "매출 자동 등록",
    "매입 자동 등록",
    "수금/입금 자동 등록",
]

ANSWER_PROMPT = """당신은 ERP 시스템의 AI 어시스턴트입니다. 사용자의 질문에 친절하고 정확하게 답변해주세요.

사용자 질문: {message}

ERP 시스템 데이터:{context}

답변 규칙:
- 한국어로 답변하고 숫자는 천 단위로 콤마를 찍어주세요.
- 날짜 범위는 데이터에 적힌 그대로 사용하세요.
- 데이터가 없으면 없다고 분명히 알려주세요.
- 매출/매입 질문에는 날짜 범위, 총액(부가세 포함), 공급가액, 세액, 건수를 차례로 적어주세요.
"""

API_KEY_MISSING_MESSAGE = "Gemini API 키가 설정되지 않았습니다. GEMINI_API_KEY를 설정해주세요."
ALL_FAILED_MESSAGE = "모든 거래 등록에 실패했습니다."


def _won(value) -> str:
    return f"{to_number(to_decimal(value)):,}원"


# ---------------------------------------------------------------------------
# VAT inference
# ---------------------------------------------------------------------------

def infer_price_type(sell_price, tax_type: str | None) -> str:
    """
    Decide how a product's price carries VAT.

    Stored product tax types are authoritative. For plain taxable items the
    price shape decides: a multiple of 10 is a supply price; a price whose
    1.1 divisor is a round multiple of 10 already includes VAT.
    """
    if tax_type == TAX_FREE:
        return PRICE_TAX_EXEMPT
    if tax_type == TAX_INCLUSIVE:
        return PRICE_VAT_INCLUDED
    if tax_type == TAX_SEPARATE:
        return PRICE_VAT_SEPARATE
    if tax_type in (EXEMPT, PRICE_TAX_EXEMPT, ZERO_RATED, "zero_rated"):
        return PRICE_TAX_EXEMPT
    if tax_type in (TAXABLE, "taxable") or not tax_type:
        price = to_decimal(sell_price)
        if price % 10 == 0:
            return PRICE_VAT_SEPARATE
        without_vat = price / (1 + VAT_RATE)
        rounded = round_won(without_vat)
        if abs(without_vat - rounded) < 1 and rounded % 10 == 0:
            return PRICE_VAT_INCLUDED
        return PRICE_VAT_SEPARATE
    return PRICE_VAT_SEPARATE


@dataclass
class DraftLine:
    product_name: str
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal
    tax_type: str = TAXABLE
    product_id: int | None = None

    @property
    def tax_amount(self) -> Decimal:
        if self.tax_type in NO_VAT_TYPES:
            return ZERO
        return round_won(self.amount * VAT_RATE)

    def to_payload(self) -> dict:
        return {
            "productId": self.product_id,
            "productName": self.product_name,
            "quantity": self.quantity,
            "unitPrice": self.unit_price,
            "amount": self.amount,
            "taxType": self.tax_type,
            "taxAmount": self.tax_amount,
        }


@dataclass
class Draft:
    transaction_type: str | None
    customer_name: str | None
    transaction_date: str
    total_amount: Decimal
    vat_amount: Decimal
    tax_type: str
    description: str | None
    payment_method: str | None
    lines: list[DraftLine] = field(default_factory=list)

    @classmethod
    def from_llm(cls, raw: dict) -> "Draft":
        lines = []
        for item in raw.get("items") or []:
            if not isinstance(item, dict) or not item.get("productName"):
                continue
            quantity = to_decimal(item.get("quantity") or 1)
            unit_price = to_decimal(item.get("unitPrice"))
            amount = to_decimal(item.get("amount")) if item.get("amount") not in (None, "") else quantity * unit_price
            lines.append(DraftLine(
                product_name=str(item["productName"]).strip(),
                quantity=quantity,
                unit_price=unit_price,
                amount=amount,
                tax_type=item.get("taxType") or raw.get("taxType") or TAXABLE,
            ))
        return cls(
            transaction_type=raw.get("transactionType") or None,
            customer_name=(str(raw["customerName"]).strip() or None) if raw.get("customerName") else None,
            transaction_date=raw.get("transactionDate") or to_iso_date(today()),
            total_amount=to_decimal(raw.get("totalAmount")),
            vat_amount=to_decimal(raw.get("vatAmount")),
            tax_type=raw.get("taxType") or TAXABLE,
            description=raw.get("description"),
            payment_method=raw.get("paymentMethod"),
            lines=lines,
        )

    def recompute_totals(self) -> None:
        self.total_amount = sum((line.amount for line in self.lines), ZERO)
        self.vat_amount = sum((line.tax_amount for line in self.lines), ZERO)


def apply_product(business_id: int, line: DraftLine) -> Product | None:
    """Bind a line to a catalogue product and adjust amounts for its VAT treatment."""
    product = product_service.find_by_name_or_code(business_id, line.product_name)
    if product is None:
        return None
    line.product_id = product.id
    tax_type = product.tax_type or line.tax_type
    if not product.sell_price:
        return product

    price_type = infer_price_type(product.sell_price, tax_type)
    if price_type == PRICE_TAX_EXEMPT:
        line.tax_type = EXEMPT
    elif price_type == PRICE_VAT_INCLUDED:
        line.tax_type = TAXABLE
        line.amount = round_won(line.amount / (1 + VAT_RATE))
        line.unit_price = round_won(line.amount / line.quantity)
    else:
        line.tax_type = TAXABLE
    return product


# ---------------------------------------------------------------------------
# Query context
# ---------------------------------------------------------------------------

def is_query_intent(message: str) -> bool:
    text = message.lower()
    if any(keyword in text for keyword in QUERY_KEYWORDS):
        return True
    return "이번" in text and not any(keyword in text for keyword in REGISTER_KEYWORDS)


def _document_stats(model, date_column, business_id: int) -> dict:
    start, end = month_bounds(today())
    count, total, vat = db.session.query(
        db.func.count(model.id),
        db.func.coalesce(db.func.sum(model.total_amount), 0),
        db.func.coalesce(db.func.sum(model.vat_amount), 0),
    ).filter(
        model.business_id == business_id,
        date_column >= start,
        date_column <= end,
    ).one()
    total = to_decimal(total)
    vat = to_decimal(vat)
    return {
        "startDate": to_iso_date(start),
        "endDate": to_iso_date(end),
        "count": count,
        "totalAmount": to_number(total),
        "totalVat": to_number(vat),
        "grandTotal": to_number(total + vat),
    }


def _stats_block(title: str, stats: dict) -> str:
    return (
        f"\n\n[{title} 데이터 ({stats['startDate']} ~ {stats['endDate']})]"
        f"\n건수: {stats['count']}건"
        f"\n공급가액: {_won(stats['totalAmount'])}"
        f"\n부가세: {_won(stats['totalVat'])}"
        f"\n총 {title}액(부가세 포함): {_won(stats['grandTotal'])}"
    )


def gather_context(business_id: int, message: str) -> tuple[str, dict]:
    """Figures relevant to the question as (prompt text, response data)."""
    text = message.lower()
    context = ""
    data: dict = {}

    if any(k in text for k in SALES_KEYWORDS):
        data["salesStats"] = _document_stats(Sales, Sales.transaction_date, business_id)
        context += _stats_block("매출", data["salesStats"])

    if any(k in text for k in PURCHASE_KEYWORDS):
        data["purchaseStats"] = _document_stats(Purchase, Purchase.purchase_date, business_id)
        context += _stats_block("매입", data["purchaseStats"])

    customer_count = None
    if any(k in text for k in CUSTOMER_KEYWORDS):
        customer_count = customer_service.list_customers(business_id=business_id).count()
        data["customerInfo"] = {"count": customer_count}
        context += f"\n\n[고객 정보]\n총 고객 수: {customer_count}명"

    if any(k in text for k in PRODUCT_KEYWORDS):
        products = product_service.list_products(business_id=business_id).limit(10).all()
        data["productInventory"] = {
            "count": len(products),
            "products": [{
                "id": p.id,
                "name": p.name,
                "productCode": p.product_code,
                "currentStock": p.current_stock or 0,
                "buyPrice": to_number(p.buy_price),
                "sellPrice": to_number(p.sell_price),
                "taxType": p.tax_type,
            } for p in products],
        }
        context += f"\n\n[제품 재고]\n총 제품 수: {len(products)}개"
        if products:
            context += "\n주요 제품:\n" + "".join(
                f"- {p.name}: 재고 {p.current_stock or 0}개, 판매가 {_won(p.sell_price)}\n" for p in products[:5]
            )

    if any(k in text for k in OVERVIEW_KEYWORDS):
        sales = data.get("salesStats") or _document_stats(Sales, Sales.transaction_date, business_id)
        purchases = data.get("purchaseStats") or _document_stats(Purchase, Purchase.purchase_date, business_id)
        if customer_count is None:
            customer_count = db.session.query(Customer).filter(
                Customer.business_id == business_id, Customer.is_active.is_(True)
            ).count()
        product_count = db.session.query(Product).filter(
            Product.business_id == business_id, Product.is_active.is_(True)
        ).count()
        profit = to_decimal(sales["totalAmount"]) - to_decimal(purchases["totalAmount"])
        data["dashboardStats"] = {
            "thisMonthSales": sales,
            "thisMonthPurchase": purchases,
            "totalCustomers": customer_count,
            "totalProducts": product_count,
            "profit": to_number(profit),
        }
        context += (
            "\n\n[이번 달 전체 현황]"
            f"\n총 매출액(부가세 포함): {_won(sales['grandTotal'])}"
            f"\n총 매입액(부가세 포함): {_won(purchases['grandTotal'])}"
            f"\n수익(공급가액 기준): {_won(profit)}"
            f"\n고객 수: {customer_count}명"
            f"\n제품 수: {product_count}개"
        )

    return context, data


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------

def _lines_summary(lines: list[DraftLine]) -> str:
    if not lines:
        return ""
    rows = []
    for line in lines:
        suffix = f" ({line.tax_type})" if line.tax_type != TAXABLE else ""
        rows.append(
            f"  - {line.product_name}: {to_number(line.quantity)}개 x {_won(line.unit_price)} = {_won(line.amount)}{suffix}"
        )
    return "\n\n거래 품목:\n" + "\n".join(rows)


def _document_message(kind: str, party_label: str, date_label: str, draft: Draft, found: bool, record_id: int) -> str:
    party = draft.customer_name if found else f"{draft.customer_name or '미지정'} (미등록)"
    vat_note = f" ({draft.tax_type})" if draft.vat_amount == 0 else ""
    return (
        f"{kind}이 등록되었습니다.\n\n"
        f"등록 정보:\n"
        f"- {party_label}: {party}\n"
        f"- {date_label}: {draft.transaction_date}\n"
        f"- 과세구분: {draft.tax_type}\n"
        f"- 공급가액: {_won(draft.total_amount)}\n"
        f"- 부가세: {_won(draft.vat_amount)}{vat_note}\n"
        f"- 총 금액: {_won(draft.total_amount + draft.vat_amount)}"
        f"{_lines_summary(draft.lines)}\n\n"
        f"{kind} ID: #{record_id}"
    )


def register_draft(business_id: int, draft: Draft) -> tuple[dict, str]:
    """Persist one draft. Returns (record as dict, confirmation text)."""
    customer = customer_service.find_by_name_or_number(business_id, draft.customer_name) if draft.customer_name else None

    if draft.lines:
        for line in draft.lines:
            apply_product(business_id, line)
        draft.recompute_totals()
    items = [line.to_payload() for line in draft.lines]

    if draft.transaction_type == "매출":
        sales = sales_service.create_sales(business_id=business_id, payload={
            "customerId": customer.id if customer else None,
            "transactionDate": draft.transaction_date,
            "totalAmount": draft.total_amount,
            "vatAmount": draft.vat_amount,
            "description": draft.description,
            "items": items,
        })
        return sales.to_dict(), _document_message("매출", "고객", "거래일", draft, customer is not None, sales.id)

    if draft.transaction_type == "매입":
        purchase = purchase_service.create_purchase(business_id=business_id, payload={
            "customerId": customer.id if customer else None,
            "purchaseDate": draft.transaction_date,
            "totalAmount": draft.total_amount,
            "vatAmount": draft.vat_amount,
            "memo": draft.description,
            "items": items,
        })
        return purchase.to_dict(), _document_message("매입", "공급처", "매입일", draft, customer is not None, purchase.id)

    if draft.transaction_type in ("수금", "입금"):
        if customer is None:
            raise NotFoundError(
                f'"{draft.customer_name}" 고객을 찾을 수 없습니다. 먼저 고객을 등록해주세요.'
            )
        payment = payment_service.create_payment(business_id=business_id, payload={
            "customerId": customer.id,
            "paymentDate": draft.transaction_date,
            "type": draft.transaction_type,
            "amount": draft.total_amount,
            "paymentMethod": draft.payment_method,
            "description": draft.description,
        })
        method = f"\n- 방법: {draft.payment_method}" if draft.payment_method else ""
        message = (
            f"{draft.transaction_type}이 등록되었습니다.\n\n"
            f"등록 정보:\n"
            f"- 고객: {customer.name}\n"
            f"- {draft.transaction_type}일: {draft.transaction_date}\n"
            f"- 금액: {_won(draft.total_amount)}{method}\n\n"
            f"{draft.transaction_type} ID: #{payment.id}"
        )
        return payment.to_dict(), message

    raise ValueError(f"지원하지 않는 거래 유형입니다: {draft.transaction_type}")


def _combine_messages(messages: list[str], failed: int) -> str:
    if len(messages) == 1:
        return messages[0]
    divider = "\n----------------------\n\n"
    parts = [f"총 {len(messages)}건의 거래가 등록되었습니다.\n"]
    for index, message in enumerate(messages, start=1):
        body = "\n".join(message.split("\n")[2:])
        parts.append(f"[{index}번째 거래]\n{body}\n")
    text = divider.join(parts)
    if failed:
        text += f"\n\n{failed}건의 거래 등록 실패"
    return text


def register_transactions(business_id: int, raw_drafts: list[dict]) -> dict:
    results = []
    messages = []
    errors = []
    for index, raw in enumerate(raw_drafts, start=1):
        if not raw.get("transactionType"):
            continue
        try:
            record, message = register_draft(business_id, Draft.from_llm(raw))
        except (LookupError, ValueError, ArithmeticError, ApiError) as e:
            db.session.rollback()
            current_app.logger.warning("Chatbot draft %s rejected: %s", index, e)
            errors.append({"index": index, "transactionInfo": raw, "error": describe_error(e)})
            continue
        results.append(record)
        messages.append(message)

    if not results:
        raise ApiError("ERR_SRV_001", ALL_FAILED_MESSAGE, errors=errors)

    return {
        "message": _combine_messages(messages, len(errors)),
        "data": {
            "totalCount": len(raw_drafts),
            "successCount": len(results),
            "failCount": len(errors),
            "results": results,
            "errors": errors,
        },
        "timestamp": to_utc_z(utcnow()),
    }


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------

def answer_question(llm, business_id: int, message: str) -> dict:
    context, data = gather_context(business_id, message)
    reply = llm.answer(ANSWER_PROMPT.format(message=message, context=context))
    return {"message": reply, "data": data, "timestamp": to_utc_z(utcnow())}


def handle_message(*, business_id: int, message: str) -> dict:
    """
    Raises:
        ApiError ERR_SRV_001: no API key (needsApiKey) or every draft failed
        ApiError ERR_EXT_004: the LLM call failed
    """
    llm = get_llm_client()
    if llm is None:
        raise ApiError("ERR_SRV_001", API_KEY_MISSING_MESSAGE, needsApiKey=True)

    try:
        if is_query_intent(message):
            return answer_question(llm, business_id, message)

        drafts = llm.extract_transactions(message, to_iso_date(today()))
        if not drafts:
            return answer_question(llm, business_id, message)
    except LLMError as e:
        current_app.logger.error("Chatbot LLM call failed: %s", e)
        raise ApiError("ERR_EXT_004")

    return register_transactions(business_id, drafts)


def status() -> dict:
    return {
        "status": "ok",
        "hasApiKey": has_api_key() or current_app.extensions.get("llm_client") is not None,
        "model": current_app.config.get("GEMINI_MODEL"),
        "features": FEATURES,
    }
