# Overview: Pytest coverage for the accounting chatbot with a stub LLM client.

"""
Chatbot Tests

A StubLLM is registered under app.extensions["llm_client"]; it returns
canned drafts from extract_transactions() and records answer() prompts.
"""

from decimal import Decimal
from types import SimpleNamespace

import httpx
import pytest

from erp.models import Payment, Purchase, Sales
from erp.services import chatbot_service
from erp.services.chatbot_service import Draft, DraftLine, infer_price_type
from erp.services.llm_service import GeminiClient, LLMError, drafts_from_reply, parse_json_reply
from erp.time_utils import today


class StubLLM:

    def __init__(self, drafts=None, reply="답변입니다.", error=None):
        self.drafts = drafts
        self.reply = reply
        self.error = error
        self.prompts = []
        self.extracted = []

    def extract_transactions(self, message, today):
        if self.error:
            raise self.error
        self.extracted.append((message, today))
        return self.drafts

    def answer(self, prompt):
        if self.error:
            raise self.error
        self.prompts.append(prompt)
        return self.reply


@pytest.fixture
def install_llm(app, db_session):
    def install(llm):
        app.extensions["llm_client"] = llm
        return llm
    return install


def chat(client, headers, message, **extra):
    return client.post("/api/chatbot/message", json={"message": message, **extra}, headers=headers)


# =============================================================================
# Pure helpers
# =============================================================================

class TestInferPriceType:

    @pytest.mark.parametrize("price,tax_type,expected", [
        (25000, "tax_separate", "vat_separate"),
        (27500, "tax_inclusive", "vat_included"),
        (3000, "tax_free", "tax_exempt"),
        (3000, "면세", "tax_exempt"),
        (3000, "영세", "tax_exempt"),
        (25000, "과세", "vat_separate"),   # round supply price
        (1001, "과세", "vat_included"),    # 910 + 91 VAT
        (1001, None, "vat_included"),
        (1234, "과세", "vat_separate"),
    ])
    def test_cases(self, price, tax_type, expected):
        assert infer_price_type(price, tax_type) == expected


class TestReplyParsing:

    def test_fenced_json(self):
        assert parse_json_reply('```json\n{"a": 1}\n```') == {"a": 1}
        assert parse_json_reply("죄송합니다") is None

    def test_shapes(self):
        single = {"transactionType": "매출", "customerName": "가"}
        assert drafts_from_reply({"isMultiple": True, "transactions": [single, "junk"]}) == [single]
        assert drafts_from_reply({"isMultiple": False, "transaction": single}) == [single]
        assert drafts_from_reply(single) == [single]
        assert drafts_from_reply({"hello": "world"}) is None
        assert drafts_from_reply(["not", "a", "dict"]) is None

    def test_draft_from_llm(self):
        draft = Draft.from_llm({
            "transactionType": "매입",
            "customerName": " 라마바물산 ",
            "taxType": "면세",
            "items": [
                {"productName": "쌀", "quantity": 3, "unitPrice": 40000},
                {"quantity": 1},
            ],
        })
        assert draft.customer_name == "라마바물산"
        assert draft.transaction_date == today().isoformat()
        assert len(draft.lines) == 1
        assert draft.lines[0].amount == Decimal("120000")
        assert draft.lines[0].tax_type == "면세"
        assert draft.lines[0].tax_amount == 0

    def test_taxable_line_rounds_half_up(self):
        line = DraftLine(product_name="x", quantity=Decimal("1"), unit_price=Decimal("15"), amount=Decimal("15"))
        assert line.tax_amount == Decimal("2")

    @pytest.mark.parametrize("message,expected", [
        ("이번 달 매출 얼마야?", True),
        ("매출 현황 알려줘", True),
        ("이번 주 실적", True),
        ("이번에 노트북 판매했어", False),
        ("가나다유통에 용지 2박스 팔았어", False),
    ])
    def test_query_intent(self, message, expected):
        assert chatbot_service.is_query_intent(message) is expected


class TestGeminiClient:

    @pytest.mark.parametrize("error", [
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
    ])
    def test_transport_failure_is_an_llm_error(self, error):
        def generate_content(**kwargs):
            raise error

        client = GeminiClient.__new__(GeminiClient)
        client.model = "gemini-2.5-flash"
        client._client = SimpleNamespace(models=SimpleNamespace(generate_content=generate_content))

        with pytest.raises(LLMError):
            client.answer("이번 달 매출 알려줘")


# =============================================================================
# Registration
# =============================================================================

class TestRegistration:

    def test_registers_sale_with_catalogue_product(
        self, client, db_session, business_a, customer_a, product_a, headers_a, install_llm
    ):
        llm = install_llm(StubLLM(drafts=[{
            "transactionType": "매출",
            "customerName": "가나다유통",
            "transactionDate": "2025-03-10",
            "items": [{"productName": "A4 복사용지", "quantity": 2, "unitPrice": 25000}],
        }]))

        resp = chat(client, headers_a, "가나다유통에 A4 복사용지 2박스 팔았어")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["message"].startswith("매출이 등록되었습니다.")
        assert body["timestamp"].endswith("Z")
        assert body["data"]["successCount"] == 1

        sale = db_session.query(Sales).one()
        assert sale.customer_id == customer_a.id
        assert sale.total_amount == Decimal("50000")
        assert sale.vat_amount == Decimal("5000")
        assert sale.items[0].product_id == product_a.id
        assert llm.extracted[0][1] == today().isoformat()

    def test_vat_included_product_price(self, client, db_session, business_a, customer_a, product_a, headers_a, install_llm):
        product_a.tax_type = "tax_inclusive"
        product_a.sell_price = Decimal("27500")
        db_session.commit()
        install_llm(StubLLM(drafts=[{
            "transactionType": "매출",
            "customerName": "가나다유통",
            "items": [{"productName": "A4", "quantity": 2, "unitPrice": 27500}],
        }]))

        chat(client, headers_a, "A4 2개 팔았어")
        sale = db_session.query(Sales).one()
        assert sale.total_amount == Decimal("50000")
        assert sale.vat_amount == Decimal("5000")
        assert sale.items[0].unit_price == Decimal("25000")

    def test_unknown_customer_purchase(self, client, db_session, business_a, headers_a, install_llm):
        install_llm(StubLLM(drafts=[{
            "transactionType": "매입",
            "customerName": "처음보는상사",
            "totalAmount": 30000,
            "vatAmount": 3000,
            "description": "소모품",
        }]))

        body = chat(client, headers_a, "처음보는상사에서 소모품 샀어").get_json()
        assert "처음보는상사 (미등록)" in body["message"]

        purchase = db_session.query(Purchase).one()
        assert purchase.customer_id is None
        assert purchase.memo == "소모품"
        assert purchase.total_amount == Decimal("30000")

    def test_receipt(self, client, db_session, business_a, customer_a, headers_a, install_llm):
        install_llm(StubLLM(drafts=[{
            "transactionType": "수금",
            "customerName": "가나다",
            "totalAmount": 110000,
            "paymentMethod": "계좌이체",
        }]))

        body = chat(client, headers_a, "가나다에서 11만원 받았어").get_json()
        assert body["message"].startswith("수금이 등록되었습니다.")
        assert "- 방법: 계좌이체" in body["message"]

        payment = db_session.query(Payment).one()
        assert payment.payment_type == "수금"
        assert payment.amount == Decimal("110000")

    def test_partial_failure(self, client, db_session, business_a, customer_a, headers_a, install_llm):
        install_llm(StubLLM(drafts=[
            {"transactionType": "매출", "customerName": "가나다유통", "totalAmount": 10000, "vatAmount": 1000},
            {"transactionType": "입금", "customerName": "없는거래처", "totalAmount": 5000},
            {"transactionType": None, "customerName": "무시됨"},
        ]))

        body = chat(client, headers_a, "두 건 처리해줘 가나다유통 판매, 없는거래처 지급").get_json()
        data = body["data"]
        assert data["totalCount"] == 3
        assert data["successCount"] == 1
        assert data["failCount"] == 1
        assert data["errors"][0]["index"] == 2
        assert "없는거래처" in data["errors"][0]["error"]
        assert db_session.query(Sales).count() == 1
        assert db_session.query(Payment).count() == 0

    def test_multiple_successes_are_combined(self, client, db_session, business_a, customer_a, headers_a, install_llm):
        install_llm(StubLLM(drafts=[
            {"transactionType": "매출", "customerName": "가나다유통", "totalAmount": 10000, "vatAmount": 1000},
            {"transactionType": "매입", "customerName": "가나다유통", "totalAmount": 20000, "vatAmount": 2000},
        ]))

        body = chat(client, headers_a, "가나다유통 판매 1건, 구매 1건").get_json()
        assert body["message"].startswith("총 2건의 거래가 등록되었습니다.")
        assert "[2번째 거래]" in body["message"]

    def test_all_failed(self, client, db_session, business_a, headers_a, install_llm):
        install_llm(StubLLM(drafts=[{"transactionType": "수금", "customerName": "없음", "totalAmount": 1000}]))

        resp = chat(client, headers_a, "없음에서 천원 받았어")
        assert resp.status_code == 500
        body = resp.get_json()
        assert body["message"] == chatbot_service.ALL_FAILED_MESSAGE
        assert len(body["errors"]) == 1


# =============================================================================
# Questions and plumbing
# =============================================================================

class TestQuestions:

    def test_answer_uses_month_figures(self, client, db_session, business_a, customer_a, headers_a, install_llm):
        db_session.add(Sales(
            business_id=business_a.id, customer_id=customer_a.id, transaction_date=today(),
            total_amount=Decimal("1200000"), vat_amount=Decimal("120000"),
        ))
        db_session.commit()
        llm = install_llm(StubLLM(reply="이번 달 매출은 1,320,000원입니다."))

        body = chat(client, headers_a, "이번 달 매출 얼마야?").get_json()
        assert body["message"] == "이번 달 매출은 1,320,000원입니다."
        assert body["data"]["salesStats"]["count"] == 1
        assert body["data"]["salesStats"]["grandTotal"] == 1320000
        assert "총 매출액(부가세 포함): 1,320,000원" in llm.prompts[0]
        assert llm.extracted == []

    def test_overview_context(self, client, business_a, customer_a, product_a, headers_a, install_llm):
        install_llm(StubLLM())
        data = chat(client, headers_a, "전체 현황 보여줘").get_json()["data"]
        stats = data["dashboardStats"]
        assert stats["totalCustomers"] == 1
        assert stats["totalProducts"] == 1
        assert stats["profit"] == 0

    def test_empty_extraction_falls_back_to_answer(self, client, business_a, headers_a, install_llm):
        llm = install_llm(StubLLM(drafts=None, reply="무엇을 도와드릴까요?"))
        body = chat(client, headers_a, "안녕").get_json()
        assert body["message"] == "무엇을 도와드릴까요?"
        assert len(llm.prompts) == 1

    def test_llm_failure(self, client, business_a, headers_a, install_llm):
        install_llm(StubLLM(error=LLMError("quota exceeded")))
        resp = chat(client, headers_a, "매출 알려줘")
        assert resp.status_code == 502
        assert resp.get_json()["code"] == "ERR_EXT_004"

    def test_no_api_key(self, client, business_a, headers_a):
        resp = chat(client, headers_a, "매출 알려줘")
        assert resp.status_code == 500
        assert resp.get_json()["needsApiKey"] is True

    def test_empty_message(self, client, business_a, headers_a):
        assert chat(client, headers_a, "   ").status_code == 400

    def test_foreign_business(self, client, business_b, headers_a, install_llm):
        install_llm(StubLLM())
        resp = chat(client, headers_a, "매출 알려줘", businessId=business_b.id)
        assert resp.status_code == 404

    def test_status(self, client, user_a, headers_a, install_llm):
        before = client.get("/api/chatbot/status", headers=headers_a).get_json()["data"]
        assert before["hasApiKey"] is False
        assert "매출 자동 등록" in before["features"]

        install_llm(StubLLM())
        after = client.get("/api/chatbot/status", headers=headers_a).get_json()["data"]
        assert after["hasApiKey"] is True
