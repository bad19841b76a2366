# Overview: Pytest coverage for the transaction ledger and dashboard figures.

"""
Ledger and Dashboard Tests

Scenario for customer_a (all amounts in won, VAT included):
- 2025-02-14 sale      110,000   (before the period: previous balance)
- 2025-03-05 purchase   55,000
- 2025-03-10 sale      220,000
- 2025-03-10 receipt    60,000
- 2025-03-20 payment    10,000
"""

from datetime import date
from decimal import Decimal

import pytest

from erp.models import Customer, Payment, Purchase, Sales, SalesItem
from erp.services import ledger_service
from erp.time_utils import month_bounds, today


MARCH = "startDate=2025-03-01&endDate=2025-03-31"


@pytest.fixture
def history(db_session, business_a, customer_a, product_a):
    february_sale = Sales(
        business_id=business_a.id, customer_id=customer_a.id, transaction_date=date(2025, 2, 14),
        total_amount=Decimal("100000"), vat_amount=Decimal("10000"),
    )
    march_sale = Sales(
        business_id=business_a.id, customer_id=customer_a.id, transaction_date=date(2025, 3, 10),
        total_amount=Decimal("200000"), vat_amount=Decimal("20000"), memo="3월 정기 납품",
    )
    march_sale.items = [SalesItem(
        product_id=product_a.id, item_name="A4 복사용지", specification="80g",
        quantity=Decimal("8"), unit_price=Decimal("25000"),
        supply_amount=Decimal("200000"), tax_amount=Decimal("20000"),
    )]
    purchase = Purchase(
        business_id=business_a.id, customer_id=customer_a.id, purchase_date=date(2025, 3, 5),
        total_amount=Decimal("50000"), vat_amount=Decimal("5000"),
    )
    receipt = Payment(
        business_id=business_a.id, customer_id=customer_a.id, payment_date=date(2025, 3, 10),
        payment_type="수금", amount=Decimal("60000"),
    )
    payment = Payment(
        business_id=business_a.id, customer_id=customer_a.id, payment_date=date(2025, 3, 20),
        payment_type="입금", amount=Decimal("10000"),
    )
    db_session.add_all([february_sale, march_sale, purchase, receipt, payment])
    db_session.commit()
    return {"march_sale": march_sale, "purchase": purchase, "receipt": receipt, "payment": payment}


def ledger_url(business, query=""):
    return f"/api/businesses/{business.id}/transaction-ledger{query}"


# =============================================================================
# Ledger
# =============================================================================

class TestLedger:

    def test_running_balance(self, client, business_a, customer_a, headers_a, history):
        resp = client.get(ledger_url(business_a, f"?customerId={customer_a.id}&{MARCH}"), headers=headers_a)
        assert resp.status_code == 200
        ledger = resp.get_json()["data"]

        assert ledger["previousBalance"] == 110000
        assert [(e["type"], e["balance"]) for e in ledger["entries"]] == [
            ("purchase", 55000),
            ("sales", 275000),
            ("receipt", 215000),
            ("payment", 225000),
        ]
        assert ledger["totalSales"] == 220000
        assert ledger["totalPurchase"] == 55000
        assert ledger["totalReceipt"] == 60000
        assert ledger["totalPayment"] == 10000
        assert ledger["finalBalance"] == 115000
        assert ledger["transactionCount"] == 4
        assert ledger["totalQuantity"] == 8
        assert ledger["period"] == {"start": "2025-03-01", "end": "2025-03-31"}

    def test_entry_detail(self, client, business_a, customer_a, headers_a, history):
        ledger = client.get(ledger_url(business_a, f"?customerId={customer_a.id}&{MARCH}"), headers=headers_a).get_json()["data"]
        sale_entry = ledger["entries"][1]

        assert sale_entry["id"] == f"sales-{history['march_sale'].id}"
        assert sale_entry["supplyAmount"] == 200000
        assert sale_entry["vatAmount"] == 20000
        assert sale_entry["memo"] == "3월 정기 납품"
        assert sale_entry["itemCount"] == 1
        assert sale_entry["itemInfo"]["itemCode"] == "P001"
        assert "itemInfo" not in ledger["entries"][2]

    def test_company_blocks(self, client, business_a, customer_a, headers_a, history):
        ledger = client.get(ledger_url(business_a, f"?customerId={customer_a.id}&{MARCH}"), headers=headers_a).get_json()["data"]
        assert ledger["fromCompany"]["name"] == business_a.company_name
        assert ledger["fromCompany"]["businessNumber"] == "123-45-67890"
        assert ledger["toCompany"]["name"] == customer_a.name

    def test_customer_required(self, client, business_a, headers_a):
        resp = client.get(ledger_url(business_a), headers=headers_a)
        assert resp.status_code == 400
        assert "customerId is required" in resp.get_json()["errors"]

    def test_inverted_range(self, client, business_a, customer_a, headers_a):
        resp = client.get(
            ledger_url(business_a, f"?customerId={customer_a.id}&startDate=2025-03-31&endDate=2025-03-01"),
            headers=headers_a,
        )
        assert resp.status_code == 400

    def test_deleted_customer(self, client, db_session, business_a, customer_a, headers_a):
        customer_a.is_active = False
        db_session.commit()
        resp = client.get(ledger_url(business_a, f"?customerId={customer_a.id}"), headers=headers_a)
        assert resp.status_code == 404

    def test_default_range_is_current_month(self):
        start, end = ledger_service.resolve_range(None, None)
        assert (start, end) == month_bounds(today())

    def test_summary(self, client, db_session, business_a, customer_a, headers_a, history):
        db_session.add(Customer(business_id=business_a.id, customer_code="C0002", name="거래없음"))
        db_session.commit()

        summary = client.get(ledger_url(business_a, f"/summary?{MARCH}"), headers=headers_a).get_json()["data"]
        assert [c["customerName"] for c in summary["customers"]] == [customer_a.name]
        assert summary["customers"][0]["finalBalance"] == 115000
        assert summary["transactionCount"] == 4

    def test_balance_covers_whole_history(self, client, business_a, customer_a, headers_a, history):
        resp = client.get(ledger_url(business_a, f"/balance/{customer_a.id}"), headers=headers_a)
        assert resp.get_json()["data"] == {
            "customerId": customer_a.id,
            "customerName": customer_a.name,
            "balance": 225000,
            "lastTransactionDate": "2025-03-20",
        }

    def test_balance_without_history(self, db_session, business_a, customer_a):
        result = ledger_service.get_customer_balance(business_id=business_a.id, customer_id=customer_a.id)
        assert result["balance"] == 0
        assert result["lastTransactionDate"] is None


# =============================================================================
# Dashboard
# =============================================================================

class TestDashboard:

    def url(self, business, path):
        return f"/api/businesses/{business.id}/dashboard/{path}"

    def test_stats_for_custom_range(self, client, business_a, headers_a, history):
        resp = client.get(self.url(business_a, f"stats?{MARCH}"), headers=headers_a)
        stats = resp.get_json()["data"]

        assert stats["totalSales"] == 220000
        assert stats["totalPurchases"] == 55000
        assert stats["netProfit"] == 165000
        assert stats["salesGrowth"] == 100.0   # against February's 110,000
        assert stats["purchaseGrowth"] == 0.0  # nothing bought in February
        assert stats["totalCustomers"] == 1
        assert stats["totalProducts"] == 1
        assert stats["period"] == {"start": "2025-03-01", "end": "2025-03-31"}

    def test_stats_default_period(self, client, business_a, headers_a):
        stats = client.get(self.url(business_a, "stats"), headers=headers_a).get_json()["data"]
        start, end = month_bounds(today())
        assert stats["period"] == {"start": start.isoformat(), "end": end.isoformat()}
        assert stats["totalSales"] == 0

    def test_week_period_starts_monday(self, client, business_a, headers_a):
        stats = client.get(self.url(business_a, "stats?period=week"), headers=headers_a).get_json()["data"]
        assert date.fromisoformat(stats["period"]["start"]).weekday() == 0

    def test_recent_transactions(self, client, business_a, headers_a, history):
        rows = client.get(self.url(business_a, "recent-transactions?limit=2"), headers=headers_a).get_json()["data"]
        assert [r["id"] for r in rows] == [
            f"sale-{history['march_sale'].id}",
            f"purchase-{history['purchase'].id}",
        ]
        assert rows[0]["amount"] == 220000

    def test_all_transactions_search(self, client, business_a, headers_a, history):
        rows = client.get(self.url(business_a, "all-transactions?search=가나다"), headers=headers_a).get_json()["data"]
        assert len(rows) == 3
        assert {r["type"] for r in rows} == {"매출", "매입"}

    def test_sales_chart_shape(self, client, business_a, headers_a):
        chart = client.get(self.url(business_a, "sales-chart"), headers=headers_a).get_json()["data"]
        assert len(chart["labels"]) == 6
        assert [d["label"] for d in chart["datasets"]] == ["매출", "매입"]

        yearly = client.get(self.url(business_a, "sales-chart?period=year"), headers=headers_a).get_json()["data"]
        assert len(yearly["labels"]) == 12

    def test_category_data(self, client, business_a, product_a, headers_a):
        data = client.get(self.url(business_a, "category-data"), headers=headers_a).get_json()["data"]
        assert data["labels"] == ["사무용품"]
        assert data["datasets"][0]["data"] == [1]

    def test_monthly_trend_covers_month(self, client, business_a, headers_a):
        data = client.get(self.url(business_a, "monthly-trend"), headers=headers_a).get_json()["data"]
        assert len(data["labels"]) == month_bounds(today())[1].day
