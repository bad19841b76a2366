# Overview: Pytest coverage for business settings, exports, backup/restore and destructive operations.

"""
Settings Tests

Verifies:
- Key/value settings are upserted as text; sessionTimeout and twoFactorAuth are validated
- The pre-login security lookup reflects those settings
- Backups restore all or nothing
- reset-data and delete-account need the exact confirmation text
"""

import json
from io import BytesIO

import pytest
from openpyxl import load_workbook

from erp.models import Business, CompanySettings, Customer, Payment, Product, Sales, User
from erp.services import settings_service, token_service


def settings_url(business, suffix=""):
    return f"/api/settings/{business.id}{suffix}"


@pytest.fixture
def ledger_data(client, business_a, customer_a, product_a, headers_a):
    """One sale with two lines and one receipt, created through the API."""
    sale = client.post(
        f"/api/businesses/{business_a.id}/sales",
        json={
            "customerId": customer_a.id,
            "transactionDate": "2025-03-10",
            "totalAmount": 60000,
            "vatAmount": 6000,
            "items": [
                {"productId": product_a.id, "productName": "A4 복사용지", "quantity": 2, "unitPrice": 25000},
                {"productName": "볼펜", "quantity": 10, "unitPrice": 1000},
            ],
        },
        headers=headers_a,
    )
    assert sale.status_code == 201
    receipt = client.post(
        f"/api/businesses/{business_a.id}/payments",
        json={"customerId": customer_a.id, "type": "receipt", "paymentDate": "2025-03-12", "amount": 30000},
        headers=headers_a,
    )
    assert receipt.status_code == 201


# =============================================================================
# Key/value settings
# =============================================================================

class TestSettings:

    def test_empty_by_default(self, client, business_a, headers_a):
        resp = client.get(settings_url(business_a), headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {}

    def test_upsert(self, client, db_session, business_a, headers_a):
        client.put(settings_url(business_a), json={"sessionTimeout": "4h", "theme": "dark"}, headers=headers_a)
        resp = client.put(settings_url(business_a), json={"sessionTimeout": 8, "twoFactorAuth": False}, headers=headers_a)

        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"sessionTimeout": "8", "theme": "dark", "twoFactorAuth": "false"}
        assert db_session.query(CompanySettings).filter_by(business_id=business_a.id).count() == 3

    @pytest.mark.parametrize("body,error", [
        ({"sessionTimeout": "3h"}, "sessionTimeout must be one of: 1, 4, 8, 24"),
        ({"twoFactorAuth": "maybe"}, "twoFactorAuth must be a boolean"),
        ({"nested": {"a": 1}}, "nested must be a scalar value"),
    ])
    def test_invalid_values(self, client, db_session, business_a, headers_a, body, error):
        resp = client.put(settings_url(business_a), json=body, headers=headers_a)
        assert resp.status_code == 400
        assert error in resp.get_json()["errors"]
        assert db_session.query(CompanySettings).count() == 0

    def test_empty_body(self, client, business_a, headers_a):
        resp = client.put(settings_url(business_a), json={}, headers=headers_a)
        assert resp.status_code == 400

    def test_session_timeout_drives_token_lifetime(self, client, business_a, headers_a):
        client.put(settings_url(business_a), json={"sessionTimeout": "1h"}, headers=headers_a)
        assert token_service.session_timeout_hours(business_a.id) == 1


class TestSecurityLookup:

    def test_defaults(self, client, user_a, business_a):
        resp = client.get("/api/settings/security/owner_a@acme.co.kr")
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"twoFactorAuth": True, "sessionTimeout": "24h"}

    def test_reflects_settings(self, client, business_a, headers_a):
        client.put(settings_url(business_a), json={"sessionTimeout": "8h", "twoFactorAuth": False}, headers=headers_a)
        data = client.get("/api/settings/security/owner_a@acme.co.kr").get_json()["data"]
        assert data == {"twoFactorAuth": False, "sessionTimeout": "8h"}

    def test_sub_user_follows_business(self, client, business_a, viewer_a, headers_a):
        client.put(settings_url(business_a), json={"sessionTimeout": "4h"}, headers=headers_a)
        data = client.get("/api/settings/security/viewer@acme.co.kr").get_json()["data"]
        assert data["sessionTimeout"] == "4h"

    def test_unknown_email(self, client, db_session):
        assert client.get("/api/settings/security/ghost@acme.co.kr").status_code == 404


# =============================================================================
# Export / backup / restore
# =============================================================================

class TestExport:

    def test_all_sheets(self, client, business_a, headers_a, ledger_data):
        resp = client.get(settings_url(business_a, "/export/all"), headers=headers_a)
        assert resp.status_code == 200

        wb = load_workbook(BytesIO(resp.data))
        assert wb.sheetnames == ["거래처", "품목", "매출", "매입", "수금지급"]

        sales_rows = list(wb["매출"].iter_rows(values_only=True))
        assert sales_rows[1][:5] == ("2025-03-10", "가나다유통", 60000, 6000, 66000)

        payment_rows = list(wb["수금지급"].iter_rows(values_only=True))
        assert payment_rows[1][2] == "수금"

    def test_unknown_kind(self, client, business_a, headers_a):
        assert client.get(settings_url(business_a, "/export/invoices"), headers=headers_a).status_code == 404


class TestBackupRestore:

    def test_backup_document(self, client, business_a, headers_a, ledger_data):
        resp = client.get(settings_url(business_a, "/backup"), headers=headers_a)
        assert resp.status_code == 200
        assert "attachment" in resp.headers["Content-Disposition"]

        backup = json.loads(resp.data)
        assert backup["version"] == "1.0"
        assert backup["businessId"] == business_a.id
        assert backup["data"]["customers"][0]["customerCode"] == "C0001"
        assert len(backup["data"]["sales"][0]["items"]) == 2
        assert backup["data"]["payments"][0]["paymentType"] == "수금"

    def test_restore_replaces_data(self, client, db_session, business_a, headers_a, ledger_data):
        backup = json.loads(client.get(settings_url(business_a, "/backup"), headers=headers_a).data)

        # Changes made after the backup are discarded.
        client.post(f"/api/businesses/{business_a.id}/customers", json={"name": "나중거래처"}, headers=headers_a)

        resp = client.post(settings_url(business_a, "/restore"), json=backup, headers=headers_a)
        assert resp.status_code == 200
        assert resp.get_json()["summary"] == {
            "customers": 1, "products": 1, "sales": 1, "purchases": 0, "payments": 1,
        }

        db_session.expire_all()
        customers = db_session.query(Customer).filter_by(business_id=business_a.id).all()
        assert [(c.customer_code, c.name) for c in customers] == [("C0001", "가나다유통")]

        sale = db_session.query(Sales).one()
        assert sale.customer_id == customers[0].id
        assert [i.item_name for i in sale.items] == ["A4 복사용지", "볼펜"]
        assert db_session.query(Payment).one().customer_id == customers[0].id

    def test_invalid_record_aborts_restore(self, client, db_session, business_a, customer_a, headers_a):
        backup = {
            "version": "1.0",
            "data": {"customers": [{"name": "정상"}, {"customerCode": "C0009"}]},
        }
        resp = client.post(settings_url(business_a, "/restore"), json=backup, headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == "유효하지 않은 백업 파일입니다."
        assert resp.get_json()["errors"] == ["customers[1]: name is required"]

        db_session.expire_all()
        assert [c.name for c in db_session.query(Customer).all()] == ["가나다유통"]

    @pytest.mark.parametrize("body", [{}, {"version": "1.0"}, {"version": "1.0", "data": {"customers": "x"}}])
    def test_malformed_backup(self, client, business_a, headers_a, body):
        resp = client.post(settings_url(business_a, "/restore"), json=body, headers=headers_a)
        assert resp.status_code == 400


# =============================================================================
# Destructive operations
# =============================================================================

class TestResetData:

    def test_wrong_confirm_text(self, client, db_session, business_a, customer_a, headers_a):
        resp = client.post(settings_url(business_a, "/reset-data"), json={"confirmText": "초기화"}, headers=headers_a)
        assert resp.status_code == 400
        assert resp.get_json()["message"] == settings_service.CONFIRM_MISMATCH_MESSAGE
        assert db_session.query(Customer).count() == 1

    def test_reset(self, client, db_session, business_a, business_b, customer_b, headers_a, ledger_data):
        resp = client.post(
            settings_url(business_a, "/reset-data"),
            json={"confirmText": settings_service.RESET_CONFIRM_TEXT},
            headers=headers_a,
        )
        assert resp.status_code == 200

        db_session.expire_all()
        assert db_session.query(Customer).filter_by(business_id=business_a.id).count() == 0
        assert db_session.query(Product).filter_by(business_id=business_a.id).count() == 0
        assert db_session.query(Sales).count() == 0
        assert db_session.query(Payment).count() == 0
        # Other tenants are untouched.
        assert db_session.query(Customer).filter_by(business_id=business_b.id).count() == 1
        assert db_session.get(Business, business_a.id) is not None


class TestDeleteAccount:

    def test_wrong_confirm_text(self, client, db_session, business_a, headers_a):
        resp = client.post(settings_url(business_a, "/delete-account"), json={"confirmText": "삭제"}, headers=headers_a)
        assert resp.status_code == 400
        assert db_session.get(Business, business_a.id) is not None

    def test_delete_removes_business_and_owner(
        self, client, db_session, user_a, business_a, viewer_a, business_b, headers_a, ledger_data
    ):
        user_id, business_id, viewer_id = user_a.id, business_a.id, viewer_a.id
        client.put(settings_url(business_a), json={"theme": "dark"}, headers=headers_a)

        resp = client.post(
            settings_url(business_a, "/delete-account"),
            json={"confirmText": settings_service.DELETE_CONFIRM_TEXT},
            headers=headers_a,
        )
        assert resp.status_code == 200
        assert "authToken=;" in " ".join(resp.headers.getlist("Set-Cookie"))

        db_session.expire_all()
        assert db_session.get(Business, business_id) is None
        assert db_session.get(User, user_id) is None
        assert db_session.get(User, viewer_id) is None
        assert db_session.query(CompanySettings).count() == 0
        assert db_session.get(Business, business_b.id) is not None

    def test_token_of_deleted_owner_is_rejected(self, client, business_a, headers_a):
        client.post(
            settings_url(business_a, "/delete-account"),
            json={"confirmText": settings_service.DELETE_CONFIRM_TEXT},
            headers=headers_a,
        )
        resp = client.get("/api/auth/profile", headers=headers_a)
        assert resp.status_code == 401
