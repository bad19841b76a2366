# Overview: Pytest coverage for authentication and role checks on every route family.

"""
Authorization Tests

Verifies:
- Every protected endpoint rejects anonymous requests with 401
- sales_viewer may list, view and sign sales of its business and nothing else
- Owner-only endpoints reject admins who are not the business owner
- Role denials are written to the security audit trail
"""

import pytest

from erp.extensions import db
from erp.models import SecurityEvent, User
from erp.models.auth import ROLE_ADMIN
from erp.services.auth_service import hash_password

from conftest import PASSWORD


PROTECTED_ENDPOINTS = [
    ("GET", "/api/auth/profile"),
    ("GET", "/api/businesses"),
    ("GET", "/api/businesses/1"),
    ("GET", "/api/businesses/1/customers"),
    ("GET", "/api/businesses/1/products"),
    ("GET", "/api/businesses/1/sales"),
    ("GET", "/api/businesses/1/purchases"),
    ("GET", "/api/businesses/1/payments"),
    ("GET", "/api/businesses/1/dashboard/stats"),
    ("GET", "/api/businesses/1/transaction-ledger?customerId=1"),
    ("GET", "/api/businesses/1/notes"),
    ("GET", "/api/excel/template/customers"),
    ("GET", "/api/settings/1"),
    ("GET", "/api/users/1/users"),
    ("GET", "/api/notifications"),
    ("GET", "/api/activity-logs/user"),
    ("GET", "/api/accounts"),
    ("POST", "/api/chatbot/message"),
]


class TestAuthenticationRequired:

    @pytest.mark.parametrize("method,path", PROTECTED_ENDPOINTS)
    def test_anonymous_request_rejected(self, client, db_session, method, path):
        resp = client.open(path, method=method)
        assert resp.status_code == 401
        assert resp.get_json()["success"] is False


class TestSalesViewer:
    """sales_viewer: sales list/view/sign only, in its assigned business."""

    def test_can_list_and_view_sales(self, client, db_session, business_a, customer_a, headers_a, viewer_headers):
        created = client.post(
            f"/api/businesses/{business_a.id}/sales",
            json={"customerId": customer_a.id, "saleDate": "2025-03-02", "totalAmount": 10000, "vatAmount": 1000},
            headers=headers_a,
        )
        sales_id = created.get_json()["data"]["id"]

        listed = client.get(f"/api/businesses/{business_a.id}/sales", headers=viewer_headers)
        assert listed.status_code == 200
        assert [s["id"] for s in listed.get_json()["data"]] == [sales_id]

        detail = client.get(f"/api/businesses/{business_a.id}/sales/{sales_id}", headers=viewer_headers)
        assert detail.status_code == 200

    def test_cannot_create_sales(self, client, business_a, viewer_headers):
        resp = client.post(
            f"/api/businesses/{business_a.id}/sales",
            json={"totalAmount": 10000},
            headers=viewer_headers,
        )
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "ERR_AUTH_006"

    @pytest.mark.parametrize("suffix", [
        "customers",
        "products",
        "purchases",
        "payments",
        "dashboard/stats",
        "notes",
    ])
    def test_master_data_denied(self, client, business_a, viewer_headers, suffix):
        resp = client.get(f"/api/businesses/{business_a.id}/{suffix}", headers=viewer_headers)
        assert resp.status_code == 403

    def test_settings_and_users_denied(self, client, business_a, viewer_headers):
        assert client.get(f"/api/settings/{business_a.id}", headers=viewer_headers).status_code == 403
        assert client.get(f"/api/users/{business_a.id}/users", headers=viewer_headers).status_code == 403

    def test_chatbot_denied(self, client, business_a, viewer_headers):
        resp = client.post("/api/chatbot/message", json={"message": "오늘 매출"}, headers=viewer_headers)
        assert resp.status_code == 403

    def test_denial_is_audited(self, client, db_session, business_a, viewer_a, viewer_headers):
        client.get(f"/api/businesses/{business_a.id}/customers", headers=viewer_headers)
        event = db_session.query(SecurityEvent).filter_by(event_type="ROLE_ACCESS_DENIED").one()
        assert event.user_id == viewer_a.id
        assert event.business_id == business_a.id

    def test_sees_only_assigned_business(self, client, business_a, business_b, viewer_headers):
        resp = client.get("/api/businesses", headers=viewer_headers)
        assert [b["id"] for b in resp.get_json()["data"]] == [business_a.id]

        other = client.get(f"/api/businesses/{business_b.id}/sales", headers=viewer_headers)
        assert other.status_code == 404


class TestOwnerOnly:
    """User management and destructive settings need the Business.user_id owner."""

    @pytest.fixture
    def sub_admin_headers(self, db_session, business_a, auth_headers):
        user = User(
            email="manager@acme.co.kr",
            password_hash=hash_password(PASSWORD),
            name="정관리",
            phone="010-3333-4444",
            role=ROLE_ADMIN,
            business_id=business_a.id,
        )
        db.session.add(user)
        db.session.commit()
        return auth_headers(user, business_a.id)

    def test_sub_admin_can_use_master_data(self, client, business_a, sub_admin_headers):
        resp = client.get(f"/api/businesses/{business_a.id}/customers", headers=sub_admin_headers)
        assert resp.status_code == 200

    def test_sub_admin_cannot_manage_users(self, client, business_a, sub_admin_headers):
        resp = client.get(f"/api/users/{business_a.id}/users", headers=sub_admin_headers)
        assert resp.status_code == 403

    def test_sub_admin_cannot_reset_data(self, client, business_a, sub_admin_headers):
        resp = client.post(
            f"/api/settings/{business_a.id}/reset-data",
            json={"confirmText": "데이터 초기화"},
            headers=sub_admin_headers,
        )
        assert resp.status_code == 403

    def test_owner_can_manage_users(self, client, business_a, headers_a):
        resp = client.get(f"/api/users/{business_a.id}/users", headers=headers_a)
        assert resp.status_code == 200
