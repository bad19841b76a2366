# Overview: Pytest coverage for tenant isolation between businesses.

"""
Multi-Tenant Isolation Tests

Verifies:
- Users can only access their own business's data
- A foreign business answers 404, never 403, and the attempt is audited
- Documents cannot reference customers or products of another business
- tenant_service helpers scope lookups to one business
"""

import pytest

from erp.models import Purchase, SecurityEvent
from erp.services import tenant_service
from erp.services.tenant_service import TenantAccessError


class TestBusinessBoundary:

    @pytest.mark.parametrize("suffix", [
        "",
        "/customers",
        "/products",
        "/sales",
        "/purchases",
        "/payments",
        "/dashboard/stats",
        "/notes",
    ])
    def test_foreign_business_is_not_found(self, client, business_b, headers_a, suffix):
        resp = client.get(f"/api/businesses/{business_b.id}{suffix}", headers=headers_a)
        assert resp.status_code == 404
        assert resp.get_json()["message"] == "사업자 정보를 찾을 수 없습니다."

    def test_foreign_and_missing_look_the_same(self, client, business_b, headers_a):
        foreign = client.get(f"/api/businesses/{business_b.id}/customers", headers=headers_a)
        missing = client.get("/api/businesses/99999/customers", headers=headers_a)
        assert foreign.status_code == missing.status_code == 404
        assert foreign.get_json() == missing.get_json()

    def test_cross_tenant_access_is_audited(self, client, db_session, user_a, business_b, headers_a):
        client.get(f"/api/businesses/{business_b.id}/products", headers=headers_a)

        event = db_session.query(SecurityEvent).filter_by(event_type="CROSS_TENANT_ACCESS_DENIED").one()
        assert event.user_id == user_a.id
        assert event.business_id == business_b.id
        assert event.success is False

    def test_business_list_is_scoped(self, client, business_a, business_b, headers_a):
        resp = client.get("/api/businesses", headers=headers_a)
        assert [b["id"] for b in resp.get_json()["data"]] == [business_a.id]

    def test_cannot_update_foreign_business(self, client, db_session, business_b, headers_a):
        resp = client.put(f"/api/businesses/{business_b.id}", json={"companyName": "탈취"}, headers=headers_a)
        assert resp.status_code == 404

        db_session.expire_all()
        assert business_b.company_name == "비상사"

    def test_foreign_settings_and_excel(self, client, business_b, headers_a):
        assert client.get(f"/api/settings/{business_b.id}", headers=headers_a).status_code == 404
        assert client.get(f"/api/excel/export/{business_b.id}/customers", headers=headers_a).status_code == 404


class TestCrossReferences:
    """Child rows must stay inside the business of their parent document."""

    def test_sale_with_foreign_customer(self, client, business_a, customer_b, headers_a):
        resp = client.post(
            f"/api/businesses/{business_a.id}/sales",
            json={"customerId": customer_b.id, "totalAmount": 10000},
            headers=headers_a,
        )
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "ERR_BIZ_002"

    def test_sale_with_foreign_product(self, client, business_a, customer_a, product_b, headers_a):
        resp = client.post(
            f"/api/businesses/{business_a.id}/sales",
            json={
                "customerId": customer_a.id,
                "totalAmount": 1000,
                "items": [{"productId": product_b.id, "productName": "볼펜", "quantity": 1, "unitPrice": 1000}],
            },
            headers=headers_a,
        )
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "ERR_BIZ_003"

    def test_purchase_with_foreign_customer_stored_without_customer(
        self, client, db_session, business_a, customer_b, headers_a
    ):
        resp = client.post(
            f"/api/businesses/{business_a.id}/purchases",
            json={"customerId": customer_b.id, "purchaseDate": "2025-03-05", "totalAmount": 5000},
            headers=headers_a,
        )
        assert resp.status_code == 201
        assert resp.get_json()["data"]["customerId"] is None

        purchase = db_session.query(Purchase).one()
        assert purchase.customer_id is None

    def test_payment_with_foreign_customer(self, client, business_a, customer_b, headers_a):
        resp = client.post(
            f"/api/businesses/{business_a.id}/payments",
            json={"customerId": customer_b.id, "type": "receipt", "paymentDate": "2025-03-05", "amount": 1000},
            headers=headers_a,
        )
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "ERR_BIZ_002"

    def test_get_foreign_customer_by_id(self, client, business_a, customer_b, headers_a):
        resp = client.get(f"/api/businesses/{business_a.id}/customers/{customer_b.id}", headers=headers_a)
        assert resp.status_code == 404


class TestTenantHelpers:

    def test_require_business_access_owner(self, app, user_a, business_a):
        with app.test_request_context():
            assert tenant_service.require_business_access(business_a.id, user_a) is business_a

    def test_require_business_access_foreign(self, app, user_a, business_b):
        with app.test_request_context():
            with pytest.raises(TenantAccessError):
                tenant_service.require_business_access(business_b.id, user_a)

    def test_inactive_business_is_unreachable(self, app, db_session, user_a, business_a):
        business_a.is_active = False
        db_session.commit()
        with app.test_request_context():
            with pytest.raises(TenantAccessError):
                tenant_service.require_business_access(business_a.id, user_a)

    def test_find_customer_in_business(self, db_session, business_a, customer_a, customer_b):
        assert tenant_service.find_customer_in_business(customer_a.id, business_a.id) is customer_a
        assert tenant_service.find_customer_in_business(customer_b.id, business_a.id) is None
        assert tenant_service.find_customer_in_business(None, business_a.id) is None

    def test_default_business(self, db_session, user_a, business_a, viewer_a):
        assert tenant_service.resolve_default_business_id(user_a) == business_a.id
        assert tenant_service.resolve_default_business_id(viewer_a) == business_a.id

    def test_user_businesses(self, db_session, user_a, business_a, business_b, viewer_a):
        assert tenant_service.get_user_businesses(user_a) == [business_a]
        assert tenant_service.get_user_businesses(viewer_a) == [business_a]
