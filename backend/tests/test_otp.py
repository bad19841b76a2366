# Overview: Pytest coverage for one-time passcodes sent over Alimtalk.

"""
OTP Tests

The delivered code is read back from the recorded Alimtalk form
("variable" carries the six digits).
"""

from datetime import timedelta

import httpx
import pytest

from erp.models import OTP, SecurityEvent
from erp.services import otp_service
from erp.time_utils import utcnow


EMAIL = "owner_a@acme.co.kr"


def send(client, email=EMAIL):
    return client.post("/api/otp/send", json={"email": email})


def verify(client, code, email=EMAIL):
    return client.post("/api/otp/verify", json={"email": email, "code": code})


def wrong_code(code: str) -> str:
    return f"{(int(code) + 1) % 1_000_000:06d}"


class TestSend:

    def test_code_is_delivered(self, app, client, user_a, alimtalk_outbox):
        resp = send(client)
        assert resp.status_code == 200
        assert resp.get_json()["data"]["sendCount"] == 1
        assert resp.get_json()["data"]["expiresAt"].endswith("Z")

        form = alimtalk_outbox[-1]
        assert form["dstaddr"] == "01012345678"
        assert form["template_code"] == app.config["ALIMTALK_OTP_TEMPLATE"]
        assert len(form["variable"]) == 6 and form["variable"].isdigit()

    def test_resend_reuses_row(self, client, db_session, user_a, alimtalk_outbox):
        send(client)
        resp = send(client)
        assert resp.get_json()["data"]["sendCount"] == 2
        assert db_session.query(OTP).count() == 1

        otp = db_session.query(OTP).one()
        assert otp.code == alimtalk_outbox[-1]["variable"]

    def test_unknown_email(self, client, db_session):
        resp = send(client, "nobody@acme.co.kr")
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "ERR_AUTH_008"

    def test_missing_email(self, client, db_session):
        resp = client.post("/api/otp/send", json={})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ERR_VAL_002"

    def test_non_string_email(self, client, user_a, alimtalk_outbox):
        resp = client.post("/api/otp/send", json={"email": ["owner_a@acme.co.kr"]})
        assert resp.status_code == 400
        assert resp.get_json()["errors"] == ["email must be a string"]
        assert alimtalk_outbox == []

    def test_gateway_rejection(self, app, client, user_a, monkeypatch):
        rejecting = httpx.MockTransport(lambda request: httpx.Response(200, json={"result": "300"}))
        monkeypatch.setitem(app.extensions, "alimtalk_transport", rejecting)

        resp = send(client)
        assert resp.status_code == 500
        assert resp.get_json()["code"] == "ERR_OTP_004"


class TestVerify:

    def test_correct_code(self, client, db_session, user_a, alimtalk_outbox):
        send(client)
        resp = verify(client, alimtalk_outbox[-1]["variable"])
        assert resp.status_code == 200
        assert resp.get_json()["data"] == {"verified": True}

        db_session.expire_all()
        assert db_session.query(OTP).one().verified is True

    def test_code_must_be_text_or_number(self, client, user_a, alimtalk_outbox):
        send(client)
        resp = verify(client, {"code": alimtalk_outbox[-1]["variable"]})
        assert resp.status_code == 400
        assert resp.get_json()["errors"] == ["code must be a string"]

    def test_verified_code_cannot_be_reused(self, client, user_a, alimtalk_outbox):
        send(client)
        code = alimtalk_outbox[-1]["variable"]
        verify(client, code)
        assert verify(client, code).status_code == 404

    def test_mismatch_counts_attempts(self, client, db_session, user_a, alimtalk_outbox):
        send(client)
        bad = wrong_code(alimtalk_outbox[-1]["variable"])

        first = verify(client, bad)
        second = verify(client, bad)
        assert first.status_code == 400
        assert first.get_json()["code"] == "ERR_OTP_001"
        assert first.get_json()["attemptCount"] == 1
        assert second.get_json()["attemptCount"] == 2

        events = db_session.query(SecurityEvent).filter_by(event_type="OTP_VERIFY_FAILED").all()
        assert len(events) == 2
        assert events[0].action == EMAIL

    def test_fifth_mismatch_blocks(self, client, user_a, alimtalk_outbox):
        send(client)
        good = alimtalk_outbox[-1]["variable"]
        bad = wrong_code(good)

        for _ in range(otp_service.MAX_VERIFY_ATTEMPTS - 1):
            assert verify(client, bad).status_code == 400

        blocked = verify(client, bad)
        assert blocked.status_code == 429
        assert blocked.get_json()["code"] == "ERR_OTP_003"
        assert blocked.get_json()["retryAfter"] == 600

        # Blocked: even the right code and a resend are refused.
        assert verify(client, good).status_code == 429
        resend = send(client)
        assert resend.status_code == 429
        assert 0 < resend.get_json()["retryAfter"] <= 600

    def test_expired_code(self, client, db_session, user_a, alimtalk_outbox):
        send(client)
        otp = db_session.query(OTP).one()
        otp.expires_at = utcnow() - timedelta(seconds=1)
        db_session.commit()

        resp = verify(client, alimtalk_outbox[-1]["variable"])
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ERR_OTP_002"
        assert resp.get_json()["expired"] is True

    def test_resend_after_expiry_resets_attempts(self, client, db_session, user_a, alimtalk_outbox):
        send(client)
        verify(client, wrong_code(alimtalk_outbox[-1]["variable"]))
        send(client)

        db_session.expire_all()
        assert db_session.query(OTP).one().attempt_count == 0

    def test_nothing_issued(self, client, db_session):
        resp = verify(client, "123456")
        assert resp.status_code == 404

    @pytest.mark.parametrize("body", [{}, {"email": EMAIL}, {"code": "123456"}])
    def test_missing_fields(self, client, db_session, body):
        resp = client.post("/api/otp/verify", json=body)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ERR_VAL_002"


class TestStatus:

    def test_no_code(self, client, db_session):
        resp = client.get(f"/api/otp/status/{EMAIL}")
        assert resp.get_json()["data"] == {"hasOTP": False}

    def test_active_code(self, client, user_a):
        send(client)
        data = client.get(f"/api/otp/status/{EMAIL}").get_json()["data"]
        assert data["hasOTP"] is True
        assert data["sendCount"] == 1
        assert data["expired"] is False
        assert data["blocked"] is False


class TestCleanup:

    def test_removes_old_rows(self, app, db_session, user_a):
        db_session.add_all([
            OTP(email=EMAIL, phone="01012345678", code="111111", expires_at=utcnow() - timedelta(days=2)),
            OTP(email=EMAIL, phone="01012345678", code="222222", expires_at=utcnow()),
        ])
        db_session.commit()

        assert otp_service.cleanup_expired() == 1
        assert [o.code for o in db_session.query(OTP).all()] == ["222222"]
