# Overview: Service-layer operations for the Alimtalk messaging gateway.

"""
Alimtalk gateway client.

The gateway takes a form POST (api_key, template_code, variable, callback,
dstaddr, next_type, send_reserve) and answers JSON whose "result" or "code"
is 100 when the message was accepted. next_type=1 falls back to SMS when
KakaoTalk delivery fails.

Every send returns a bool and never raises: callers decide whether a failed
send is fatal (OTP) or best effort (welcome, signed statement).

Tests swap the network for httpx.MockTransport via
app.extensions["alimtalk_transport"].
"""

from __future__ import annotations

import re

import httpx
from flask import current_app


ACCEPTED_CODES = {"100", 100}


class AlimtalkClient:
    def __init__(
        self,
        *,
        api_url: str,
        api_key: str | None,
        callback: str | None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.callback = callback or ""
        self.timeout = timeout
        self.transport = transport

    def send(self, *, phone: str, template_code: str, variable: str) -> bool:
        """POST one message. Returns True only when the gateway accepted it."""
        if not self.api_key:
            current_app.logger.warning("Alimtalk API key not configured; message not sent")
            return False

        clean_phone = re.sub(r"\D", "", phone or "")
        if not clean_phone:
            current_app.logger.warning("Alimtalk send skipped: no phone number")
            return False

        form = {
            "api_key": self.api_key,
            "template_code": template_code,
            "variable": variable,
            "callback": self.callback,
            "dstaddr": clean_phone,
            "next_type": "1",
            "send_reserve": "0",
        }
        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(self.api_url, data=form)
                response.raise_for_status()
                body = response.json()
        except (httpx.HTTPError, ValueError) as e:
            current_app.logger.error("Alimtalk request failed for template %s: %s", template_code, e)
            return False

        result = (body.get("result") or body.get("code")) if isinstance(body, dict) else None
        if result in ACCEPTED_CODES:
            current_app.logger.info("Alimtalk %s accepted", template_code)
            return True

        current_app.logger.warning("Alimtalk %s rejected: %s", template_code, body)
        return False


def get_client() -> AlimtalkClient:
    cfg = current_app.config
    return AlimtalkClient(
        api_url=cfg["ALIMTALK_API_URL"],
        api_key=cfg.get("ALIMTALK_API_KEY"),
        callback=cfg.get("ALIMTALK_CALLBACK"),
        timeout=cfg.get("ALIMTALK_TIMEOUT_SECONDS", 10.0),
        transport=current_app.extensions.get("alimtalk_transport"),
    )


def send_otp(phone: str, code: str) -> bool:
    return get_client().send(
        phone=phone,
        template_code=current_app.config["ALIMTALK_OTP_TEMPLATE"],
        variable=code,
    )


def send_welcome(phone: str, name: str, company_name: str | None = None) -> bool:
    """Welcome template has a single #{회사명} variable; falls back to the user's name."""
    return get_client().send(
        phone=phone,
        template_code=current_app.config["ALIMTALK_WELCOME_TEMPLATE"],
        variable=company_name or name,
    )


def send_signature_statement(phone: str, company_name: str, image_url: str) -> bool:
    """Signed statement template variables: #{회사명}|#{URL}."""
    return get_client().send(
        phone=phone,
        template_code=current_app.config["ALIMTALK_SIGNATURE_TEMPLATE"],
        variable="|".join([company_name, image_url]),
    )
