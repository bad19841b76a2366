# Overview: Gemini client used by the chatbot for transaction extraction and question answering.

"""
LLM collaborator.

The chatbot only depends on two calls:

    extract_transactions(message, today) -> list[dict] | None
    answer(prompt) -> str

GeminiClient implements them on the google-genai SDK. Tests register any
object with the same two methods under app.extensions["llm_client"].

Extraction returns the raw transaction drafts the model produced (one dict
per transaction, keys in camelCase as in the prompt). None means the reply
was not usable JSON and the caller should fall back to answering.
"""

from __future__ import annotations

import json
import re

import httpx
from flask import current_app
from google import genai
from google.genai import errors as genai_errors
from google.genai import types


PLACEHOLDER_KEYS = {"your_gemini_api_key_here"}

_FENCE_RE = re.compile(r"```(?:json)?\s*|```")

EXTRACT_PROMPT = """다음 메시지에서 거래 정보를 추출해주세요.

메시지: {message}

JSON만 반환하세요. 형식:
{{
  "isMultiple": true | false,
  "transaction": {{ ... }},      (단일 거래)
  "transactions": [{{ ... }}]    (여러 거래)
}}

각 거래 객체:
{{
  "transactionType": "매출" | "매입" | "수금" | "입금" | null,
  "customerName": "고객명",
  "taxType": "과세" | "면세" | "영세" | "혼합",
  "items": [{{"productName": "제품명", "quantity": 수량, "unitPrice": 단가, "amount": 금액, "taxType": "과세" | "면세" | "영세"}}],
  "totalAmount": 공급가액,
  "vatAmount": 부가세,
  "description": "설명",
  "transactionDate": "YYYY-MM-DD",
  "paymentMethod": "현금|카드|계좌이체 (수금/입금만)"
}}

거래 유형:
- 판매, 매출, 팔았어 -> 매출
- 구매, 매입, 샀어 -> 매입
- 받았어, 수금, 입금받았어 -> 수금
- 지급, 입금, 보냈어, 송금, 지불 -> 입금

규칙:
- 금액의 천단위 구분자(,)는 제거하고 "만원"은 10000을 곱합니다.
- "부가세 포함"이라는 표현이 없으면 금액은 공급가액(부가세 별도)입니다.
- 과세는 부가세 10%, 면세/영세는 vatAmount 0입니다.
- 고객이 여러 명이면 isMultiple을 true로 하고 고객별로 거래를 나눕니다.
- 한 고객의 여러 품목은 하나의 거래의 items에 넣습니다.
- 수금/입금은 items를 비우고 totalAmount만 설정합니다.
- "오늘", "어제" 같은 날짜는 실제 날짜로 바꿉니다 (오늘: {today}).
"""


class LLMError(RuntimeError):
    """The LLM call failed (network, quota, invalid key)."""


def parse_json_reply(text: str):
    """Strip Markdown fences and parse. Returns None when the text is not JSON."""
    cleaned = _FENCE_RE.sub("", text or "").strip()
    try:
        return json.loads(cleaned)
    except ValueError:
        return None


def drafts_from_reply(reply) -> list[dict] | None:
    """
    Normalize the three reply shapes the model produces:
    {"isMultiple": true, "transactions": [...]}, {"transaction": {...}} and a
    bare transaction object.
    """
    if not isinstance(reply, dict):
        return None
    if reply.get("isMultiple"):
        drafts = reply.get("transactions")
    elif isinstance(reply.get("transaction"), dict):
        drafts = [reply["transaction"]]
    elif "transactionType" in reply:
        drafts = [reply]
    else:
        return None
    if not isinstance(drafts, list):
        return None
    return [d for d in drafts if isinstance(d, dict)]


class GeminiClient:
    def __init__(self, *, api_key: str, model: str):
        self.model = model
        self._client = genai.Client(api_key=api_key)

    def _generate(self, prompt: str, *, json_mode: bool = False) -> str:
        config = types.GenerateContentConfig(response_mime_type="application/json") if json_mode else None
        try:
            response = self._client.models.generate_content(model=self.model, contents=prompt, config=config)
        except (genai_errors.APIError, httpx.HTTPError) as e:
            raise LLMError(str(e)) from e
        return response.text or ""

    def extract_transactions(self, message: str, today: str) -> list[dict] | None:
        text = self._generate(EXTRACT_PROMPT.format(message=message, today=today), json_mode=True)
        current_app.logger.debug("LLM extraction reply: %s", text)
        return drafts_from_reply(parse_json_reply(text))

    def answer(self, prompt: str) -> str:
        return self._generate(prompt)


def has_api_key() -> bool:
    key = current_app.config.get("GEMINI_API_KEY")
    return bool(key) and key not in PLACEHOLDER_KEYS


def get_llm_client():
    """Registered client (tests) or a Gemini client built from config; None without a key."""
    client = current_app.extensions.get("llm_client")
    if client is not None:
        return client
    if not has_api_key():
        return None
    client = GeminiClient(api_key=current_app.config["GEMINI_API_KEY"], model=current_app.config["GEMINI_MODEL"])
    current_app.extensions["llm_client"] = client
    return client
