# Overview: Flask API routes for the accounting chatbot.

"""
Chatbot Routes

POST /message either answers a question from the business's figures or
registers the transactions the LLM extracts from a free-text message
(e.g. "홍길동상사에 사과 10박스 50만원 팔았어").
"""

from flask import Blueprint, g, request

from ..decorators import require_admin, require_auth
from ..errors import NotFoundError
from ..responses import fail, ok
from ..services import chatbot_service
from ..services.tenant_service import require_business_access, resolve_default_business_id
from ..validation import parse_optional_int


chatbot_bp = Blueprint("chatbot", __name__, url_prefix="/api/chatbot")


def _resolve_business_id(requested) -> int:
    """Explicit businessId, else the token's business, else the user's default one."""
    user = g.current_user
    business_id = parse_optional_int("businessId", requested) or g.token_business_id
    if business_id is None:
        business_id = resolve_default_business_id(user)
    if business_id is None:
        raise NotFoundError("사업자 정보를 찾을 수 없습니다.")
    return require_business_access(business_id, user).id


@chatbot_bp.post("/message")
@require_auth
@require_admin
def message_route():
    data = request.get_json(silent=True) or {}
    message = data.get("message")
    if not isinstance(message, str) or not message.strip():
        return fail("메시지를 입력해주세요.", 400)

    business_id = _resolve_business_id(data.get("businessId"))
    result = chatbot_service.handle_message(business_id=business_id, message=message.strip())
    return ok(result["data"], result["message"], timestamp=result["timestamp"])


@chatbot_bp.get("/status")
@require_auth
def status_route():
    return ok(chatbot_service.status())
