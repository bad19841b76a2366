# Overview: Flask API routes for notes attached to a business.

from flask import Blueprint, g, request

from ..decorators import business_scope, require_admin, require_auth
from ..pagination import paginate, parse_page_args
from ..responses import ok, paginated
from ..services import note_service


notes_bp = Blueprint("notes", __name__, url_prefix="/api/businesses/<int:business_id>/notes")


@notes_bp.get("")
@require_auth
@require_admin
@business_scope()
def list_notes_route(business_id: int):
    """Query parameters: page, limit, noteType, search (title or content)."""
    page, limit = parse_page_args(request.args, default_limit=20)
    query = note_service.list_notes(
        business_id=business_id,
        note_type=request.args.get("noteType"),
        search=request.args.get("search"),
    )
    rows, meta = paginate(query, page=page, limit=limit)
    return paginated([n.to_dict() for n in rows], meta)


@notes_bp.get("/<int:note_id>")
@require_auth
@require_admin
@business_scope()
def get_note_route(business_id: int, note_id: int):
    return ok(note_service.get_note(business_id=business_id, note_id=note_id).to_dict())


@notes_bp.post("")
@require_auth
@require_admin
@business_scope()
def create_note_route(business_id: int):
    note = note_service.create_note(business_id=business_id, user=g.current_user, payload=request.get_json(silent=True))
    return ok(note.to_dict(), "메모가 등록되었습니다.", 201)


@notes_bp.put("/<int:note_id>")
@require_auth
@require_admin
@business_scope()
def update_note_route(business_id: int, note_id: int):
    note = note_service.update_note(business_id=business_id, note_id=note_id, payload=request.get_json(silent=True))
    return ok(note.to_dict(), "메모가 수정되었습니다.")


@notes_bp.delete("/<int:note_id>")
@require_auth
@require_admin
@business_scope()
def delete_note_route(business_id: int, note_id: int):
    note_service.delete_note(business_id=business_id, note_id=note_id)
    return ok(message="메모가 삭제되었습니다.")
