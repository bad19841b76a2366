# Overview: Service-layer operations for business notes.

from __future__ import annotations

from ..errors import NotFoundError
from ..extensions import db
from ..models import Note
from ..models.communications import NOTE_TYPES
from ..validation import ModelValidationPolicy, ValidationError, validate_payload


NOTE_NOT_FOUND_MESSAGE = "메모를 찾을 수 없습니다."

NOTE_POLICY = ModelValidationPolicy(
    writable_fields={"title", "content", "noteType", "relatedId", "relatedType"},
    required_on_create={"title"},
    strip_unknown=True,
    choices={"noteType": NOTE_TYPES},
)


def _tags(payload: dict) -> list[str] | None:
    tags = payload.get("tags")
    if tags is None:
        return None
    if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
        raise ValidationError(errors=["tags must be a list of strings"])
    return [t.strip() for t in tags if t.strip()]


def list_notes(*, business_id: int, note_type: str | None = None, search: str | None = None):
    query = db.session.query(Note).filter(Note.business_id == business_id)
    if note_type:
        query = query.filter(Note.note_type == note_type)
    if search:
        like = f"%{search.strip()}%"
        query = query.filter(db.or_(Note.title.ilike(like), Note.content.ilike(like)))
    return query.order_by(Note.updated_at.desc(), Note.id.desc())


def get_note(*, business_id: int, note_id: int) -> Note:
    note = db.session.query(Note).filter(Note.id == note_id, Note.business_id == business_id).first()
    if note is None:
        raise NotFoundError(NOTE_NOT_FOUND_MESSAGE)
    return note


def create_note(*, business_id: int, user, payload: dict) -> Note:
    payload = payload or {}
    patch = validate_payload(model=Note, payload=payload, policy=NOTE_POLICY, partial=False)
    patch.setdefault("note_type", "general")
    note = Note(business_id=business_id, created_by=user.id, tags=_tags(payload), **patch)
    db.session.add(note)
    db.session.commit()
    return note


def update_note(*, business_id: int, note_id: int, payload: dict) -> Note:
    note = get_note(business_id=business_id, note_id=note_id)
    payload = payload or {}
    patch = validate_payload(model=Note, payload=payload, policy=NOTE_POLICY, partial=True)
    if "tags" in payload:
        patch["tags"] = _tags(payload)
    for key, value in patch.items():
        setattr(note, key, value)
    db.session.commit()
    return note


def delete_note(*, business_id: int, note_id: int) -> None:
    db.session.delete(get_note(business_id=business_id, note_id=note_id))
    db.session.commit()
