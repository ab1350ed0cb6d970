from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from werkzeug.utils import secure_filename

from app.traveldocs.audit import record_event
from app.traveldocs.errors import TravelerLockedError, TravelerNotFoundError
from app.traveldocs.modules.travelers.fields import (
    TRAVELER_FIELDS,
    FieldUpdate,
    parse_field_update,
    parse_question_field,
    parse_updates,
    serialize_value,
)
from app.traveldocs.modules.travelers.models import Traveler, TravelerQuestion
from app.traveldocs.storage import delete_after_commit

if TYPE_CHECKING:
    from sqlalchemy.orm import Session
    from app.traveldocs.storage import Storage

logger = logging.getLogger(__name__)

DEFAULT_STATUS = "New"
SUMMARY_FIELDS = ("first_name", "last_name", "passport_no", "travel_country", "visa_type", "status")


# ---------- Serialization ----------
def traveler_to_dict(t: Traveler, summary: bool = False) -> dict[str, Any]:
    if summary:
        out: dict[str, Any] = {"id": t.id}
        for name in SUMMARY_FIELDS:
            out[name] = serialize_value(getattr(t, name))
        out["locked"] = bool(t.locked)
        return out

    out = {"id": t.id}
    for name in TRAVELER_FIELDS:
        out[name] = serialize_value(getattr(t, name))
    out["locked"] = bool(t.locked)
    out["questions"] = {q.field: q.value for q in t.questions}
    out["files"] = {q.field: q.file_path for q in t.questions if q.file_path}
    out["has_invoice"] = t.invoice is not None
    out["created_at"] = serialize_value(t.created_at)
    out["updated_at"] = serialize_value(t.updated_at)
    return out


# ---------- Reads ----------
def get_traveler(s: "Session", traveler_id: int) -> Traveler:
    t = s.get(Traveler, traveler_id)
    if t is None:
        raise TravelerNotFoundError(traveler_id)
    return t


def list_travelers(s: "Session", page: int = 1, limit: int = 50, summary: bool = False) -> list[dict[str, Any]]:
    """Travelers ordered by id, one page at a time."""
    page = max(page, 1)
    limit = max(limit, 1)
    rows = s.scalars(
        select(Traveler).order_by(Traveler.id.asc()).offset((page - 1) * limit).limit(limit)
    ).all()
    return [traveler_to_dict(t, summary=summary) for t in rows]


def find_by_passport(s: "Session", passport_no: str) -> Traveler | None:
    normalized = (passport_no or "").strip().upper()
    if not normalized:
        return None
    return s.scalars(
        select(Traveler)
        .where(func.upper(func.trim(Traveler.passport_no)) == normalized)
        .order_by(Traveler.id.asc())
        .limit(1)
    ).first()


# ---------- Mutations ----------
def _ensure_unlocked(t: Traveler) -> None:
    if t.locked:
        raise TravelerLockedError(t.id)


def _apply(t: Traveler, update: FieldUpdate) -> dict[str, Any]:
    old = getattr(t, update.name)
    setattr(t, update.name, update.value)
    return {"old": serialize_value(old), "new": serialize_value(update.value)}


def create_traveler(s: "Session") -> int:
    now = datetime.utcnow()
    t = Traveler(status=DEFAULT_STATUS, locked=False, is_family=False, created_at=now, updated_at=now)
    s.add(t)
    s.flush()

    record_event(s, action="traveler.create", entity_type="Traveler", entity_id=t.id)
    logger.info("Created traveler %s", t.id)
    return t.id


def update_field(s: "Session", traveler_id: int, field: str | None, value: Any) -> Traveler:
    t = get_traveler(s, traveler_id)
    _ensure_unlocked(t)
    update = parse_field_update(field, value)

    change = _apply(t, update)
    t.updated_at = datetime.utcnow()

    record_event(
        s,
        action="traveler.update_field",
        entity_type="Traveler",
        entity_id=t.id,
        metadata={"changes": {update.name: change}},
    )
    return t


def update_fields(s: "Session", traveler_id: int, updates: Any) -> Traveler:
    """Apply several field updates in order; nothing is written unless every field validates."""
    t = get_traveler(s, traveler_id)
    _ensure_unlocked(t)
    parsed = parse_updates(updates)

    changes = {}
    for update in parsed:
        changes[update.name] = _apply(t, update)
    t.updated_at = datetime.utcnow()

    record_event(
        s,
        action="traveler.update_fields",
        entity_type="Traveler",
        entity_id=t.id,
        metadata={"changes": changes},
    )
    return t


def set_lock_status(s: "Session", traveler_id: int, locked: bool) -> bool:
    t = get_traveler(s, traveler_id)
    old = bool(t.locked)
    t.locked = locked
    t.updated_at = datetime.utcnow()

    record_event(
        s,
        action="traveler.lock" if locked else "traveler.unlock",
        entity_type="Traveler",
        entity_id=t.id,
        metadata={"old": old, "new": locked},
    )
    return t.locked


def delete_traveler(s: "Session", storage: "Storage", traveler_id: int) -> None:
    """Hard delete; questions and the invoice cascade, stored files are removed once the delete commits."""
    t = get_traveler(s, traveler_id)
    file_keys = [q.file_path for q in t.questions if q.file_path]
    passport_no = t.passport_no

    s.delete(t)
    s.flush()
    record_event(
        s,
        action="traveler.delete",
        entity_type="Traveler",
        entity_id=traveler_id,
        metadata={"passport_no": passport_no, "files": file_keys},
    )

    for key in file_keys:
        delete_after_commit(s, storage, key)


# ---------- Questions and files ----------
def _question(s: "Session", t: Traveler, field: str, *, create: bool) -> TravelerQuestion | None:
    for q in t.questions:
        if q.field == field:
            return q
    if not create:
        return None
    q = TravelerQuestion(traveler_id=t.id, field=field, updated_at=datetime.utcnow())
    t.questions.append(q)
    return q


def update_question_field(s: "Session", traveler_id: int, field: str | None, value: Any) -> TravelerQuestion:
    t = get_traveler(s, traveler_id)
    _ensure_unlocked(t)
    name = parse_question_field(field)

    q = _question(s, t, name, create=True)
    old = q.value
    q.value = "" if value is None else str(value)
    q.updated_at = datetime.utcnow()
    t.updated_at = q.updated_at

    record_event(
        s,
        action="traveler.update_question",
        entity_type="Traveler",
        entity_id=t.id,
        metadata={"field": name, "old": old, "new": q.value},
    )
    return q


def build_question_storage_key(traveler_id: int, category: str, filename: str) -> str:
    """Deterministic storage key for a question attachment."""
    safe_filename = secure_filename(filename) or "upload.bin"
    return f"travelers/{traveler_id}/{category}/{safe_filename}"


def upload_question_file(
    s: "Session",
    storage: "Storage",
    traveler_id: int,
    category: str | None,
    filename: str,
    file_bytes: bytes,
    content_type: str | None = None,
) -> str:
    """Store an attachment for a question category and return its storage path.

    Storage failures surface as OSError; nothing is recorded in that case.
    """
    t = get_traveler(s, traveler_id)
    _ensure_unlocked(t)
    name = parse_question_field(category)

    key = build_question_storage_key(t.id, name, filename)
    storage.put_bytes(key, file_bytes, content_type=content_type)

    q = _question(s, t, name, create=True)
    previous = q.file_path
    q.file_path = key
    q.original_filename = filename
    q.content_type = content_type
    q.size_bytes = len(file_bytes)
    q.value = secure_filename(filename) or "upload.bin"
    q.updated_at = datetime.utcnow()
    t.updated_at = q.updated_at

    if previous and previous != key:
        delete_after_commit(s, storage, previous)

    record_event(
        s,
        action="traveler.file_upload",
        entity_type="Traveler",
        entity_id=t.id,
        metadata={"field": name, "path": key, "size_bytes": len(file_bytes), "replaced": previous},
    )
    return key


def delete_question_file(s: "Session", storage: "Storage", traveler_id: int, field: str | None) -> bool:
    """Remove the attachment stored for `field`. Returns False when there was none."""
    t = get_traveler(s, traveler_id)
    _ensure_unlocked(t)
    name = parse_question_field(field)

    q = _question(s, t, name, create=False)
    if q is None or not q.file_path:
        return False

    key = q.file_path
    delete_after_commit(s, storage, key)
    q.file_path = None
    q.original_filename = None
    q.content_type = None
    q.size_bytes = None
    q.value = None
    q.updated_at = datetime.utcnow()
    t.updated_at = q.updated_at

    record_event(
        s,
        action="traveler.file_delete",
        entity_type="Traveler",
        entity_id=t.id,
        metadata={"field": name, "path": key},
    )
    return True
