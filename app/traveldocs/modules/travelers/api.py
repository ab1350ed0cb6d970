from __future__ import annotations

from typing import Any

from flask import Blueprint, current_app, g, request

from app.traveldocs.cache import ResponseCache
from app.traveldocs.db import db_session
from app.traveldocs.envelope import Error, NotFound, Ok, envelope_json, raw_json_response, to_response
from app.traveldocs.errors import BadRequestError
from app.traveldocs.modules.travelers.invoices import (
    get_invoice,
    invoice_to_dict,
    save_all_invoices,
    save_invoice,
)
from app.traveldocs.modules.travelers.service import (
    create_traveler,
    delete_question_file,
    delete_traveler,
    find_by_passport,
    get_traveler,
    list_travelers,
    set_lock_status,
    traveler_to_dict,
    update_field,
    update_fields,
    update_question_field,
    upload_question_file,
)
from app.traveldocs.storage import storage_from_config

bp = Blueprint("travelers", __name__)

# Cache key of the full listing; the file backend stores it as static_travelers_cache.json.
LIST_CACHE_KEY = "static_travelers_cache"


def travelers_cache() -> ResponseCache:
    return current_app.extensions["travelers_cache"]


def _json_body() -> dict[str, Any]:
    """Parsed JSON object body; an empty body reads as {}."""
    if not request.get_data(cache=True):
        return {}
    payload = request.get_json(silent=True)
    if payload is None:
        raise BadRequestError("Request body must be valid JSON.")
    if not isinstance(payload, dict):
        raise BadRequestError("Request body must be a JSON object.")
    return payload


def _required_int_arg(name: str) -> int:
    value = request.args.get(name, type=int)
    if value is None:
        raise BadRequestError(f"Query parameter '{name}' is required and must be an integer.")
    return value


def _commit_and_invalidate(s) -> None:
    s.commit()
    travelers_cache().invalidate(LIST_CACHE_KEY)


# ---------- Collection ----------
@bp.post("")
def travelers_create():
    s = db_session()
    traveler_id = create_traveler(s)
    _commit_and_invalidate(s)
    return to_response(Ok({"id": traveler_id}))


@bp.get("")
def travelers_list():
    # The listing is always the full set; page/limit/summary are accepted for
    # compatibility with existing clients and do not change the cached body.
    page = request.args.get("page", 1, type=int)
    limit = request.args.get("limit", 50, type=int)
    summary = (request.args.get("summary") or "false").strip().lower() in ("1", "true", "yes")
    current_app.logger.debug("travelers_list page=%s limit=%s summary=%s", page, limit, summary)

    fetch_limit = int(current_app.config.get("TRAVELERS_LIST_FETCH_LIMIT") or 10000)

    def _full_listing() -> bytes:
        return envelope_json(Ok(list_travelers(db_session(), page=1, limit=fetch_limit, summary=False)))

    try:
        body = travelers_cache().get_or_compute(LIST_CACHE_KEY, _full_listing)
    except Exception:
        current_app.logger.exception("Listing travelers failed (request_id=%s)", getattr(g, "request_id", None))
        return current_app.response_class(status=500)
    return raw_json_response(body)


# ---------- Lookups ----------
@bp.get("/find-by-passport")
def travelers_find_by_passport():
    passport_no = request.args.get("passport_no")
    if passport_no is None:
        raise BadRequestError("Query parameter 'passport_no' is required.")
    t = find_by_passport(db_session(), passport_no)
    if t is None:
        return to_response(NotFound())
    return to_response(Ok(traveler_to_dict(t)))


@bp.get("/get_form_data")
def travelers_form_data():
    t = get_traveler(db_session(), _required_int_arg("id"))
    return to_response(Ok(traveler_to_dict(t)))


@bp.get("/get_full_data")
def travelers_full_data():
    t = get_traveler(db_session(), _required_int_arg("id"))
    return to_response(Ok(traveler_to_dict(t)))


# ---------- Single traveler ----------
@bp.get("/<int:traveler_id>")
def traveler_detail(traveler_id: int):
    t = get_traveler(db_session(), traveler_id)
    return to_response(Ok(traveler_to_dict(t)))


@bp.patch("/<int:traveler_id>")
def traveler_update_field(traveler_id: int):
    payload = _json_body()
    s = db_session()
    update_field(s, traveler_id, payload.get("field"), payload.get("value", ""))
    _commit_and_invalidate(s)
    return to_response(Ok(message="Field updated successfully"))


@bp.patch("/<int:traveler_id>/bulk")
def traveler_update_fields(traveler_id: int):
    payload = _json_body()
    s = db_session()
    update_fields(s, traveler_id, payload.get("updates"))
    _commit_and_invalidate(s)
    return to_response(Ok(message="Fields updated successfully"))


@bp.delete("/<int:traveler_id>")
def traveler_delete(traveler_id: int):
    s = db_session()
    delete_traveler(s, storage_from_config(current_app.config), traveler_id)
    _commit_and_invalidate(s)
    return to_response(Ok(message="Traveler deleted successfully"))


@bp.post("/<int:traveler_id>/lock-status")
def traveler_lock_status(traveler_id: int):
    raw = _json_body().get("locked", 0)
    if isinstance(raw, str):
        raw = raw.strip()
    if raw in ("0", "1"):
        raw = int(raw)
    if type(raw) is not int or raw not in (0, 1):
        raise BadRequestError("locked must be 0 or 1.")
    locked = raw == 1
    s = db_session()
    result = set_lock_status(s, traveler_id, locked)
    _commit_and_invalidate(s)
    return to_response(Ok({"locked": result}))


# ---------- Questions and files ----------
@bp.patch("/<int:traveler_id>/questions")
def traveler_update_question(traveler_id: int):
    payload = _json_body()
    s = db_session()
    update_question_field(s, traveler_id, payload.get("field"), payload.get("value", ""))
    _commit_and_invalidate(s)
    return to_response(Ok(message="Question field updated successfully"))


@bp.delete("/<int:traveler_id>/files")
def traveler_file_delete(traveler_id: int):
    field = request.args.get("field")
    if not field:
        raise BadRequestError("Query parameter 'field' is required.")
    s = db_session()
    delete_question_file(s, storage_from_config(current_app.config), traveler_id, field)
    _commit_and_invalidate(s)
    return to_response(Ok(message="File deleted successfully"))


@bp.post("/<int:traveler_id>/files")
def traveler_file_upload(traveler_id: int):
    f = request.files.get("file")
    category = request.form.get("category")
    if not f or not f.filename:
        raise BadRequestError("No file uploaded.")
    if not category:
        raise BadRequestError("Form field 'category' is required.")

    s = db_session()
    try:
        path = upload_question_file(
            s,
            storage_from_config(current_app.config),
            traveler_id,
            category,
            f.filename,
            f.read(),
            content_type=f.mimetype or None,
        )
    except OSError as e:
        s.rollback()
        current_app.logger.error("File upload failed (traveler_id=%s category=%s): %s", traveler_id, category, e)
        return to_response(Error(f"Failed to upload file: {e}"))
    _commit_and_invalidate(s)
    return to_response(Ok({"path": path, "message": "File uploaded successfully"}))


# ---------- Invoices ----------
@bp.post("/save_invoice")
def invoices_save():
    s = db_session()
    inv = save_invoice(s, _json_body())
    _commit_and_invalidate(s)
    return to_response(Ok(invoice_to_dict(inv), "Invoice saved"))


@bp.get("/get_invoice")
def invoices_get():
    inv = get_invoice(db_session(), _required_int_arg("traveler_id"))
    return to_response(Ok(invoice_to_dict(inv)))


@bp.post("/save-all-invoices")
def invoices_save_all():
    s = db_session()
    result = save_all_invoices(s)
    _commit_and_invalidate(s)
    return to_response(Ok(result, result["message"]))
