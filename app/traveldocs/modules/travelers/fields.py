from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from app.traveldocs.errors import BadRequestError, InvalidFieldValueError, UnknownFieldError

TEXT = "text"
DATE = "date"
DECIMAL = "decimal"
INT = "int"
BOOL = "bool"

# Fields editable through the single-field and bulk update endpoints.
# `id` and `locked` are deliberately absent: lock status has its own endpoint.
TRAVELER_FIELDS: dict[str, str] = {
    "first_name": TEXT,
    "last_name": TEXT,
    "email": TEXT,
    "phone": TEXT,
    "date_of_birth": DATE,
    "nationality": TEXT,
    "passport_no": TEXT,
    "passport_issue_date": DATE,
    "passport_expiry_date": DATE,
    "address": TEXT,
    "city": TEXT,
    "postcode": TEXT,
    "country": TEXT,
    "travel_country": TEXT,
    "visa_type": TEXT,
    "visa_center": TEXT,
    "package": TEXT,
    "price": DECIMAL,
    "status": TEXT,
    "priority": TEXT,
    "appointment_date": DATE,
    "payment_status": TEXT,
    "people_count": INT,
    "is_family": BOOL,
    "notes": TEXT,
}

# Columns that reject NULL; clearing them is refused rather than failing at flush.
REQUIRED_FIELDS = frozenset({"status"})

QUESTION_FIELD_RE = re.compile(r"^[a-z][a-z0-9_]{0,63}$")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


@dataclass(frozen=True)
class FieldUpdate:
    """A validated update: the field name, its kind and the coerced value."""

    name: str
    kind: str
    value: Any


def _coerce_text(raw: Any) -> str | None:
    if raw is None:
        return None
    if isinstance(raw, (dict, list)):
        raise ValueError("expected a scalar")
    return str(raw)


def _coerce_date(raw: Any) -> date | None:
    if raw is None:
        return None
    if isinstance(raw, date):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    # Accept full ISO datetimes from pickers; keep the date part.
    return date.fromisoformat(text[:10])


def _coerce_decimal(raw: Any) -> Decimal | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError("expected a number")
    text = str(raw).strip().replace(",", "")
    if not text:
        return None
    try:
        value = Decimal(text)
    except InvalidOperation as e:
        raise ValueError("expected a number") from e
    if not value.is_finite():
        raise ValueError("expected a finite number")
    return value.quantize(Decimal("0.01"))


def _coerce_int(raw: Any) -> int | None:
    if raw is None:
        return None
    if isinstance(raw, bool):
        raise ValueError("expected an integer")
    if isinstance(raw, int):
        return raw
    text = str(raw).strip()
    if not text:
        return None
    return int(text)


def _coerce_bool(raw: Any) -> bool:
    if isinstance(raw, bool):
        return raw
    if raw is None:
        return False
    if isinstance(raw, int):
        return raw != 0
    text = str(raw).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError("expected a boolean")


_COERCERS = {
    TEXT: _coerce_text,
    DATE: _coerce_date,
    DECIMAL: _coerce_decimal,
    INT: _coerce_int,
    BOOL: _coerce_bool,
}


def parse_field_update(name: Any, raw: Any) -> FieldUpdate:
    """Validate one field name and coerce its raw value to the column's kind."""
    if not isinstance(name, str) or not name.strip():
        raise BadRequestError("Field name is required.")
    name = name.strip()
    kind = TRAVELER_FIELDS.get(name)
    if kind is None:
        raise UnknownFieldError(name)
    try:
        value = _COERCERS[kind](raw)
    except (TypeError, ValueError) as e:
        raise InvalidFieldValueError(name, str(e)) from e
    if value is None and name in REQUIRED_FIELDS:
        raise InvalidFieldValueError(name, "value is required")
    return FieldUpdate(name=name, kind=kind, value=value)


def parse_updates(updates: Any) -> list[FieldUpdate]:
    """Validate a whole bulk update before anything is written. Order is preserved."""
    if not isinstance(updates, dict):
        raise BadRequestError("Request body must contain an 'updates' object.")
    return [parse_field_update(name, raw) for name, raw in updates.items()]


def parse_question_field(name: Any) -> str:
    if not isinstance(name, str) or not QUESTION_FIELD_RE.match(name.strip()):
        raise InvalidFieldValueError(str(name), "question field names are lowercase letters, digits and underscores")
    return name.strip()


def serialize_value(value: Any) -> Any:
    """JSON-safe form of a stored column value."""
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Decimal):
        return f"{value:.2f}"
    return value
