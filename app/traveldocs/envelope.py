"""
Uniform response envelope: `{status, data?, message?}`.

Handlers return one of three tagged results and `to_response` decides the
HTTP status, so not-found and error handling read the same everywhere.
"""
from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from flask import Response, current_app

STATUS_SUCCESS = "success"
STATUS_NOT_FOUND = "not_found"
STATUS_ERROR = "error"


@dataclass(frozen=True)
class Ok:
    data: Any = None
    message: str | None = None


@dataclass(frozen=True)
class NotFound:
    message: str | None = None


@dataclass(frozen=True)
class Error:
    message: str
    status_code: int = 500


Result = Union[Ok, NotFound, Error]


def envelope_body(result: Result) -> dict[str, Any]:
    if isinstance(result, Ok):
        body: dict[str, Any] = {"status": STATUS_SUCCESS}
        if result.data is not None:
            body["data"] = result.data
        if result.message is not None:
            body["message"] = result.message
        return body
    if isinstance(result, NotFound):
        body = {"status": STATUS_NOT_FOUND}
        if result.message is not None:
            body["message"] = result.message
        return body
    if isinstance(result, Error):
        return {"status": STATUS_ERROR, "message": result.message}
    raise TypeError(f"Unsupported result type: {type(result).__name__}")


def status_code_for(result: Result) -> int:
    # not_found is a lookup outcome, not a missing route/resource: callers branch on the body.
    if isinstance(result, Error):
        return result.status_code
    return 200


def envelope_json(result: Result) -> bytes:
    """Serialized envelope bytes, stable across calls for the same result."""
    return json.dumps(envelope_body(result), ensure_ascii=False, default=str).encode("utf-8")


def to_response(result: Result) -> Response:
    return current_app.response_class(
        envelope_json(result),
        status=status_code_for(result),
        mimetype="application/json",
    )


def raw_json_response(body: bytes, status: int = 200) -> Response:
    return current_app.response_class(body, status=status, mimetype="application/json")
