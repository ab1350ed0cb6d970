"""
Domain errors raised by the traveler services.

Each error carries the HTTP status the app-level error handler renders it
with, so route handlers let them propagate untouched.
"""
from __future__ import annotations


class TravelerError(Exception):
    status_code = 400

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class BadRequestError(TravelerError):
    status_code = 400


class UnknownFieldError(TravelerError):
    status_code = 400

    def __init__(self, field: str) -> None:
        super().__init__(f"Unknown field: {field}")
        self.field = field


class InvalidFieldValueError(TravelerError):
    status_code = 400

    def __init__(self, field: str, detail: str) -> None:
        super().__init__(f"Invalid value for {field}: {detail}")
        self.field = field


class TravelerNotFoundError(TravelerError):
    status_code = 404

    def __init__(self, traveler_id: int) -> None:
        super().__init__(f"Traveler not found: {traveler_id}")
        self.traveler_id = traveler_id


class InvoiceNotFoundError(TravelerError):
    status_code = 404

    def __init__(self, traveler_id: int) -> None:
        super().__init__(f"Invoice not found for traveler: {traveler_id}")
        self.traveler_id = traveler_id


class TravelerLockedError(TravelerError):
    status_code = 409

    def __init__(self, traveler_id: int) -> None:
        super().__init__(f"Traveler {traveler_id} is locked")
        self.traveler_id = traveler_id
