from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from app.traveldocs.audit import record_event
from app.traveldocs.errors import BadRequestError, InvoiceNotFoundError
from app.traveldocs.modules.travelers.fields import serialize_value
from app.traveldocs.modules.travelers.models import Invoice, Traveler
from app.traveldocs.modules.travelers.service import get_traveler

if TYPE_CHECKING:
    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

VALID_INVOICE_STATUSES = ("Draft", "Issued", "Paid", "Cancelled")
ZERO = Decimal("0.00")


def invoice_number_for(traveler_id: int) -> str:
    return f"INV-{traveler_id:06d}"


def _money(raw: Any, label: str) -> Decimal:
    if raw is None or raw == "":
        return ZERO
    if isinstance(raw, bool):
        raise BadRequestError(f"{label} must be a number.")
    try:
        value = Decimal(str(raw).strip().replace(",", ""))
    except InvalidOperation as e:
        raise BadRequestError(f"{label} must be a number.") from e
    if not value.is_finite() or value < 0:
        raise BadRequestError(f"{label} must be a non-negative number.")
    return value.quantize(Decimal("0.01"))


def parse_items(raw: Any) -> list[dict[str, Any]]:
    """Normalize invoice lines to {description, quantity, unit_price} with unit_price as a 2dp string."""
    if not isinstance(raw, list):
        raise BadRequestError("items must be a list.")
    items = []
    for i, line in enumerate(raw, start=1):
        if not isinstance(line, dict):
            raise BadRequestError(f"Invoice line {i} must be an object.")
        description = str(line.get("description") or "").strip()
        if not description:
            raise BadRequestError(f"Invoice line {i} needs a description.")
        try:
            quantity = int(line.get("quantity", 1))
        except (TypeError, ValueError) as e:
            raise BadRequestError(f"Invoice line {i} quantity must be an integer.") from e
        if quantity < 1:
            raise BadRequestError(f"Invoice line {i} quantity must be at least 1.")
        unit_price = _money(line.get("unit_price"), f"Invoice line {i} unit_price")
        items.append({"description": description, "quantity": quantity, "unit_price": f"{unit_price:.2f}"})
    return items


def default_items(t: Traveler) -> list[dict[str, Any]]:
    if t.package:
        description = t.package
    elif t.visa_type:
        description = f"{t.visa_type} visa application"
    else:
        description = "Visa application service"
    price = t.price if t.price is not None else ZERO
    return [{"description": description, "quantity": 1, "unit_price": f"{price:.2f}"}]


def compute_totals(items: list[dict[str, Any]], discount: Decimal) -> tuple[Decimal, Decimal]:
    subtotal = sum((Decimal(line["unit_price"]) * line["quantity"] for line in items), ZERO)
    total = max(subtotal - discount, ZERO)
    return subtotal.quantize(Decimal("0.01")), total.quantize(Decimal("0.01"))


def invoice_to_dict(inv: Invoice) -> dict[str, Any]:
    return {
        "id": inv.id,
        "traveler_id": inv.traveler_id,
        "invoice_number": inv.invoice_number,
        "items": list(inv.items or []),
        "subtotal": serialize_value(inv.subtotal),
        "discount": serialize_value(inv.discount),
        "total": serialize_value(inv.total),
        "status": inv.status,
        "notes": inv.notes,
        "created_at": serialize_value(inv.created_at),
        "updated_at": serialize_value(inv.updated_at),
    }


def save_invoice(s: "Session", payload: Any) -> Invoice:
    """Create or update the traveler's invoice from a save request."""
    if not isinstance(payload, dict):
        raise BadRequestError("Invoice payload must be an object.")
    try:
        traveler_id = int(payload.get("traveler_id"))
    except (TypeError, ValueError) as e:
        raise BadRequestError("traveler_id is required.") from e

    t = get_traveler(s, traveler_id)
    inv = t.invoice
    now = datetime.utcnow()
    created = inv is None
    if inv is None:
        inv = Invoice(
            traveler_id=t.id,
            invoice_number=invoice_number_for(t.id),
            items=default_items(t),
            discount=ZERO,
            status="Draft",
            created_at=now,
        )
        t.invoice = inv

    if "items" in payload:
        inv.items = parse_items(payload.get("items"))
    if "discount" in payload:
        inv.discount = _money(payload.get("discount"), "discount")
    if "notes" in payload:
        inv.notes = (payload.get("notes") or "").strip() or None
    if "status" in payload:
        status = (payload.get("status") or "").strip()
        if status not in VALID_INVOICE_STATUSES:
            raise BadRequestError(f"Invalid status. Must be one of: {', '.join(VALID_INVOICE_STATUSES)}")
        inv.status = status

    inv.subtotal, inv.total = compute_totals(inv.items, inv.discount)
    inv.updated_at = now
    s.flush()

    record_event(
        s,
        action="invoice.create" if created else "invoice.update",
        entity_type="Invoice",
        entity_id=inv.id,
        metadata={"traveler_id": t.id, "total": inv.total, "status": inv.status},
    )
    return inv


def get_invoice(s: "Session", traveler_id: int) -> Invoice:
    inv = s.scalars(select(Invoice).where(Invoice.traveler_id == traveler_id)).first()
    if inv is None:
        raise InvoiceNotFoundError(traveler_id)
    return inv


def save_all_invoices(s: "Session") -> dict[str, Any]:
    """Generate a default invoice for every traveler that has none yet."""
    travelers = s.scalars(select(Traveler).order_by(Traveler.id.asc())).all()
    now = datetime.utcnow()
    created = 0
    skipped = 0
    for t in travelers:
        if t.invoice is not None:
            skipped += 1
            continue
        items = default_items(t)
        subtotal, total = compute_totals(items, ZERO)
        t.invoice = Invoice(
            traveler_id=t.id,
            invoice_number=invoice_number_for(t.id),
            items=items,
            subtotal=subtotal,
            discount=ZERO,
            total=total,
            status="Draft",
            created_at=now,
            updated_at=now,
        )
        created += 1
    s.flush()

    message = f"Generated {created} invoice(s); {skipped} traveler(s) already invoiced."
    record_event(
        s,
        action="invoice.save_all",
        entity_type="Invoice",
        metadata={"created": created, "skipped": skipped},
    )
    logger.info(message)
    return {"message": message, "created": created, "skipped": skipped}
