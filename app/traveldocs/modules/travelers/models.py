from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.traveldocs.models import Base


class Traveler(Base):
    __tablename__ = "travelers"
    __table_args__ = (
        Index("idx_travelers_passport_no", "passport_no"),
        Index("idx_travelers_last_name", "last_name"),
        Index("idx_travelers_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    # Identity
    first_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(128), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    nationality: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Passport
    passport_no: Mapped[str | None] = mapped_column(String(64), nullable=True)
    passport_issue_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    passport_expiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Address
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    city: Mapped[str | None] = mapped_column(String(128), nullable=True)
    postcode: Mapped[str | None] = mapped_column(String(32), nullable=True)
    country: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # Application
    travel_country: Mapped[str | None] = mapped_column(String(128), nullable=True)
    visa_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    visa_center: Mapped[str | None] = mapped_column(String(255), nullable=True)
    package: Mapped[str | None] = mapped_column(String(128), nullable=True)
    price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    status: Mapped[str] = mapped_column(String(64), nullable=False, default="New")
    priority: Mapped[str | None] = mapped_column(String(32), nullable=True)
    appointment_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    payment_status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    people_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_family: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    locked: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    questions: Mapped[list["TravelerQuestion"]] = relationship(
        "TravelerQuestion",
        back_populates="traveler",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="TravelerQuestion.field",
    )
    invoice: Mapped[Optional["Invoice"]] = relationship(
        "Invoice",
        back_populates="traveler",
        cascade="all, delete-orphan",
        uselist=False,
        lazy="selectin",
    )


class TravelerQuestion(Base):
    """One answer slot per (traveler, field). File answers keep their storage key in file_path."""

    __tablename__ = "traveler_questions"
    __table_args__ = (
        UniqueConstraint("traveler_id", "field", name="uq_traveler_questions_traveler_field"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    traveler_id: Mapped[int] = mapped_column(ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False)
    field: Mapped[str] = mapped_column(String(64), nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)

    file_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    original_filename: Mapped[str | None] = mapped_column(String(512), nullable=True)
    content_type: Mapped[str | None] = mapped_column(String(128), nullable=True)
    size_bytes: Mapped[int | None] = mapped_column(Integer, nullable=True)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    traveler: Mapped[Traveler] = relationship("Traveler", back_populates="questions")


class Invoice(Base):
    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint("traveler_id", name="uq_invoices_traveler_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    traveler_id: Mapped[int] = mapped_column(ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False)
    invoice_number: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    # [{"description": str, "quantity": int, "unit_price": "12.50"}]
    items: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="Draft")  # Draft, Issued, Paid
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=False), nullable=False, default=datetime.utcnow)

    traveler: Mapped[Traveler] = relationship("Traveler", back_populates="invoice")
