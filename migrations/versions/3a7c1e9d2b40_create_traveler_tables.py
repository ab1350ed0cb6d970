"""create travelers, traveler_questions, invoices and audit_events tables

Revision ID: 3a7c1e9d2b40
Revises:
Create Date: 2026-10-19 09:12:41.208317

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3a7c1e9d2b40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the traveler schema."""
    # Check if tables already exist (idempotent; dev databases may come from create_all)
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    existing_tables = set(inspector.get_table_names())

    if "audit_events" not in existing_tables:
        op.create_table(
            "audit_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("request_id", sa.String(64), nullable=True),
            sa.Column("action", sa.String(128), nullable=False),
            sa.Column("entity_type", sa.String(128), nullable=True),
            sa.Column("entity_id", sa.String(128), nullable=True),
            sa.Column("metadata_json", sa.Text(), nullable=True),
            sa.Column("client_ip", sa.String(64), nullable=True),
        )
        op.create_index("idx_audit_events_entity", "audit_events", ["entity_type", "entity_id"])

    if "travelers" not in existing_tables:
        op.create_table(
            "travelers",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("first_name", sa.String(128), nullable=True),
            sa.Column("last_name", sa.String(128), nullable=True),
            sa.Column("email", sa.String(320), nullable=True),
            sa.Column("phone", sa.String(64), nullable=True),
            sa.Column("date_of_birth", sa.Date(), nullable=True),
            sa.Column("nationality", sa.String(128), nullable=True),
            sa.Column("passport_no", sa.String(64), nullable=True),
            sa.Column("passport_issue_date", sa.Date(), nullable=True),
            sa.Column("passport_expiry_date", sa.Date(), nullable=True),
            sa.Column("address", sa.Text(), nullable=True),
            sa.Column("city", sa.String(128), nullable=True),
            sa.Column("postcode", sa.String(32), nullable=True),
            sa.Column("country", sa.String(128), nullable=True),
            sa.Column("travel_country", sa.String(128), nullable=True),
            sa.Column("visa_type", sa.String(128), nullable=True),
            sa.Column("visa_center", sa.String(255), nullable=True),
            sa.Column("package", sa.String(128), nullable=True),
            sa.Column("price", sa.Numeric(10, 2), nullable=True),
            sa.Column("status", sa.String(64), nullable=False, server_default="New"),
            sa.Column("priority", sa.String(32), nullable=True),
            sa.Column("appointment_date", sa.Date(), nullable=True),
            sa.Column("payment_status", sa.String(64), nullable=True),
            sa.Column("people_count", sa.Integer(), nullable=True),
            sa.Column("is_family", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("locked", sa.Boolean(), nullable=False, server_default=sa.text("false")),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        )
        op.create_index("idx_travelers_passport_no", "travelers", ["passport_no"])
        op.create_index("idx_travelers_last_name", "travelers", ["last_name"])
        op.create_index("idx_travelers_status", "travelers", ["status"])

    if "traveler_questions" not in existing_tables:
        op.create_table(
            "traveler_questions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("traveler_id", sa.Integer(), sa.ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False),
            sa.Column("field", sa.String(64), nullable=False),
            sa.Column("value", sa.Text(), nullable=True),
            sa.Column("file_path", sa.String(1024), nullable=True),
            sa.Column("original_filename", sa.String(512), nullable=True),
            sa.Column("content_type", sa.String(128), nullable=True),
            sa.Column("size_bytes", sa.Integer(), nullable=True),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("traveler_id", "field", name="uq_traveler_questions_traveler_field"),
        )

    if "invoices" not in existing_tables:
        op.create_table(
            "invoices",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("traveler_id", sa.Integer(), sa.ForeignKey("travelers.id", ondelete="CASCADE"), nullable=False),
            sa.Column("invoice_number", sa.String(64), nullable=False, unique=True),
            sa.Column("items", sa.JSON(), nullable=False),
            sa.Column("subtotal", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("discount", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("total", sa.Numeric(10, 2), nullable=False, server_default="0"),
            sa.Column("status", sa.String(32), nullable=False, server_default="Draft"),
            sa.Column("notes", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.Column("updated_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint("traveler_id", name="uq_invoices_traveler_id"),
        )


def downgrade() -> None:
    """Drop tables in reverse order."""
    op.drop_table("invoices")
    op.drop_table("traveler_questions")
    op.drop_index("idx_travelers_status", table_name="travelers")
    op.drop_index("idx_travelers_last_name", table_name="travelers")
    op.drop_index("idx_travelers_passport_no", table_name="travelers")
    op.drop_table("travelers")
    op.drop_index("idx_audit_events_entity", table_name="audit_events")
    op.drop_table("audit_events")
