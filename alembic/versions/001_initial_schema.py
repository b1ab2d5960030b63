"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all initial tables for HostelHub:
- Hostels, staff, rooms and beds
- Bookings
- Advance payments
- Audit logs
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== INVENTORY ====================
    op.create_table(
        "hostels",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("owner_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("city", sa.String(100)),
        sa.Column("advance_payment_amount", sa.Integer, default=0),
        sa.Column("currency", sa.String(3), default="INR"),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "hostel_staff",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("hostel_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("can_manage_bookings", sa.Boolean, default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("hostel_id", "user_id", name="uq_hostel_staff_member"),
    )

    op.create_table(
        "rooms",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("hostel_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("floor_number", sa.Integer, default=0),
        sa.Column("room_number", sa.String(20), nullable=False),
        sa.Column("room_type", sa.String(20), nullable=False, index=True),
        sa.Column("monthly_rent", sa.Integer, default=0),
        sa.Column("occupied_beds", sa.Integer, nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("hostel_id", "room_number", name="uq_room_number_per_hostel"),
        sa.CheckConstraint("occupied_beds >= 0", name="ck_room_occupied_beds_non_negative"),
    )

    op.create_table(
        "beds",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("room_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("hostel_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True),
        sa.Column("bed_number", sa.String(10), nullable=False),
        sa.Column("is_occupied", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), unique=True),
        sa.Column("occupied_from", sa.DateTime(timezone=True)),
        sa.Column("is_active", sa.Boolean, default=True),
        sa.UniqueConstraint("room_id", "bed_number", name="uq_bed_number_per_room"),
        sa.CheckConstraint(
            "(is_occupied AND booking_id IS NOT NULL) OR (NOT is_occupied AND booking_id IS NULL)",
            name="ck_bed_occupancy_matches_booking",
        ),
    )
    # Free-bed scan used by the allocation engine
    op.create_index(
        "ix_beds_free",
        "beds",
        ["hostel_id", "room_id", "bed_number"],
        postgresql_where=sa.text("NOT is_occupied"),
    )

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_number", sa.String(20), unique=True, nullable=False, index=True),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("hostel_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("hostels.id"), nullable=False, index=True),
        sa.Column("full_name", sa.String(200), nullable=False),
        sa.Column("mobile", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("room_type_preference", sa.String(20), nullable=False),
        sa.Column("check_in", sa.Date, nullable=False),
        sa.Column("check_out", sa.Date, nullable=False),
        sa.Column("occupants", sa.Integer, default=1),
        sa.Column("notes", sa.Text),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("rejection_reason", sa.Text),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("cancelled_by", sa.String(10)),
        sa.Column("room_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rooms.id")),
        sa.Column("bed_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("beds.id")),
        sa.Column("advance_amount", sa.Integer, default=0),
        sa.Column("payment_status", sa.String(20), default="pending"),
        sa.Column("approved_by", postgresql.UUID(as_uuid=True)),
        sa.Column("rejected_by", postgresql.UUID(as_uuid=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("approved_at", sa.DateTime(timezone=True)),
        sa.Column("rejected_at", sa.DateTime(timezone=True)),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("checked_out_at", sa.DateTime(timezone=True)),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
    )
    op.create_index("ix_bookings_student_hostel_status", "bookings", ["student_id", "hostel_id", "status"])

    # ==================== PAYMENTS ====================
    op.create_table(
        "advance_payments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("student_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("amount", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), default="INR"),
        sa.Column("payment_method", sa.String(30), nullable=False),
        sa.Column("transaction_reference", sa.String(100)),
        sa.Column("gateway_response", postgresql.JSONB),
        sa.Column("status", sa.String(20), default="pending", index=True),
        sa.Column("failure_reason", sa.Text),
        sa.Column("verified_by", postgresql.UUID(as_uuid=True)),
        sa.Column("initiated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )

    # ==================== ADMIN ====================
    op.create_table(
        "audit_logs",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("action", sa.String(100), nullable=False, index=True),
        sa.Column("resource_type", sa.String(50), nullable=False, index=True),
        sa.Column("resource_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("old_values", postgresql.JSONB),
        sa.Column("new_values", postgresql.JSONB),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("audit_logs")
    op.drop_table("advance_payments")
    op.drop_index("ix_bookings_student_hostel_status", table_name="bookings")
    op.drop_table("bookings")
    op.drop_index("ix_beds_free", table_name="beds")
    op.drop_table("beds")
    op.drop_table("rooms")
    op.drop_table("hostel_staff")
    op.drop_table("hostels")
