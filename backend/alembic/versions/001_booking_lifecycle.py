# backend/alembic/versions/001_booking_lifecycle.py
"""Booking lifecycle - members, class sessions, bookings

Revision ID: 001_booking_lifecycle
Revises:
Create Date: 2026-10-18 00:00:00.000000

Creates the class session aggregate with its capacity counters and the
bookings table with the one-active-booking-per-member partial unique index.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "001_booking_lifecycle"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_STATUS_SQL = "status IN ('CONFIRMED', 'WAITLISTED', 'CHECKED_IN')"


def upgrade() -> None:
    op.create_table(
        "members",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_members_tenant_id", "members", ["tenant_id"])
    op.create_index("uq_members_tenant_email", "members", ["tenant_id", "email"], unique=True)

    op.create_table(
        "class_sessions",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("class_type_id", sa.String(26), nullable=False),
        sa.Column("location_id", sa.String(26), nullable=False),
        sa.Column("instructor_id", sa.String(26), nullable=True),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("spots_booked", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("booking_sequence", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(20), nullable=False, server_default="SCHEDULED"),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("capacity > 0", name="ck_class_sessions_capacity_positive"),
        sa.CheckConstraint(
            "spots_booked >= 0 AND spots_booked <= capacity",
            name="ck_class_sessions_spots_within_capacity",
        ),
        sa.CheckConstraint("end_time > start_time", name="ck_class_sessions_time_order"),
        sa.CheckConstraint(
            "status IN ('SCHEDULED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')",
            name="ck_class_sessions_status",
        ),
    )
    op.create_index("ix_class_sessions_tenant_id", "class_sessions", ["tenant_id"])
    op.create_index("ix_class_sessions_start_time", "class_sessions", ["start_time"])
    op.create_index("ix_class_sessions_tenant_start", "class_sessions", ["tenant_id", "start_time"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.String(26), primary_key=True),
        sa.Column("tenant_id", sa.String(26), nullable=False),
        sa.Column("member_id", sa.String(26), sa.ForeignKey("members.id"), nullable=False),
        sa.Column(
            "class_session_id", sa.String(26), sa.ForeignKey("class_sessions.id"), nullable=False
        ),
        sa.Column("status", sa.String(20), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("promoted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_by", sa.String(26), nullable=True),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_in_method", sa.String(20), nullable=True),
        sa.Column("no_show_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint(
            "status IN ('CONFIRMED', 'WAITLISTED', 'CHECKED_IN', 'NO_SHOW', 'CANCELLED')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint(
            "check_in_method IS NULL OR check_in_method IN ('MANUAL', 'QR_SCAN')",
            name="ck_bookings_check_in_method",
        ),
    )
    op.create_index("ix_bookings_tenant_id", "bookings", ["tenant_id"])
    op.create_index("ix_bookings_status", "bookings", ["status"])
    op.create_index(
        "ix_bookings_session_queue",
        "bookings",
        ["class_session_id", "status", "created_at", "sequence"],
    )
    op.create_index("ix_bookings_member_status", "bookings", ["member_id", "status"])
    op.create_index(
        "uq_bookings_active_member_session",
        "bookings",
        ["member_id", "class_session_id"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_STATUS_SQL),
        sqlite_where=sa.text(ACTIVE_STATUS_SQL),
    )


def downgrade() -> None:
    op.drop_index("uq_bookings_active_member_session", table_name="bookings")
    op.drop_index("ix_bookings_member_status", table_name="bookings")
    op.drop_index("ix_bookings_session_queue", table_name="bookings")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_tenant_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_class_sessions_tenant_start", table_name="class_sessions")
    op.drop_index("ix_class_sessions_start_time", table_name="class_sessions")
    op.drop_index("ix_class_sessions_tenant_id", table_name="class_sessions")
    op.drop_table("class_sessions")

    op.drop_index("uq_members_tenant_email", table_name="members")
    op.drop_index("ix_members_tenant_id", table_name="members")
    op.drop_table("members")
