"""Initial schema: users, events, houses with their calendar, bookings.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Users table (member directory, read-only for the booking core)
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(30), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default=sa.text("'adherent'")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'En Attente'")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        sa.CheckConstraint("role IN ('adherent', 'responsable')", name="check_user_role"),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    # Events table
    op.create_table(
        "events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("type", sa.String(20), nullable=False),
        sa.Column("description", sa.String(2000), nullable=False, server_default=sa.text("''")),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("base_price", sa.Numeric(10, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("child_presence", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("child_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("cojoin_presence", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("cojoin_price", sa.Numeric(10, 2), nullable=True),
        sa.Column("number_of_children", sa.Integer(), nullable=True),
        sa.Column("number_of_companions", sa.Integer(), nullable=True),
        sa.Column("max_participants", sa.Integer(), nullable=True),
        sa.Column("current_participants", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        *_timestamps(),
        # The admission UPDATE relies on these: a counter can never go negative
        # and NULL max_participants means uncapped
        sa.CheckConstraint("current_participants >= 0", name="check_current_participants_non_negative"),
        sa.CheckConstraint(
            "max_participants IS NULL OR max_participants >= 1",
            name="check_max_participants_positive",
        ),
        sa.CheckConstraint("end_date >= start_date", name="check_event_dates_ordered"),
    )
    op.create_index("ix_events_id", "events", ["id"])
    op.create_index("ix_events_start_date", "events", ["start_date"])

    # Houses and their calendar of blocked days
    op.create_table(
        "houses",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("location", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("description", sa.String(2000), nullable=False, server_default=sa.text("''")),
        sa.Column("is_available", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("price", sa.JSON(), nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_houses_id", "houses", ["id"])

    op.create_table(
        "house_unavailable_dates",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("house_id", sa.Integer(), sa.ForeignKey("houses.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day", sa.String(10), nullable=False),
        # Set semantics: blocking an already blocked day is a no-op (ON CONFLICT DO NOTHING)
        sa.UniqueConstraint("house_id", "day", name="uq_house_unavailable_day"),
    )
    op.create_index("ix_house_unavailable_dates_house_id", "house_unavailable_dates", ["house_id"])

    # Bookings table
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("activity_id", sa.Integer(), nullable=False),
        sa.Column("activity_category", sa.String(20), nullable=False, server_default=sa.text("'Sejour Maison'")),
        sa.Column("activity_model", sa.String(10), nullable=False),
        sa.Column("booking_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("booking_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("participants", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'en attente'")),
        *_timestamps(),
        sa.CheckConstraint("activity_model IN ('House', 'Event')", name="check_booking_activity_model"),
        sa.CheckConstraint("booking_end >= booking_start", name="check_booking_period_ordered"),
        sa.CheckConstraint(
            "status IN ('en attente', 'confirmé', 'annulé', 'terminé')",
            name="check_booking_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_activity", "bookings", ["activity_model", "activity_id"])
    # One booking per member per event. House stays are excluded: a member may
    # hold several non-overlapping stays in the same house.
    op.create_index(
        "uq_user_event_booking",
        "bookings",
        ["user_id", "activity_id"],
        unique=True,
        postgresql_where=sa.text("activity_model = 'Event'"),
    )


def downgrade() -> None:
    op.drop_table("bookings")
    op.drop_table("house_unavailable_dates")
    op.drop_table("houses")
    op.drop_table("events")
    op.drop_table("users")
