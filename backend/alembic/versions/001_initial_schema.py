"""Initial schema: users, events with distance tiers, bookings, companions,
check-ins, badges and avatar borders.

Revision ID: 001
Revises: None
Create Date: 2026-10-17
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_BOOKING = "state NOT IN ('refunded', 'voided')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # Borders come first: users.active_border_id points at them
    op.create_table(
        "avatar_borders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("slug", sa.String(100), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("tier", sa.String(20), nullable=False, server_default=sa.text("'common'")),
        sa.Column("criteria_type", sa.String(30), nullable=False),
        sa.Column("criteria_value", sa.JSON(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default=sa.text("0")),
    )

    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False, server_default=sa.text("''")),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "active_border_id",
            sa.Uuid(),
            sa.ForeignKey("avatar_borders.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    # Events: the event row is the capacity pool unless it has distance tiers
    op.create_table(
        "events",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("category", sa.String(20), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("reserved_slots", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("organizer_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("reserved_slots >= 0", name="check_event_reserved_non_negative"),
        sa.CheckConstraint("capacity > 0", name="check_event_capacity_positive"),
        sa.CheckConstraint("reserved_slots <= capacity", name="check_event_reserved_lte_capacity"),
        sa.CheckConstraint("price >= 0", name="check_event_price_non_negative"),
    )
    op.create_index("ix_events_date", "events", ["date"])
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])

    op.create_table(
        "event_distances",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("label", sa.String(100), nullable=True),
        sa.Column("distance_km", sa.Float(), nullable=False),
        sa.Column("price", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("reserved_slots", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint("reserved_slots >= 0", name="check_tier_reserved_non_negative"),
        sa.CheckConstraint("capacity > 0", name="check_tier_capacity_positive"),
        sa.CheckConstraint("reserved_slots <= capacity", name="check_tier_reserved_lte_capacity"),
        sa.CheckConstraint("price >= 0", name="check_tier_price_non_negative"),
    )
    op.create_index("ix_event_distances_event_id", "event_distances", ["event_id"])

    op.create_table(
        "mountains",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("province", sa.String(100), nullable=False),
    )
    op.create_index("ix_mountains_province", "mountains", ["province"])

    op.create_table(
        "event_mountains",
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("mountain_id", sa.Uuid(), sa.ForeignKey("mountains.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "bookings",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("tier_id", sa.Uuid(), sa.ForeignKey("event_distances.id"), nullable=True),
        sa.Column("state", sa.String(20), nullable=False, server_default=sa.text("'awaiting_payment'")),
        sa.Column("payment_method", sa.String(10), nullable=False),
        sa.Column("payment_proof_ref", sa.String(500), nullable=True),
        sa.Column("qr_token", sa.String(200), nullable=True),
        sa.Column("payment_verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("payment_verified_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "payment_method IN ('gcash', 'maya', 'cash', 'free')", name="check_booking_payment_method"
        ),
    )
    op.create_index("ix_bookings_user_id", "bookings", ["user_id"])
    op.create_index("ix_bookings_event_id", "bookings", ["event_id"])
    # One live booking per user per event; refunded/voided ones don't block rebooking
    op.create_index(
        "uq_active_booking_user_event",
        "bookings",
        ["user_id", "event_id"],
        unique=True,
        postgresql_where=sa.text(ACTIVE_BOOKING),
        sqlite_where=sa.text(ACTIVE_BOOKING),
    )

    op.create_table(
        "booking_companions",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("booking_id", sa.Uuid(), sa.ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("qr_token", sa.String(200), nullable=True),
        sa.Column("tier_id", sa.Uuid(), sa.ForeignKey("event_distances.id"), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("status IN ('pending', 'confirmed', 'cancelled')", name="check_companion_status"),
    )
    op.create_index("ix_booking_companions_booking_id", "booking_companions", ["booking_id"])

    # The unique constraints are what make concurrent double scans safe
    op.create_table(
        "event_checkins",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id"), nullable=False),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("companion_id", sa.Uuid(), sa.ForeignKey("booking_companions.id"), nullable=True),
        sa.Column("method", sa.String(10), nullable=False, server_default=sa.text("'scan'")),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("checked_in_by", sa.Uuid(), sa.ForeignKey("users.id"), nullable=True),
        sa.UniqueConstraint("event_id", "user_id", name="uq_checkin_event_user"),
        sa.UniqueConstraint("event_id", "companion_id", name="uq_checkin_event_companion"),
        sa.CheckConstraint("(user_id IS NULL) <> (companion_id IS NULL)", name="check_checkin_single_principal"),
        sa.CheckConstraint("method IN ('scan', 'manual')", name="check_checkin_method"),
    )
    op.create_index("ix_event_checkins_event_id", "event_checkins", ["event_id"])
    # Pioneer rank and history snapshots read check-ins per user in time order
    op.create_index("ix_event_checkins_user_time", "event_checkins", ["user_id", "checked_in_at"])

    op.create_table(
        "badges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("event_id", sa.Uuid(), sa.ForeignKey("events.id"), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("image_url", sa.String(500), nullable=True),
        sa.Column("category", sa.String(20), nullable=False, server_default=sa.text("'special'")),
        sa.Column("rarity", sa.String(20), nullable=False, server_default=sa.text("'common'")),
        sa.Column("type", sa.String(10), nullable=False, server_default=sa.text("'event'")),
        sa.Column("criteria_key", sa.String(50), nullable=True, unique=True),
        *_timestamps(),
    )
    op.create_index("ix_badges_event_id", "badges", ["event_id"])

    op.create_table(
        "user_badges",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("badge_id", sa.Uuid(), sa.ForeignKey("badges.id"), nullable=False),
        sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "badge_id", name="uq_user_badge"),
    )
    op.create_index("ix_user_badges_user_id", "user_badges", ["user_id"])

    op.create_table(
        "user_avatar_borders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("user_id", sa.Uuid(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("border_id", sa.Uuid(), sa.ForeignKey("avatar_borders.id"), nullable=False),
        sa.Column("awarded_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "border_id", name="uq_user_border"),
    )
    op.create_index("ix_user_avatar_borders_user_id", "user_avatar_borders", ["user_id"])


def downgrade() -> None:
    op.drop_table("user_avatar_borders")
    op.drop_table("user_badges")
    op.drop_table("badges")
    op.drop_table("event_checkins")
    op.drop_table("booking_companions")
    op.drop_table("bookings")
    op.drop_table("event_mountains")
    op.drop_table("mountains")
    op.drop_table("event_distances")
    op.drop_table("events")
    op.drop_table("users")
    op.drop_table("avatar_borders")
