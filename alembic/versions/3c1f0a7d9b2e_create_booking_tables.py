"""create_booking_tables

Revision ID: 3c1f0a7d9b2e
Revises:
Create Date: 2026-10-17 09:12:41.508113

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "3c1f0a7d9b2e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column(
            "created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=False
        ),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "profiles",
        sa.Column("auth_uid", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("address", sa.String(), nullable=True),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("zip_code", sa.String(), nullable=True),
        sa.Column(
            "role", sa.Enum("customer", "admin", name="userrole"), nullable=False
        ),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("auth_uid"),
        sa.UniqueConstraint("email"),
    )
    op.create_table(
        "subscription_plans",
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("duration_months", sa.Integer(), nullable=False),
        sa.Column("washes_per_month", sa.Integer(), nullable=False),
        sa.Column("features", postgresql.JSONB(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "availability_rules",
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("max_appointments", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_rule_day_of_week"),
        sa.CheckConstraint("start_time < end_time", name="ck_rule_time_order"),
        sa.CheckConstraint("max_appointments >= 1", name="ck_rule_capacity"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "time_slots",
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("time", sa.Time(), nullable=False),
        sa.Column("is_available", sa.Boolean(), nullable=False),
        sa.Column("max_appointments", sa.Integer(), nullable=False),
        *_base_columns(),
        sa.CheckConstraint("max_appointments >= 1", name="ck_slot_capacity"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("date", "time", name="uq_time_slot_date_time"),
    )
    op.create_index("ix_time_slots_date", "time_slots", ["date"])
    op.create_table(
        "vehicles",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("make", sa.String(), nullable=False),
        sa.Column("model", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("color", sa.String(), nullable=True),
        sa.Column("license_plate", sa.String(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_vehicles_user_id", "vehicles", ["user_id"])
    op.create_table(
        "user_subscriptions",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("plan_id", sa.Uuid(), nullable=False),
        sa.Column("stripe_subscription_id", sa.String(), nullable=True),
        sa.Column(
            "status",
            sa.Enum(
                "active",
                "canceled",
                "past_due",
                "incomplete",
                name="subscriptionstatus",
            ),
            nullable=False,
        ),
        sa.Column("current_period_start", sa.DateTime(), nullable=True),
        sa.Column("current_period_end", sa.DateTime(), nullable=True),
        sa.Column("remaining_washes", sa.Integer(), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(["plan_id"], ["subscription_plans.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_user_subscriptions_user_id", "user_subscriptions", ["user_id"]
    )
    op.create_table(
        "appointments",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("vehicle_id", sa.Uuid(), nullable=True),
        sa.Column("time_slot_id", sa.Uuid(), nullable=False),
        sa.Column(
            "service_type",
            sa.Enum("basic", "premium", "deluxe", name="servicetype"),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "scheduled",
                "in_progress",
                "completed",
                "canceled",
                name="appointmentstatus",
            ),
            nullable=False,
        ),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.Column("total_price", sa.Float(), nullable=True),
        sa.Column("paid_with_subscription", sa.Boolean(), nullable=False),
        *_base_columns(),
        sa.ForeignKeyConstraint(["time_slot_id"], ["time_slots.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["vehicle_id"], ["vehicles.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_appointments_user_id", "appointments", ["user_id"])
    op.create_index("ix_appointments_time_slot_id", "appointments", ["time_slot_id"])
    op.create_table(
        "notifications",
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "type",
            sa.Enum("reminder", "confirmation", "promotion", name="notificationtype"),
            nullable=False,
        ),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("appointment_id", sa.Uuid(), nullable=True),
        *_base_columns(),
        sa.ForeignKeyConstraint(
            ["appointment_id"], ["appointments.id"], ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(["user_id"], ["profiles.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("notifications")
    op.drop_table("appointments")
    op.drop_table("user_subscriptions")
    op.drop_table("vehicles")
    op.drop_table("time_slots")
    op.drop_table("availability_rules")
    op.drop_table("subscription_plans")
    op.drop_table("profiles")
    for enum_name in (
        "notificationtype",
        "appointmentstatus",
        "servicetype",
        "subscriptionstatus",
        "userrole",
    ):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
