from __future__ import annotations

import enum
from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.models import BaseDbModel, UTCDateTime, value_enum
from src.base.schemas import PydanticJSONB


class SubscriptionStatus(enum.Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    INCOMPLETE = "incomplete"


class SubscriptionPlan(BaseDbModel):
    __tablename__ = "subscription_plans"

    name: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[float] = mapped_column(Float, nullable=False)
    duration_months: Mapped[int] = mapped_column(Integer, nullable=False)
    washes_per_month: Mapped[int] = mapped_column(Integer, nullable=False)
    features: Mapped[list[str]] = mapped_column(
        PydanticJSONB(list[str]), nullable=False, default=list
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class UserSubscription(BaseDbModel):
    __tablename__ = "user_subscriptions"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    plan_id: Mapped[UUID] = mapped_column(
        ForeignKey("subscription_plans.id"), nullable=False
    )
    stripe_subscription_id: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[SubscriptionStatus] = mapped_column(
        value_enum(SubscriptionStatus),
        nullable=False,
        default=SubscriptionStatus.INCOMPLETE,
    )
    current_period_start: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    current_period_end: Mapped[datetime | None] = mapped_column(
        UTCDateTime(), nullable=True
    )
    remaining_washes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    plan: Mapped[SubscriptionPlan] = relationship(lazy="joined", innerjoin=True)
