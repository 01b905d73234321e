from __future__ import annotations

import datetime as dt

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Integer,
    SmallInteger,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from src.base.models import BaseDbModel


class AvailabilityRule(BaseDbModel):
    """Weekly recurring opening window. `day_of_week` follows date.weekday()."""

    __tablename__ = "availability_rules"
    __table_args__ = (
        CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_rule_day_of_week"),
        CheckConstraint("start_time < end_time", name="ck_rule_time_order"),
        CheckConstraint("max_appointments >= 1", name="ck_rule_capacity"),
    )

    day_of_week: Mapped[int] = mapped_column(SmallInteger, nullable=False)
    start_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    end_time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    max_appointments: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class TimeSlot(BaseDbModel):
    __tablename__ = "time_slots"
    __table_args__ = (
        UniqueConstraint("date", "time", name="uq_time_slot_date_time"),
        CheckConstraint("max_appointments >= 1", name="ck_slot_capacity"),
    )

    date: Mapped[dt.date] = mapped_column(Date, nullable=False, index=True)
    time: Mapped[dt.time] = mapped_column(Time, nullable=False)
    is_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_appointments: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    @property
    def starts_at(self) -> dt.datetime:
        return dt.datetime.combine(self.date, self.time, tzinfo=dt.timezone.utc)
