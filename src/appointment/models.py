from __future__ import annotations

import enum
from uuid import UUID

from sqlalchemy import Boolean, Float, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.base.models import BaseDbModel, value_enum
from src.scheduling.models import TimeSlot
from src.user.models import UserProfile
from src.vehicle.models import Vehicle


class ServiceType(enum.Enum):
    BASIC = "basic"
    PREMIUM = "premium"
    DELUXE = "deluxe"


class AppointmentStatus(enum.Enum):
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELED = "canceled"


SERVICE_PRICES: dict[ServiceType, float] = {
    ServiceType.BASIC: 15.0,
    ServiceType.PREMIUM: 25.0,
    ServiceType.DELUXE: 45.0,
}

# Statuses that hold a place in a time slot.
ACTIVE_STATUSES = (AppointmentStatus.SCHEDULED, AppointmentStatus.IN_PROGRESS)


class Appointment(BaseDbModel):
    __tablename__ = "appointments"

    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    vehicle_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("vehicles.id", ondelete="SET NULL"), nullable=True
    )
    time_slot_id: Mapped[UUID] = mapped_column(
        ForeignKey("time_slots.id"), nullable=False, index=True
    )
    service_type: Mapped[ServiceType] = mapped_column(
        value_enum(ServiceType), nullable=False
    )
    status: Mapped[AppointmentStatus] = mapped_column(
        value_enum(AppointmentStatus),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)
    total_price: Mapped[float | None] = mapped_column(Float, nullable=True)
    paid_with_subscription: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    user: Mapped[UserProfile] = relationship()
    vehicle: Mapped[Vehicle | None] = relationship()
    time_slot: Mapped[TimeSlot] = relationship()

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES
