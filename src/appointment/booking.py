"""
Booking and cancellation.

A booking locks its time slot row (SELECT ... FOR UPDATE) before counting the
slot's active appointments, so two concurrent bookings for the last place in
a slot serialize on the database and the loser gets a 409.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.appointment.models import (
    ACTIVE_STATUSES,
    SERVICE_PRICES,
    Appointment,
    AppointmentStatus,
    ServiceType,
)
from src.notification.models import NotificationType
from src.notification.service import notify
from src.plan.service import covers_wash, get_active_subscription
from src.scheduling.models import TimeSlot
from src.scheduling.service import count_active_bookings
from src.user.models import UserProfile
from src.vehicle.models import Vehicle

logger = logging.getLogger(__name__)


async def book_appointment(
    session: AsyncSession,
    user: UserProfile,
    *,
    vehicle_id: UUID,
    time_slot_id: UUID,
    service_type: ServiceType,
    special_instructions: str | None,
    now: datetime,
) -> Appointment:
    vehicle_stmt = select(Vehicle).where(
        Vehicle.id == vehicle_id, Vehicle.user_id == user.id
    )
    vehicle = (await session.execute(vehicle_stmt)).scalar_one_or_none()
    if vehicle is None:
        raise HTTPException(
            status_code=404,
            detail="Vehicle not found or does not belong to the user",
        )

    slot_stmt = select(TimeSlot).where(TimeSlot.id == time_slot_id).with_for_update()
    slot = (await session.execute(slot_stmt)).scalar_one_or_none()
    if slot is None:
        raise HTTPException(status_code=404, detail="Time slot not found")
    if not slot.is_available:
        raise HTTPException(status_code=409, detail="Time slot is not available")
    if slot.starts_at <= now:
        raise HTTPException(status_code=409, detail="Time slot has already started")

    booked = await count_active_bookings(session, slot.id)
    if booked >= slot.max_appointments:
        raise HTTPException(status_code=409, detail="Time slot is fully booked")

    subscription = await get_active_subscription(session, user.id, for_update=True)
    covered = covers_wash(subscription, now)
    if covered and subscription is not None:
        subscription.remaining_washes -= 1

    appointment = Appointment(
        user_id=user.id,
        vehicle=vehicle,
        time_slot=slot,
        service_type=service_type,
        status=AppointmentStatus.SCHEDULED,
        special_instructions=special_instructions,
        total_price=0.0 if covered else SERVICE_PRICES[service_type],
        paid_with_subscription=covered,
    )
    session.add(appointment)

    if booked + 1 >= slot.max_appointments:
        slot.is_available = False

    await session.flush()

    notify(
        session,
        user.id,
        NotificationType.CONFIRMATION,
        title="Appointment confirmed",
        message=(
            f"Your {service_type.value} wash is booked for "
            f"{slot.date.isoformat()} at {slot.time.strftime('%H:%M')}."
        ),
        appointment_id=appointment.id,
    )
    await session.flush()

    logger.info(
        "User %s booked slot %s (%d/%d)",
        user.id,
        slot.id,
        booked + 1,
        slot.max_appointments,
    )
    return appointment


async def release_appointment(
    session: AsyncSession, appointment: Appointment
) -> None:
    """Cancel the appointment, reopen its slot and give back a subscription wash."""
    appointment.status = AppointmentStatus.CANCELED

    slot = await session.get(TimeSlot, appointment.time_slot_id)
    if slot is not None:
        slot.is_available = True

    if appointment.paid_with_subscription:
        subscription = await get_active_subscription(
            session, appointment.user_id, for_update=True
        )
        if subscription is not None:
            subscription.remaining_washes += 1

    await session.flush()


async def restore_appointment(
    session: AsyncSession, appointment: Appointment, status: AppointmentStatus
) -> None:
    """Move a canceled appointment to `status`, taking back its place and its wash."""
    if status in ACTIVE_STATUSES:
        slot_stmt = (
            select(TimeSlot)
            .where(TimeSlot.id == appointment.time_slot_id)
            .with_for_update()
        )
        slot = (await session.execute(slot_stmt)).scalar_one()
        booked = await count_active_bookings(session, slot.id)
        if booked >= slot.max_appointments:
            raise HTTPException(status_code=409, detail="Time slot is fully booked")
        if booked + 1 >= slot.max_appointments:
            slot.is_available = False

    if appointment.paid_with_subscription:
        subscription = await get_active_subscription(
            session, appointment.user_id, for_update=True
        )
        if subscription is None or subscription.remaining_washes <= 0:
            raise HTTPException(
                status_code=409,
                detail="No subscription wash left to cover the appointment",
            )
        subscription.remaining_washes -= 1

    appointment.status = status
    await session.flush()


async def cancel_appointment(
    session: AsyncSession,
    appointment: Appointment,
    *,
    now: datetime,
    cutoff: timedelta,
) -> Appointment:
    if appointment.status in (AppointmentStatus.CANCELED, AppointmentStatus.COMPLETED):
        raise HTTPException(
            status_code=400,
            detail=f"Appointment is already {appointment.status.value}",
        )

    slot = await session.get(TimeSlot, appointment.time_slot_id)
    if slot is not None and slot.starts_at - now < cutoff:
        minutes = int(cutoff.total_seconds() // 60)
        raise HTTPException(
            status_code=400,
            detail=(
                f"Appointments can only be canceled up to {minutes} minutes "
                "before the scheduled time."
            ),
        )

    await release_appointment(session, appointment)
    logger.info("Appointment %s canceled", appointment.id)
    return appointment
