from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import Subquery, and_, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.appointment.models import ACTIVE_STATUSES, Appointment
from src.scheduling.models import AvailabilityRule, TimeSlot
from src.scheduling.slots import at, daterange, slot_capacities

logger = logging.getLogger(__name__)


async def get_active_rules(session: AsyncSession) -> list[AvailabilityRule]:
    stmt = select(AvailabilityRule).where(AvailabilityRule.is_active.is_(True))
    return list((await session.execute(stmt)).scalars().all())


def booked_count_subquery() -> Subquery:
    return (
        select(Appointment.time_slot_id, func.count().label("booked"))
        .where(Appointment.status.in_(ACTIVE_STATUSES))
        .group_by(Appointment.time_slot_id)
        .subquery()
    )


async def count_active_bookings(session: AsyncSession, slot_id: UUID) -> int:
    stmt = select(func.count()).where(
        Appointment.time_slot_id == slot_id,
        Appointment.status.in_(ACTIVE_STATUSES),
    )
    return (await session.execute(stmt)).scalar_one()


async def materialize_slots(
    session: AsyncSession, start: date, end: date, duration: timedelta
) -> list[TimeSlot]:
    """Create TimeSlot rows for rule-generated starts in the range that are missing."""
    days = list(daterange(start, end))
    rules = await get_active_rules(session)

    existing_stmt = select(TimeSlot.date, TimeSlot.time).where(
        TimeSlot.date >= start, TimeSlot.date <= end
    )
    existing = {
        at(row.date, row.time) for row in (await session.execute(existing_stmt)).all()
    }

    created: list[TimeSlot] = []
    for day in days:
        for starts_at, capacity in sorted(
            slot_capacities(rules, day, duration).items()
        ):
            if starts_at in existing:
                continue
            slot = TimeSlot(
                date=day,
                time=starts_at.time(),
                is_available=True,
                max_appointments=capacity,
            )
            session.add(slot)
            created.append(slot)

    await session.flush()
    logger.info("Materialized %d time slots for %s..%s", len(created), start, end)
    return created


async def available_times(
    session: AsyncSession, day: date, duration: timedelta
) -> list[datetime]:
    """Rule-generated starts on `day` that still have room for a booking."""
    rules = await get_active_rules(session)
    capacities = slot_capacities(rules, day, duration)
    if not capacities:
        return []

    stmt = (
        select(TimeSlot.time, TimeSlot.is_available, func.count(Appointment.id))
        .outerjoin(
            Appointment,
            and_(
                Appointment.time_slot_id == TimeSlot.id,
                Appointment.status.in_(ACTIVE_STATUSES),
            ),
        )
        .where(TimeSlot.date == day)
        .group_by(TimeSlot.id)
    )
    taken: set[datetime] = set()
    for slot_time, is_available, booked in (await session.execute(stmt)).all():
        starts_at = at(day, slot_time)
        if not is_available or booked >= capacities.get(starts_at, 1):
            taken.add(starts_at)

    return [start for start in sorted(capacities) if start not in taken]


async def list_bookable_slots(
    session: AsyncSession, start: date, end: date, now: datetime
) -> list[tuple[TimeSlot, int]]:
    """Available, not-full, future slots in the range with their booking counts."""
    booked = booked_count_subquery()
    booked_count = func.coalesce(booked.c.booked, 0)
    stmt = (
        select(TimeSlot, booked_count)
        .outerjoin(booked, booked.c.time_slot_id == TimeSlot.id)
        .where(
            TimeSlot.is_available.is_(True),
            TimeSlot.date >= start,
            TimeSlot.date <= end,
            booked_count < TimeSlot.max_appointments,
            or_(
                TimeSlot.date > now.date(),
                and_(TimeSlot.date == now.date(), TimeSlot.time > now.time()),
            ),
        )
        .order_by(TimeSlot.date, TimeSlot.time)
    )
    return [(slot, count) for slot, count in (await session.execute(stmt)).all()]
