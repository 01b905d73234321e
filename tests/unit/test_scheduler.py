from datetime import datetime, timedelta
from unittest.mock import patch
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from src.appointment.models import Appointment, AppointmentStatus, ServiceType
from src.base.models import utcnow
from src.notification.models import Notification, NotificationType
from src.scheduler import complete_past_appointments, send_appointment_reminders
from src.scheduling.models import TimeSlot
from src.user.models import UserProfile
from src.vehicle.models import Vehicle


async def _make_appointment(
    session: AsyncSession,
    starts_at: datetime,
    status: AppointmentStatus = AppointmentStatus.SCHEDULED,
) -> Appointment:
    uid = uuid4().hex
    user = UserProfile(auth_uid=uid, email=f"{uid}@example.com")
    session.add(user)
    await session.flush()
    vehicle = Vehicle(user_id=user.id, make="Skoda", model="Octavia")
    starts_at = starts_at.replace(second=0, microsecond=0)
    slot = TimeSlot(date=starts_at.date(), time=starts_at.time())
    session.add_all([vehicle, slot])
    await session.flush()
    appointment = Appointment(
        user_id=user.id,
        vehicle_id=vehicle.id,
        time_slot_id=slot.id,
        service_type=ServiceType.BASIC,
        status=status,
        total_price=15.0,
    )
    session.add(appointment)
    await session.flush()
    return appointment


@pytest.fixture
def test_session_factory(
    db_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(db_engine, expire_on_commit=False)


async def _reminders(
    factory: async_sessionmaker[AsyncSession],
) -> list[Notification]:
    async with factory() as session:
        stmt = select(Notification).where(
            Notification.type == NotificationType.REMINDER
        )
        return list((await session.execute(stmt)).scalars().all())


class TestSendAppointmentReminders:
    async def test_reminds_upcoming_appointment_once(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        appointment = await _make_appointment(
            db_session, utcnow() + timedelta(hours=2)
        )
        await db_session.commit()

        with patch("src.scheduler.async_session", test_session_factory):
            await send_appointment_reminders()
            await send_appointment_reminders()

        reminders = await _reminders(test_session_factory)
        assert len(reminders) == 1
        assert reminders[0].appointment_id == appointment.id
        assert reminders[0].user_id == appointment.user_id
        assert reminders[0].title == "Upcoming car wash"

    async def test_skips_distant_and_canceled(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await _make_appointment(db_session, utcnow() + timedelta(days=3))
        await _make_appointment(
            db_session,
            utcnow() + timedelta(hours=3),
            status=AppointmentStatus.CANCELED,
        )
        await db_session.commit()

        with patch("src.scheduler.async_session", test_session_factory):
            await send_appointment_reminders()

        assert await _reminders(test_session_factory) == []


class TestCompletePastAppointments:
    async def test_completes_only_finished(
        self,
        db_session: AsyncSession,
        test_session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        finished = await _make_appointment(db_session, utcnow() - timedelta(hours=5))
        running = await _make_appointment(
            db_session, utcnow() - timedelta(minutes=30)
        )
        canceled = await _make_appointment(
            db_session,
            utcnow() - timedelta(hours=6),
            status=AppointmentStatus.CANCELED,
        )
        await db_session.commit()
        ids = {finished.id, running.id, canceled.id}

        with patch("src.scheduler.async_session", test_session_factory):
            await complete_past_appointments()

        async with test_session_factory() as verify_session:
            rows = (
                await verify_session.execute(
                    select(Appointment.id, Appointment.status).where(
                        Appointment.id.in_(ids)
                    )
                )
            ).all()
        statuses = dict(rows)
        assert statuses[finished.id] is AppointmentStatus.COMPLETED
        assert statuses[running.id] is AppointmentStatus.SCHEDULED
        assert statuses[canceled.id] is AppointmentStatus.CANCELED
