import logging
from datetime import datetime, timedelta

from sqlalchemy import ColumnElement, and_, exists, or_, select
from sqlalchemy.orm import aliased

from src.appointment.models import Appointment, AppointmentStatus
from src.base.config import REMINDER_LEAD_HOURS, SLOT_DURATION_MINUTES
from src.base.db import async_session
from src.base.models import utcnow
from src.notification.models import Notification, NotificationType
from src.notification.service import notify
from src.scheduling.models import TimeSlot

logger = logging.getLogger(__name__)


def _starts_from(moment: datetime) -> ColumnElement[bool]:
    return or_(
        TimeSlot.date > moment.date(),
        and_(TimeSlot.date == moment.date(), TimeSlot.time >= moment.time()),
    )


def _starts_before(moment: datetime) -> ColumnElement[bool]:
    return or_(
        TimeSlot.date < moment.date(),
        and_(TimeSlot.date == moment.date(), TimeSlot.time < moment.time()),
    )


async def send_appointment_reminders() -> None:
    """Create one reminder per scheduled appointment starting within the lead time."""
    now = utcnow()
    horizon = now + timedelta(hours=REMINDER_LEAD_HOURS)
    reminder = aliased(Notification)

    async with async_session() as session:
        try:
            stmt = (
                select(Appointment, TimeSlot)
                .join(TimeSlot, Appointment.time_slot_id == TimeSlot.id)
                .where(
                    Appointment.status == AppointmentStatus.SCHEDULED,
                    _starts_from(now),
                    _starts_before(horizon),
                    ~exists().where(
                        reminder.appointment_id == Appointment.id,
                        reminder.type == NotificationType.REMINDER,
                    ),
                )
            )
            rows = (await session.execute(stmt)).all()

            for appointment, slot in rows:
                notify(
                    session,
                    appointment.user_id,
                    NotificationType.REMINDER,
                    title="Upcoming car wash",
                    message=(
                        f"Reminder: your {appointment.service_type.value} wash is "
                        f"on {slot.date.isoformat()} at {slot.time.strftime('%H:%M')}."
                    ),
                    appointment_id=appointment.id,
                )

            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Failed to send appointment reminders")
            raise

    if rows:
        logger.info("Sent %d appointment reminders", len(rows))


async def complete_past_appointments() -> None:
    """Mark scheduled appointments whose slot ended a full slot ago as completed."""
    cutoff = utcnow() - 2 * timedelta(minutes=SLOT_DURATION_MINUTES)

    async with async_session() as session:
        try:
            stmt = (
                select(Appointment)
                .join(TimeSlot, Appointment.time_slot_id == TimeSlot.id)
                .where(
                    Appointment.status == AppointmentStatus.SCHEDULED,
                    _starts_before(cutoff),
                )
            )
            appointments = (await session.execute(stmt)).scalars().all()
            for appointment in appointments:
                appointment.status = AppointmentStatus.COMPLETED
            await session.commit()
        except Exception:
            await session.rollback()
            logger.exception("Failed to complete past appointments")
            raise

    if appointments:
        logger.info("Completed %d past appointments", len(appointments))
