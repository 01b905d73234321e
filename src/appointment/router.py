import datetime as dt
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.appointment.booking import book_appointment, cancel_appointment
from src.appointment.models import Appointment, AppointmentStatus, ServiceType
from src.auth import get_current_user
from src.base.config import CANCEL_CUTOFF_MINUTES
from src.base.dependencies import get_session
from src.base.models import utcnow
from src.base.schemas import BaseDTO
from src.scheduling.models import TimeSlot
from src.user.models import UserProfile

router = APIRouter(prefix="/appointments")


class AppointmentCreate(BaseModel):
    vehicle_id: UUID
    time_slot_id: UUID
    service_type: ServiceType
    special_instructions: str | None = None


class AppointmentVehicle(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    make: str
    model: str
    year: int | None
    color: str | None


class AppointmentSlot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    date: dt.date
    time: dt.time
    starts_at: dt.datetime


class AppointmentResponse(BaseDTO):
    vehicle_id: UUID | None
    time_slot_id: UUID
    service_type: ServiceType
    status: AppointmentStatus
    special_instructions: str | None
    total_price: float | None
    paid_with_subscription: bool
    vehicle: AppointmentVehicle | None
    time_slot: AppointmentSlot


async def _get_user_appointment(
    appointment_id: UUID, user: UserProfile, session: AsyncSession
) -> Appointment:
    stmt = (
        select(Appointment)
        .where(Appointment.id == appointment_id, Appointment.user_id == user.id)
        .options(
            selectinload(Appointment.vehicle), selectinload(Appointment.time_slot)
        )
    )
    appointment = (await session.execute(stmt)).scalar_one_or_none()
    if appointment is None:
        raise HTTPException(status_code=404, detail="Appointment not found")
    return appointment


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[Appointment]:
    stmt = (
        select(Appointment)
        .join(TimeSlot, Appointment.time_slot_id == TimeSlot.id)
        .where(Appointment.user_id == user.id)
        .options(
            selectinload(Appointment.vehicle), selectinload(Appointment.time_slot)
        )
        .order_by(TimeSlot.date, TimeSlot.time)
    )
    return list((await session.execute(stmt)).scalars().all())


@router.post("", response_model=AppointmentResponse, status_code=201)
async def create_appointment(
    body: AppointmentCreate,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Appointment:
    return await book_appointment(
        session,
        user,
        vehicle_id=body.vehicle_id,
        time_slot_id=body.time_slot_id,
        service_type=body.service_type,
        special_instructions=body.special_instructions,
        now=utcnow(),
    )


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: UUID,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Appointment:
    return await _get_user_appointment(appointment_id, user, session)


@router.post("/{appointment_id}/cancel", response_model=AppointmentResponse)
async def cancel(
    appointment_id: UUID,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Appointment:
    appointment = await _get_user_appointment(appointment_id, user, session)
    return await cancel_appointment(
        session,
        appointment,
        now=utcnow(),
        cutoff=dt.timedelta(minutes=CANCEL_CUTOFF_MINUTES),
    )
