from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import AfterValidator, BaseModel, Field
from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.appointment.models import ACTIVE_STATUSES, Appointment
from src.auth import get_current_user
from src.base.dependencies import get_session
from src.base.schemas import BaseDTO
from src.user.models import UserProfile
from src.vehicle.models import Vehicle

router = APIRouter(prefix="/vehicles")

MIN_YEAR = 1900


def _check_year(year: int) -> int:
    max_year = date.today().year + 2
    if not MIN_YEAR <= year <= max_year:
        raise ValueError(f"year must be between {MIN_YEAR} and {max_year}")
    return year


VehicleYear = Annotated[int, AfterValidator(_check_year)]


class VehicleCreate(BaseModel):
    make: str = Field(min_length=1)
    model: str = Field(min_length=1)
    year: VehicleYear | None = None
    color: str | None = None
    license_plate: str | None = None
    is_default: bool = False


class VehicleUpdate(BaseModel):
    make: str | None = Field(default=None, min_length=1)
    model: str | None = Field(default=None, min_length=1)
    year: VehicleYear | None = None
    color: str | None = None
    license_plate: str | None = None
    is_default: bool | None = None


class VehicleResponse(BaseDTO):
    make: str
    model: str
    year: int | None
    color: str | None
    license_plate: str | None
    is_default: bool


async def get_user_vehicle(
    vehicle_id: UUID, user: UserProfile, session: AsyncSession
) -> Vehicle:
    stmt = select(Vehicle).where(Vehicle.id == vehicle_id, Vehicle.user_id == user.id)
    vehicle = (await session.execute(stmt)).scalar_one_or_none()
    if vehicle is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


async def _clear_default(
    session: AsyncSession, user: UserProfile, keep: UUID | None = None
) -> None:
    stmt = (
        update(Vehicle)
        .where(Vehicle.user_id == user.id, Vehicle.is_default.is_(True))
        .values(is_default=False)
        .execution_options(synchronize_session="fetch")
    )
    if keep is not None:
        stmt = stmt.where(Vehicle.id != keep)
    await session.execute(stmt)


@router.get("", response_model=list[VehicleResponse])
async def list_vehicles(
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[Vehicle]:
    stmt = (
        select(Vehicle)
        .where(Vehicle.user_id == user.id)
        .order_by(Vehicle.is_default.desc(), Vehicle.created_at)
    )
    return list((await session.execute(stmt)).scalars().all())


@router.post("", response_model=VehicleResponse, status_code=201)
async def create_vehicle(
    body: VehicleCreate,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Vehicle:
    has_vehicles = (
        await session.execute(select(exists().where(Vehicle.user_id == user.id)))
    ).scalar()

    vehicle = Vehicle(user_id=user.id, **body.model_dump())
    if not has_vehicles:
        vehicle.is_default = True
    elif vehicle.is_default:
        await _clear_default(session, user)

    session.add(vehicle)
    await session.flush()
    return vehicle


@router.patch("/{vehicle_id}", response_model=VehicleResponse)
async def update_vehicle(
    vehicle_id: UUID,
    body: VehicleUpdate,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Vehicle:
    vehicle = await get_user_vehicle(vehicle_id, user, session)
    changes = body.model_dump(exclude_unset=True)
    if changes.get("is_default"):
        await _clear_default(session, user, keep=vehicle.id)
    vehicle.apply(changes)
    await session.flush()
    return vehicle


@router.delete("/{vehicle_id}", status_code=204)
async def delete_vehicle(
    vehicle_id: UUID,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> None:
    vehicle = await get_user_vehicle(vehicle_id, user, session)

    booked = (
        await session.execute(
            select(
                exists().where(
                    Appointment.vehicle_id == vehicle.id,
                    Appointment.status.in_(ACTIVE_STATUSES),
                )
            )
        )
    ).scalar()
    if booked:
        raise HTTPException(
            status_code=409, detail="Vehicle has upcoming appointments"
        )

    await session.delete(vehicle)
    await session.flush()
