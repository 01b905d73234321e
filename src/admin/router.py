import logging
from datetime import date, datetime, timezone
from typing import Any, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, Field
from sqlalchemy import Select, exists, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from src.admin.reports import (
    AppointmentRow,
    build_report,
    growth_percentage,
    month_start,
    reporting_window_start,
    trends_to_csv,
)
from src.appointment.booking import release_appointment, restore_appointment
from src.appointment.models import (
    ACTIVE_STATUSES,
    Appointment,
    AppointmentStatus,
    ServiceType,
)
from src.auth import require_admin
from src.base.dependencies import get_session
from src.base.models import utcnow
from src.base.schemas import BaseDTO
from src.plan.models import SubscriptionPlan, SubscriptionStatus, UserSubscription
from src.plan.router import PlanResponse
from src.scheduling.models import TimeSlot
from src.user.models import UserProfile, UserRole
from src.user.router import ProfileResponse, ProfileUpdate
from src.vehicle.models import Vehicle

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", dependencies=[Depends(require_admin)])


class AdminAppointmentRow(BaseModel):
    id: UUID
    customer_name: str
    user_email: str
    make: str | None
    model: str | None
    year: int | None
    service_type: ServiceType
    status: AppointmentStatus
    date: str
    time: str
    special_instructions: str | None
    total_price: float | None
    created_at: datetime


class AdminAppointmentPage(BaseModel):
    data: list[AdminAppointmentRow]
    count: int


class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus


class AdminCustomer(BaseDTO):
    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    vehicle_count: int
    appointment_count: int
    total_spent: float
    last_appointment: datetime | None
    subscription_status: str


class PlanCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    price: float = Field(ge=0)
    duration_months: int = Field(ge=1)
    washes_per_month: int = Field(ge=0)
    features: list[str] = []
    is_active: bool = True


class PlanUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    price: float | None = Field(default=None, ge=0)
    duration_months: int | None = Field(default=None, ge=1)
    washes_per_month: int | None = Field(default=None, ge=0)
    features: list[str] | None = None
    is_active: bool | None = None


class VehicleStat(BaseModel):
    make: str
    model: str
    vehicle_count: int


class AdminStats(BaseModel):
    total_customers: int
    active_subscriptions: int
    today_appointments: int
    monthly_revenue: float
    pending_appointments: int
    completed_appointments: int
    canceled_appointments: int
    revenue_growth: float


def _appointment_row(appointment: Appointment) -> AdminAppointmentRow:
    slot = appointment.time_slot
    vehicle = appointment.vehicle
    return AdminAppointmentRow(
        id=appointment.id,
        customer_name=appointment.user.full_name or "N/A",
        user_email=appointment.user.email,
        make=vehicle.make if vehicle else None,
        model=vehicle.model if vehicle else None,
        year=vehicle.year if vehicle else None,
        service_type=appointment.service_type,
        status=appointment.status,
        date=slot.date.isoformat(),
        time=slot.time.strftime("%H:%M"),
        special_instructions=appointment.special_instructions,
        total_price=appointment.total_price,
        created_at=appointment.created_at,
    )


def _with_details(
    stmt: Select[tuple[Appointment]],
) -> Select[tuple[Appointment]]:
    return stmt.options(
        selectinload(Appointment.user),
        selectinload(Appointment.vehicle),
        selectinload(Appointment.time_slot),
    )


async def _count(session: AsyncSession, stmt: Any) -> int:
    return (await session.execute(stmt)).scalar_one()


@router.get("/appointments", response_model=AdminAppointmentPage)
async def list_appointments(
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, le=100),
    session: AsyncSession = Depends(get_session),
) -> AdminAppointmentPage:
    total = await _count(session, select(func.count()).select_from(Appointment))
    stmt = _with_details(
        select(Appointment)
        .order_by(Appointment.created_at.desc())
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    appointments = (await session.execute(stmt)).scalars().all()
    return AdminAppointmentPage(
        data=[_appointment_row(a) for a in appointments], count=total
    )


@router.get("/recent-appointments", response_model=list[AdminAppointmentRow])
async def recent_appointments(
    limit: int = Query(default=5, ge=1, le=50),
    session: AsyncSession = Depends(get_session),
) -> list[AdminAppointmentRow]:
    stmt = _with_details(
        select(Appointment).order_by(Appointment.created_at.desc()).limit(limit)
    )
    return [_appointment_row(a) for a in (await session.execute(stmt)).scalars()]


@router.patch("/appointments/{appointment_id}", response_model=AdminAppointmentRow)
async def update_appointment_status(
    appointment_id: UUID,
    body: AppointmentStatusUpdate,
    session: AsyncSession = Depends(get_session),
) -> AdminAppointmentRow:
    stmt = _with_details(select(Appointment).where(Appointment.id == appointment_id))
    appointment = (await session.execute(stmt)).scalar_one_or_none()
    if appointment is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    was_canceled = appointment.status is AppointmentStatus.CANCELED
    if body.status is AppointmentStatus.CANCELED and not was_canceled:
        await release_appointment(session, appointment)
    elif was_canceled and body.status is not AppointmentStatus.CANCELED:
        await restore_appointment(session, appointment, body.status)
    else:
        appointment.status = body.status
        await session.flush()

    logger.info("Appointment %s set to %s", appointment.id, body.status.value)
    return _appointment_row(appointment)


@router.get("/customers", response_model=list[AdminCustomer])
async def list_customers(
    session: AsyncSession = Depends(get_session),
) -> list[AdminCustomer]:
    vehicle_counts = (
        select(Vehicle.user_id, func.count().label("vehicle_count"))
        .group_by(Vehicle.user_id)
        .subquery()
    )
    appointment_stats = (
        select(
            Appointment.user_id,
            func.count().label("appointment_count"),
            func.coalesce(func.sum(Appointment.total_price), 0).label("total_spent"),
        )
        .where(Appointment.status != AppointmentStatus.CANCELED)
        .group_by(Appointment.user_id)
        .subquery()
    )
    last_slot = (
        select(
            Appointment.user_id,
            func.max(TimeSlot.date + TimeSlot.time).label("last_appointment"),
        )
        .join(TimeSlot, Appointment.time_slot_id == TimeSlot.id)
        .group_by(Appointment.user_id)
        .subquery()
    )
    subscription_status = (
        select(UserSubscription.status)
        .where(UserSubscription.user_id == UserProfile.id)
        .order_by(UserSubscription.created_at.desc())
        .limit(1)
        .scalar_subquery()
    )

    stmt = (
        select(
            UserProfile,
            func.coalesce(vehicle_counts.c.vehicle_count, 0),
            func.coalesce(appointment_stats.c.appointment_count, 0),
            func.coalesce(appointment_stats.c.total_spent, 0),
            last_slot.c.last_appointment,
            subscription_status,
        )
        .outerjoin(vehicle_counts, vehicle_counts.c.user_id == UserProfile.id)
        .outerjoin(appointment_stats, appointment_stats.c.user_id == UserProfile.id)
        .outerjoin(last_slot, last_slot.c.user_id == UserProfile.id)
        .where(UserProfile.role == UserRole.CUSTOMER)
        .order_by(UserProfile.created_at.desc())
    )

    customers = []
    for profile, vehicles, appointments, spent, last, status in (
        await session.execute(stmt)
    ).all():
        personal = {key: getattr(profile, key) for key in ProfileUpdate.model_fields}
        customers.append(
            AdminCustomer(
                id=profile.id,
                created_at=profile.created_at,
                updated_at=profile.updated_at,
                email=profile.email,
                **personal,
                vehicle_count=vehicles,
                appointment_count=appointments,
                total_spent=float(spent),
                last_appointment=(
                    last.replace(tzinfo=timezone.utc) if last is not None else None
                ),
                subscription_status=status.value if status is not None else "none",
            )
        )
    return customers


async def _get_customer(session: AsyncSession, customer_id: UUID) -> UserProfile:
    customer = await session.get(UserProfile, customer_id)
    if customer is None:
        raise HTTPException(status_code=404, detail="Customer not found")
    return customer


@router.put("/customers/{customer_id}", response_model=ProfileResponse)
async def update_customer(
    customer_id: UUID,
    body: ProfileUpdate,
    session: AsyncSession = Depends(get_session),
) -> UserProfile:
    customer = await _get_customer(session, customer_id)
    customer.apply(body.model_dump(exclude_unset=True))
    await session.flush()
    return customer


@router.delete("/customers/{customer_id}", status_code=204)
async def delete_customer(
    customer_id: UUID,
    admin: UserProfile = Depends(require_admin),
    session: AsyncSession = Depends(get_session),
) -> None:
    customer = await _get_customer(session, customer_id)
    if customer.id == admin.id:
        raise HTTPException(status_code=400, detail="Admins cannot delete themselves")

    # Slots held by the customer's bookings reopen before the cascade drops them.
    booked_slots = select(Appointment.time_slot_id).where(
        Appointment.user_id == customer.id,
        Appointment.status.in_(ACTIVE_STATUSES),
    )
    await session.execute(
        update(TimeSlot)
        .where(TimeSlot.id.in_(booked_slots))
        .values(is_available=True)
        .execution_options(synchronize_session="fetch")
    )
    await session.delete(customer)
    await session.flush()
    logger.info("Customer %s deleted by %s", customer_id, admin.id)


@router.get("/vehicle-stats", response_model=list[VehicleStat])
async def vehicle_stats(
    session: AsyncSession = Depends(get_session),
) -> list[VehicleStat]:
    vehicle_count = func.count().label("vehicle_count")
    stmt = (
        select(Vehicle.make, Vehicle.model, vehicle_count)
        .group_by(Vehicle.make, Vehicle.model)
        .order_by(vehicle_count.desc(), Vehicle.make, Vehicle.model)
    )
    return [
        VehicleStat(make=make, model=model, vehicle_count=count)
        for make, model, count in (await session.execute(stmt)).all()
    ]


@router.get("/subscription-plans", response_model=list[PlanResponse])
async def list_plans(
    session: AsyncSession = Depends(get_session),
) -> list[SubscriptionPlan]:
    stmt = select(SubscriptionPlan).order_by(SubscriptionPlan.created_at)
    return list((await session.execute(stmt)).scalars().all())


async def _get_plan(session: AsyncSession, plan_id: UUID) -> SubscriptionPlan:
    plan = await session.get(SubscriptionPlan, plan_id)
    if plan is None:
        raise HTTPException(status_code=404, detail="Subscription plan not found")
    return plan


@router.post("/subscription-plans", response_model=PlanResponse, status_code=201)
async def create_plan(
    body: PlanCreate,
    session: AsyncSession = Depends(get_session),
) -> SubscriptionPlan:
    plan = SubscriptionPlan(**body.model_dump())
    session.add(plan)
    await session.flush()
    return plan


@router.put("/subscription-plans/{plan_id}", response_model=PlanResponse)
async def update_plan(
    plan_id: UUID,
    body: PlanUpdate,
    session: AsyncSession = Depends(get_session),
) -> SubscriptionPlan:
    plan = await _get_plan(session, plan_id)
    plan.apply(body.model_dump(exclude_unset=True))
    await session.flush()
    return plan


@router.delete("/subscription-plans/{plan_id}", status_code=204)
async def delete_plan(
    plan_id: UUID,
    session: AsyncSession = Depends(get_session),
) -> None:
    plan = await _get_plan(session, plan_id)
    in_use = (
        await session.execute(
            select(exists().where(UserSubscription.plan_id == plan.id))
        )
    ).scalar()
    if in_use:
        raise HTTPException(
            status_code=409,
            detail="Plan has subscriptions; deactivate it instead",
        )
    await session.delete(plan)
    await session.flush()


async def _completed_revenue(
    session: AsyncSession, start: date, end: date
) -> float:
    stmt = (
        select(func.coalesce(func.sum(Appointment.total_price), 0))
        .join(TimeSlot, Appointment.time_slot_id == TimeSlot.id)
        .where(
            Appointment.status == AppointmentStatus.COMPLETED,
            TimeSlot.date >= start,
            TimeSlot.date < end,
        )
    )
    return float((await session.execute(stmt)).scalar_one())


def _status_count(status: AppointmentStatus) -> Any:
    return select(func.count()).where(Appointment.status == status)


@router.get("/stats", response_model=AdminStats)
async def stats(session: AsyncSession = Depends(get_session)) -> AdminStats:
    today = utcnow().date()
    this_month = month_start(today)

    monthly_revenue = await _completed_revenue(
        session, this_month, month_start(today, 1)
    )
    last_month_revenue = await _completed_revenue(
        session, month_start(today, -1), this_month
    )

    return AdminStats(
        total_customers=await _count(
            session,
            select(func.count()).where(UserProfile.role == UserRole.CUSTOMER),
        ),
        active_subscriptions=await _count(
            session,
            select(func.count()).where(
                UserSubscription.status == SubscriptionStatus.ACTIVE
            ),
        ),
        today_appointments=await _count(
            session,
            select(func.count())
            .select_from(Appointment)
            .join(TimeSlot, Appointment.time_slot_id == TimeSlot.id)
            .where(TimeSlot.date == today),
        ),
        monthly_revenue=monthly_revenue,
        pending_appointments=await _count(
            session, _status_count(AppointmentStatus.SCHEDULED)
        ),
        completed_appointments=await _count(
            session, _status_count(AppointmentStatus.COMPLETED)
        ),
        canceled_appointments=await _count(
            session, _status_count(AppointmentStatus.CANCELED)
        ),
        revenue_growth=growth_percentage(monthly_revenue, last_month_revenue),
    )


@router.get("/reports", response_model=None)
async def reports(
    period: int = Query(default=30, ge=1, le=366),
    format: Literal["json", "csv"] = "json",
    session: AsyncSession = Depends(get_session),
) -> Any:
    today = utcnow().date()
    since = reporting_window_start(today, period)

    appointment_stmt = select(
        Appointment.created_at,
        Appointment.status,
        Appointment.service_type,
        Appointment.total_price,
    ).where(Appointment.created_at >= since)
    appointments = [
        AppointmentRow(
            created_at=row.created_at,
            status=row.status,
            service_type=row.service_type,
            total_price=row.total_price,
        )
        for row in (await session.execute(appointment_stmt)).all()
    ]

    customer_stmt = select(UserProfile.created_at).where(
        UserProfile.role == UserRole.CUSTOMER, UserProfile.created_at >= since
    )
    joined = list((await session.execute(customer_stmt)).scalars().all())
    total_customers = await _count(
        session, select(func.count()).where(UserProfile.role == UserRole.CUSTOMER)
    )

    report = build_report(appointments, joined, total_customers, today, period)

    if format == "csv":
        return Response(
            content=trends_to_csv(report["monthly_trends"]),
            media_type="text/csv",
            headers={
                "Content-Disposition": (
                    f'attachment; filename="report-{today.isoformat()}.csv"'
                )
            },
        )
    return report
