from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_user
from src.base.dependencies import get_session
from src.base.models import utcnow
from src.base.schemas import BaseDTO
from src.plan.models import SubscriptionPlan, SubscriptionStatus, UserSubscription
from src.plan.service import add_months, get_active_subscription
from src.user.models import UserProfile

router = APIRouter()


class PlanResponse(BaseDTO):
    name: str
    description: str | None
    price: float
    duration_months: int
    washes_per_month: int
    features: list[str]
    is_active: bool


class SubscriptionCreate(BaseModel):
    plan_id: UUID


class SubscriptionResponse(BaseDTO):
    plan_id: UUID
    status: SubscriptionStatus
    current_period_start: datetime | None
    current_period_end: datetime | None
    remaining_washes: int
    plan: PlanResponse


@router.get("/subscription-plans", response_model=list[PlanResponse])
async def list_plans(
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[SubscriptionPlan]:
    stmt = (
        select(SubscriptionPlan)
        .where(SubscriptionPlan.is_active.is_(True))
        .order_by(SubscriptionPlan.price)
    )
    return list((await session.execute(stmt)).scalars().all())


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> UserSubscription:
    subscription = await get_active_subscription(session, user.id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="No active subscription")
    return subscription


@router.post("/subscription", response_model=SubscriptionResponse, status_code=201)
async def subscribe(
    body: SubscriptionCreate,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> UserSubscription:
    plan = await session.get(SubscriptionPlan, body.plan_id)
    if plan is None or not plan.is_active:
        raise HTTPException(status_code=404, detail="Subscription plan not found")

    if await get_active_subscription(session, user.id) is not None:
        raise HTTPException(
            status_code=409, detail="An active subscription already exists"
        )

    now = utcnow()
    subscription = UserSubscription(
        user_id=user.id,
        plan_id=plan.id,
        status=SubscriptionStatus.ACTIVE,
        current_period_start=now,
        current_period_end=add_months(now, plan.duration_months),
        remaining_washes=plan.washes_per_month,
    )
    session.add(subscription)
    await session.flush()
    subscription.plan = plan
    return subscription


@router.post("/subscription/cancel", response_model=SubscriptionResponse)
async def cancel_subscription(
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> UserSubscription:
    subscription = await get_active_subscription(session, user.id)
    if subscription is None:
        raise HTTPException(status_code=404, detail="No active subscription")
    subscription.status = SubscriptionStatus.CANCELED
    await session.flush()
    return subscription
