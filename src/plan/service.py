import calendar
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.plan.models import SubscriptionStatus, UserSubscription


def add_months(moment: datetime, months: int) -> datetime:
    """Shift by calendar months, clamping the day (Jan 31 + 1 month -> Feb 28/29)."""
    month_index = moment.month - 1 + months
    year = moment.year + month_index // 12
    month = month_index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


async def get_active_subscription(
    session: AsyncSession, user_id: UUID, *, for_update: bool = False
) -> UserSubscription | None:
    stmt = select(UserSubscription).where(
        UserSubscription.user_id == user_id,
        UserSubscription.status == SubscriptionStatus.ACTIVE,
    )
    if for_update:
        stmt = stmt.with_for_update(of=UserSubscription)
    return (await session.execute(stmt)).unique().scalars().first()


def covers_wash(subscription: UserSubscription | None, now: datetime) -> bool:
    if subscription is None or subscription.remaining_washes <= 0:
        return False
    if subscription.current_period_end is not None:
        return subscription.current_period_end > now
    return True
