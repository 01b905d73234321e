from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_user
from src.base.dependencies import get_session
from src.base.schemas import BaseDTO
from src.notification.models import Notification, NotificationType
from src.user.models import UserProfile

router = APIRouter(prefix="/notifications")


class NotificationResponse(BaseDTO):
    title: str
    message: str
    type: NotificationType
    is_read: bool
    appointment_id: UUID | None


@router.get("", response_model=list[NotificationResponse])
async def list_notifications(
    unread_only: bool = False,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> list[Notification]:
    stmt = select(Notification).where(Notification.user_id == user.id)
    if unread_only:
        stmt = stmt.where(Notification.is_read.is_(False))
    stmt = stmt.order_by(Notification.created_at.desc())
    return list((await session.execute(stmt)).scalars().all())


@router.post("/{notification_id}/read", response_model=NotificationResponse)
async def mark_read(
    notification_id: UUID,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Notification:
    stmt = select(Notification).where(
        Notification.id == notification_id, Notification.user_id == user.id
    )
    notification = (await session.execute(stmt)).scalar_one_or_none()
    if notification is None:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.is_read = True
    await session.flush()
    return notification
