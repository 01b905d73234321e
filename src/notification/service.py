from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.notification.models import Notification, NotificationType


def notify(
    session: AsyncSession,
    user_id: UUID,
    type: NotificationType,
    title: str,
    message: str,
    appointment_id: UUID | None = None,
) -> Notification:
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        appointment_id=appointment_id,
    )
    session.add(notification)
    return notification
