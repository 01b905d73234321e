from collections.abc import Callable

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.notification.models import Notification, NotificationType
from src.notification.router import router
from src.notification.service import notify
from src.user.models import UserProfile


@pytest.fixture
def client(client_for: Callable[..., httpx.AsyncClient]) -> httpx.AsyncClient:
    return client_for(router)


@pytest.fixture
async def inbox(db_session: AsyncSession, customer: UserProfile) -> list[Notification]:
    first = notify(
        db_session, customer.id, NotificationType.PROMOTION, "Spring deal", "20% off"
    )
    await db_session.flush()
    second = notify(
        db_session, customer.id, NotificationType.REMINDER, "Tomorrow", "See you"
    )
    second.is_read = True
    await db_session.flush()
    return [first, second]


class TestListNotifications:
    async def test_newest_first(
        self,
        client: httpx.AsyncClient,
        inbox: list[Notification],
        customer_headers: dict[str, str],
    ) -> None:
        resp = await client.get("/notifications", headers=customer_headers)

        assert resp.status_code == 200
        assert [n["title"] for n in resp.json()] == ["Tomorrow", "Spring deal"]

    async def test_unread_only(
        self,
        client: httpx.AsyncClient,
        inbox: list[Notification],
        customer_headers: dict[str, str],
    ) -> None:
        resp = await client.get(
            "/notifications", params={"unread_only": "true"}, headers=customer_headers
        )

        assert [n["title"] for n in resp.json()] == ["Spring deal"]
        assert resp.json()[0]["type"] == "promotion"


class TestMarkRead:
    async def test_marks_read(
        self,
        client: httpx.AsyncClient,
        inbox: list[Notification],
        customer_headers: dict[str, str],
    ) -> None:
        resp = await client.post(
            f"/notifications/{inbox[0].id}/read", headers=customer_headers
        )

        assert resp.status_code == 200
        assert resp.json()["is_read"] is True
        assert inbox[0].is_read is True

    async def test_other_users_notification_not_found(
        self,
        client: httpx.AsyncClient,
        inbox: list[Notification],
        make_token: Callable[..., str],
    ) -> None:
        token = make_token("someone-else", "else@example.com")

        resp = await client.post(
            f"/notifications/{inbox[0].id}/read",
            headers={"Authorization": f"Bearer {token}"},
        )

        assert resp.status_code == 404
        assert inbox[0].is_read is False
