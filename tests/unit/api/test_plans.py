from collections.abc import Callable
from datetime import datetime, timezone

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.plan.models import SubscriptionPlan, SubscriptionStatus, UserSubscription
from src.plan.router import router
from src.plan.service import add_months, covers_wash
from src.user.models import UserProfile


@pytest.fixture
def client(client_for: Callable[..., httpx.AsyncClient]) -> httpx.AsyncClient:
    return client_for(router)


@pytest.fixture
async def plan(db_session: AsyncSession) -> SubscriptionPlan:
    p = SubscriptionPlan(
        name="Monthly",
        price=39.0,
        duration_months=1,
        washes_per_month=4,
        features=["Basic wash", "Tire shine"],
    )
    db_session.add(p)
    await db_session.flush()
    return p


class TestAddMonths:
    def test_plain(self) -> None:
        start = datetime(2025, 3, 10, 8, tzinfo=timezone.utc)

        assert add_months(start, 1) == datetime(2025, 4, 10, 8, tzinfo=timezone.utc)

    def test_clamps_to_month_end(self) -> None:
        start = datetime(2024, 1, 31, tzinfo=timezone.utc)

        assert add_months(start, 1) == datetime(2024, 2, 29, tzinfo=timezone.utc)

    def test_crosses_year(self) -> None:
        start = datetime(2024, 11, 15, tzinfo=timezone.utc)

        assert add_months(start, 3) == datetime(2025, 2, 15, tzinfo=timezone.utc)


class TestCoversWash:
    NOW = datetime(2025, 3, 10, tzinfo=timezone.utc)

    def test_none(self) -> None:
        assert covers_wash(None, self.NOW) is False

    def test_no_washes_left(self) -> None:
        sub = UserSubscription(remaining_washes=0)

        assert covers_wash(sub, self.NOW) is False

    def test_period_over(self) -> None:
        sub = UserSubscription(
            remaining_washes=2,
            current_period_end=datetime(2025, 3, 1, tzinfo=timezone.utc),
        )

        assert covers_wash(sub, self.NOW) is False

    def test_covered(self) -> None:
        sub = UserSubscription(
            remaining_washes=1,
            current_period_end=datetime(2025, 4, 1, tzinfo=timezone.utc),
        )

        assert covers_wash(sub, self.NOW) is True


class TestListPlans:
    async def test_only_active_ordered_by_price(
        self,
        client: httpx.AsyncClient,
        db_session: AsyncSession,
        customer: UserProfile,
        plan: SubscriptionPlan,
        customer_headers: dict[str, str],
    ) -> None:
        db_session.add_all(
            [
                SubscriptionPlan(
                    name="Cheap", price=19.0, duration_months=1, washes_per_month=2
                ),
                SubscriptionPlan(
                    name="Retired",
                    price=9.0,
                    duration_months=1,
                    washes_per_month=1,
                    is_active=False,
                ),
            ]
        )
        await db_session.flush()

        resp = await client.get("/subscription-plans", headers=customer_headers)

        assert resp.status_code == 200
        assert [p["name"] for p in resp.json()] == ["Cheap", "Monthly"]
        assert resp.json()[1]["features"] == ["Basic wash", "Tire shine"]


class TestSubscribe:
    async def test_creates_active_subscription(
        self,
        client: httpx.AsyncClient,
        customer: UserProfile,
        plan: SubscriptionPlan,
        customer_headers: dict[str, str],
    ) -> None:
        resp = await client.post(
            "/subscription", json={"plan_id": str(plan.id)}, headers=customer_headers
        )

        assert resp.status_code == 201
        data = resp.json()
        assert data["status"] == "active"
        assert data["remaining_washes"] == 4
        assert data["plan"]["name"] == "Monthly"
        assert data["current_period_end"] > data["current_period_start"]

    async def test_rejects_second_subscription(
        self,
        client: httpx.AsyncClient,
        customer: UserProfile,
        plan: SubscriptionPlan,
        customer_headers: dict[str, str],
    ) -> None:
        await client.post(
            "/subscription", json={"plan_id": str(plan.id)}, headers=customer_headers
        )

        resp = await client.post(
            "/subscription", json={"plan_id": str(plan.id)}, headers=customer_headers
        )

        assert resp.status_code == 409

    async def test_rejects_inactive_plan(
        self,
        client: httpx.AsyncClient,
        customer: UserProfile,
        plan: SubscriptionPlan,
        customer_headers: dict[str, str],
    ) -> None:
        plan.is_active = False

        resp = await client.post(
            "/subscription", json={"plan_id": str(plan.id)}, headers=customer_headers
        )

        assert resp.status_code == 404


class TestCurrentSubscription:
    async def test_not_found_without_subscription(
        self,
        client: httpx.AsyncClient,
        customer: UserProfile,
        customer_headers: dict[str, str],
    ) -> None:
        resp = await client.get("/subscription", headers=customer_headers)

        assert resp.status_code == 404
        assert resp.json() == {"error": "No active subscription"}

    async def test_cancel(
        self,
        client: httpx.AsyncClient,
        customer: UserProfile,
        plan: SubscriptionPlan,
        customer_headers: dict[str, str],
    ) -> None:
        await client.post(
            "/subscription", json={"plan_id": str(plan.id)}, headers=customer_headers
        )

        resp = await client.post("/subscription/cancel", headers=customer_headers)

        assert resp.status_code == 200
        assert resp.json()["status"] == SubscriptionStatus.CANCELED.value
        follow_up = await client.get("/subscription", headers=customer_headers)
        assert follow_up.status_code == 404
