from collections.abc import Callable

import httpx
import pytest

from src.user.models import UserProfile
from src.user.router import router


@pytest.fixture
def client(client_for: Callable[..., httpx.AsyncClient]) -> httpx.AsyncClient:
    return client_for(router)


class TestGetMe:
    async def test_returns_profile(
        self,
        client: httpx.AsyncClient,
        customer: UserProfile,
        customer_headers: dict[str, str],
    ) -> None:
        resp = await client.get("/users/me", headers=customer_headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["id"] == str(customer.id)
        assert data["email"] == "customer@example.com"
        assert data["role"] == "customer"

    async def test_first_request_creates_profile(
        self, client: httpx.AsyncClient, make_token: Callable[..., str]
    ) -> None:
        token = make_token("fresh-uid", "fresh@example.com")

        resp = await client.get(
            "/users/me", headers={"Authorization": f"Bearer {token}"}
        )

        assert resp.status_code == 200
        assert resp.json()["email"] == "fresh@example.com"
        assert resp.json()["first_name"] is None

    async def test_rejects_invalid_token(self, client: httpx.AsyncClient) -> None:
        resp = await client.get(
            "/users/me", headers={"Authorization": "Bearer nonsense"}
        )

        assert resp.status_code == 401
        assert resp.json() == {"error": "Invalid access token"}


class TestUpdateProfile:
    async def test_updates_only_sent_fields(
        self,
        client: httpx.AsyncClient,
        customer: UserProfile,
        customer_headers: dict[str, str],
    ) -> None:
        resp = await client.put(
            "/profile",
            json={"phone": "+48 600 100 200", "city": "Kraków"},
            headers=customer_headers,
        )

        assert resp.status_code == 200
        data = resp.json()
        assert data["phone"] == "+48 600 100 200"
        assert data["city"] == "Kraków"
        assert data["first_name"] == "Casey"
        assert customer.city == "Kraków"

    async def test_cannot_change_role(
        self,
        client: httpx.AsyncClient,
        customer: UserProfile,
        customer_headers: dict[str, str],
    ) -> None:
        resp = await client.put(
            "/profile", json={"role": "admin"}, headers=customer_headers
        )

        assert resp.status_code == 200
        assert resp.json()["role"] == "customer"
