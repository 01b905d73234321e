from collections.abc import Callable
from datetime import timedelta

import pytest
from fastapi import HTTPException
from fastapi.security import HTTPAuthorizationCredentials
from jose import jwt
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import decode_token, get_current_user, require_admin
from src.user.models import UserProfile, UserRole

TokenFactory = Callable[..., str]


def creds(token: str) -> HTTPAuthorizationCredentials:
    return HTTPAuthorizationCredentials(scheme="Bearer", credentials=token)


class TestDecodeToken:
    def test_returns_claims(self, make_token: TokenFactory) -> None:
        claims = decode_token(make_token("uid-1", "a@example.com"))

        assert claims["sub"] == "uid-1"
        assert claims["email"] == "a@example.com"

    def test_rejects_expired(self, make_token: TokenFactory) -> None:
        token = make_token("uid-1", "a@example.com", expires_in=timedelta(minutes=-5))

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_rejects_bad_signature(self) -> None:
        token = jwt.encode(
            {"sub": "uid-1", "email": "a@example.com", "aud": "authenticated"},
            "wrong-secret",
            algorithm="HS256",
        )

        with pytest.raises(HTTPException) as exc_info:
            decode_token(token)

        assert exc_info.value.status_code == 401

    def test_rejects_garbage(self) -> None:
        with pytest.raises(HTTPException) as exc_info:
            decode_token("not-a-jwt")

        assert exc_info.value.status_code == 401


class TestGetCurrentUser:
    async def test_creates_profile_on_first_request(
        self, db_session: AsyncSession, make_token: TokenFactory
    ) -> None:
        user = await get_current_user(
            credentials=creds(make_token("new-uid", "alice@example.com")),
            session=db_session,
        )

        assert user.id is not None
        assert user.auth_uid == "new-uid"
        assert user.email == "alice@example.com"
        assert user.role is UserRole.CUSTOMER

    async def test_returns_existing_profile(
        self, db_session: AsyncSession, make_token: TokenFactory
    ) -> None:
        existing = UserProfile(auth_uid="bob-uid", email="bob@example.com")
        db_session.add(existing)
        await db_session.flush()

        user = await get_current_user(
            credentials=creds(make_token("bob-uid", "bob@example.com")),
            session=db_session,
        )

        assert user.id == existing.id

    async def test_rejects_missing_credentials(self, db_session: AsyncSession) -> None:
        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=None, session=db_session)

        assert exc_info.value.status_code == 401

    async def test_rejects_expired_token(
        self, db_session: AsyncSession, make_token: TokenFactory
    ) -> None:
        token = make_token("uid", "x@example.com", expires_in=timedelta(seconds=-1))

        with pytest.raises(HTTPException) as exc_info:
            await get_current_user(credentials=creds(token), session=db_session)

        assert exc_info.value.status_code == 401


class TestRequireAdmin:
    async def test_allows_admin(self) -> None:
        admin = UserProfile(auth_uid="a", email="a@example.com", role=UserRole.ADMIN)

        assert await require_admin(user=admin) is admin

    async def test_rejects_customer(self) -> None:
        customer = UserProfile(
            auth_uid="c", email="c@example.com", role=UserRole.CUSTOMER
        )

        with pytest.raises(HTTPException) as exc_info:
            await require_admin(user=customer)

        assert exc_info.value.status_code == 403
