import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.base.config import JWT_ALGORITHM, JWT_AUDIENCE, JWT_SECRET
from src.base.dependencies import get_session
from src.user.models import UserProfile, UserRole

logger = logging.getLogger(__name__)

bearer = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
    """Verify an access token issued by the auth provider and return its claims."""
    try:
        claims = jwt.decode(
            token, JWT_SECRET, algorithms=[JWT_ALGORITHM], audience=JWT_AUDIENCE
        )
    except ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired")
    except JWTError as exc:
        logger.info("Rejected access token: %s", exc)
        raise HTTPException(status_code=401, detail="Invalid access token")

    if not claims.get("sub") or not claims.get("email"):
        raise HTTPException(status_code=401, detail="Token is missing sub or email")
    return claims


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer),
    session: AsyncSession = Depends(get_session),
) -> UserProfile:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Authorization header missing")

    claims = decode_token(credentials.credentials)

    stmt = select(UserProfile).where(UserProfile.auth_uid == claims["sub"])
    user = (await session.execute(stmt)).scalar_one_or_none()

    if user is None:
        user = UserProfile(
            auth_uid=claims["sub"], email=claims["email"], role=UserRole.CUSTOMER
        )
        session.add(user)
        await session.flush()
        logger.info("Created profile %s for %s", user.id, user.email)

    return user


async def require_admin(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return user
