from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from src.auth import get_current_user
from src.base.dependencies import get_session
from src.base.schemas import BaseDTO
from src.user.models import UserProfile, UserRole

router = APIRouter()


class ProfileUpdate(BaseModel):
    first_name: str | None = None
    last_name: str | None = None
    phone: str | None = None
    address: str | None = None
    city: str | None = None
    state: str | None = None
    zip_code: str | None = None


class ProfileResponse(BaseDTO):
    email: str
    first_name: str | None
    last_name: str | None
    phone: str | None
    address: str | None
    city: str | None
    state: str | None
    zip_code: str | None
    role: UserRole


@router.get("/users/me", response_model=ProfileResponse)
async def get_me(user: UserProfile = Depends(get_current_user)) -> UserProfile:
    return user


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(
    body: ProfileUpdate,
    user: UserProfile = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> UserProfile:
    user.apply(body.model_dump(exclude_unset=True))
    await session.flush()
    return user
