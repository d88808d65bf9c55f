from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status

from boostify.core.config import get_settings
from boostify.db.repo.users_repo import UsersRepo
from boostify.db.session import SessionLocal
from boostify.services.session_auth import extract_bearer_token, parse_session_token


@dataclass(slots=True, frozen=True)
class CurrentUser:
    id: UUID
    email: str
    role: str


async def get_current_user(authorization: str | None = Header(default=None)) -> CurrentUser:
    user_id = parse_session_token(
        token=extract_bearer_token(authorization),
        secret=get_settings().session_token_secret,
    )
    if user_id is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")

    async with SessionLocal() as session:
        user = await UsersRepo.get_by_id(session, user_id)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
    return CurrentUser(id=user.id, email=user.email, role=user.role)


async def require_booster(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if user.role != "booster":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden - Booster access required",
        )
    return user
