"""
Authentication endpoints.

- Username-or-email/password login returning a bearer JWT
- Logout (token revocation in Redis)
- Current actor summary
"""

from __future__ import annotations

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_directory, get_recorder
from app.core.auth import Actor, create_access_token, get_current_actor, get_token_payload, verify_password
from app.core.database import get_session
from app.core.exceptions import AuthenticationError
from app.core.redis import revoke_token
from app.services.activity import ActivityRecorder, build_activity
from app.services.users import UserDirectory, to_response
from teamtasks_shared.schemas.common import ActivityType, MessageResponse
from teamtasks_shared.schemas.users import UserResponse

log = structlog.get_logger()
router = APIRouter()


class LoginRequest(BaseModel):
    username: str = Field(min_length=1, description="Username or email")
    password: str = Field(min_length=8)


class LoginResponse(BaseModel):
    token: str
    user: UserResponse


@router.post("/login", response_model=LoginResponse, response_model_by_alias=True)
async def login(
    body: LoginRequest,
    session: AsyncSession = Depends(get_session),
    directory: UserDirectory = Depends(get_directory),
    recorder: ActivityRecorder = Depends(get_recorder),
):
    """Authenticate with username (or email) and password and receive a JWT."""
    user = await directory.find_for_login(body.username)
    if not user or not verify_password(body.password, user.password_hash):
        log.warning("auth.login_failure", username=body.username)
        raise AuthenticationError("Invalid credentials")

    user.last_login = datetime.now(timezone.utc)
    session.add(user)
    await session.commit()
    await session.refresh(user)

    token, _jti = create_access_token(user)
    log.info("auth.login_success", user_id=str(user.id), role=user.role)
    await recorder.record(build_activity(ActivityType.LOGIN, user.id, "User logged in"))
    return LoginResponse(token=token, user=to_response(user))


@router.post("/logout", response_model=MessageResponse)
async def logout(
    payload: dict = Depends(get_token_payload),
    actor: Actor = Depends(get_current_actor),
    recorder: ActivityRecorder = Depends(get_recorder),
):
    """Revoke the presented token until it would have expired."""
    jti = payload.get("jti")
    if jti:
        ttl = int(payload.get("exp", 0) - datetime.now(timezone.utc).timestamp())
        await revoke_token(jti, ttl)
    log.info("auth.logout", user_id=str(actor.id))
    await recorder.record(build_activity(ActivityType.LOGOUT, actor.id, "User logged out"))
    return MessageResponse(message="Logged out")


@router.get("/me", response_model=UserResponse, response_model_by_alias=True)
async def me(
    actor: Actor = Depends(get_current_actor),
    directory: UserDirectory = Depends(get_directory),
):
    """Return the authenticated user."""
    return to_response(await directory.get(actor.id))
