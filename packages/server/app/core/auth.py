"""
Authentication for Team Tasks.

This is the identity verifier the core consumes: it turns a presented
credential into an ``Actor``. Supports:
- Password hashing (bcrypt)
- JWT issuance and verification with a Redis revocation list
- FastAPI dependencies for the current actor and role gates
- Websocket handshake authentication
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import bcrypt
import jwt
import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.database import get_session
from app.core.exceptions import AuthenticationError, AuthorizationError
from app.core.redis import is_token_revoked
from app.models.user import User
from teamtasks_shared.schemas.common import Role

log = structlog.get_logger()
settings = get_settings()

bearer_scheme = HTTPBearer(auto_error=False)

ROLE_NOT_PERMITTED = "RoleNotPermitted"


# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt with the configured cost factor."""
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt(rounds=settings.bcrypt_rounds)).decode()


def verify_password(password: str, hashed: str) -> bool:
    """Verify a password against a bcrypt hash."""
    return bcrypt.checkpw(password.encode(), hashed.encode())


# ---------------------------------------------------------------------------
# Actor
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Actor:
    """The authenticated identity performing an operation."""

    id: uuid.UUID
    role: Role
    is_active: bool = True

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(id=user.id, role=Role(user.role), is_active=user.is_active)


# ---------------------------------------------------------------------------
# JWT
# ---------------------------------------------------------------------------

def create_access_token(
    user: User,
    *,
    expires_delta: timedelta | None = None,
) -> tuple[str, str]:
    """Create a signed JWT for a user. Returns (token, jti)."""
    jti = str(uuid.uuid4())
    now = datetime.now(timezone.utc)
    exp = now + (expires_delta or timedelta(minutes=settings.jwt_expire_minutes))
    payload = {
        "sub": str(user.id),
        "role": user.role,
        "iat": now,
        "exp": exp,
        "jti": jti,
    }
    token = jwt.encode(payload, settings.secret_key, algorithm=settings.jwt_algorithm)
    return token, jti


def decode_access_token(token: str) -> dict:
    """Decode and verify a JWT. Raises AuthenticationError on failure."""
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except jwt.PyJWTError:
        raise AuthenticationError("Invalid or expired token")


async def resolve_actor(payload: dict, session: AsyncSession) -> Actor:
    """Check revocation, then load the user behind a decoded token."""
    jti = payload.get("jti")
    if jti and await is_token_revoked(jti):
        raise AuthenticationError("Token has been revoked")

    try:
        user_id = uuid.UUID(payload["sub"])
    except (KeyError, ValueError):
        raise AuthenticationError("Invalid token")

    user = await session.get(User, user_id)
    if not user or not user.is_active:
        raise AuthenticationError("Invalid token")
    return Actor.from_user(user)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------

async def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> dict:
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return decode_access_token(credentials.credentials)


async def get_current_actor(
    payload: dict = Depends(get_token_payload),
    session: AsyncSession = Depends(get_session),
) -> Actor:
    """Main authentication dependency: Bearer token → active Actor."""
    return await resolve_actor(payload, session)


def require_roles(*roles: Role):
    """Build a dependency that admits only actors holding one of ``roles``."""

    async def _require(actor: Actor = Depends(get_current_actor)) -> Actor:
        if actor.role not in roles:
            raise AuthorizationError(ROLE_NOT_PERMITTED, message="Insufficient permissions")
        return actor

    return _require


require_leader_or_admin = require_roles(Role.LEADER, Role.SUPERADMIN)


async def authenticate_websocket(token: Optional[str], session_factory) -> Actor:
    """Authenticate a real-time handshake token.

    The token is verified before a database session is opened so that
    malformed handshakes cost nothing.
    """
    if not token:
        raise AuthenticationError("Access token required")
    payload = decode_access_token(token)
    async with session_factory() as session:
        return await resolve_actor(payload, session)
