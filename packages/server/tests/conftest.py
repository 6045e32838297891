"""
Shared fixtures: an in-memory SQLite database, a mocked Redis, the core
services and a small organisation (one superadmin, two leaders, three members).
"""

from __future__ import annotations

import os

os.environ.setdefault("TT_DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("TT_BCRYPT_ROUNDS", "4")
os.environ.setdefault("TT_LOG_FORMAT", "text")

from dataclasses import dataclass
from datetime import timezone
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import Actor, create_access_token, hash_password
from app.core.database import get_session
from app.core.realtime import EventBroadcaster
from app.main import app as fastapi_app
from app.models.user import User
from app.services.access import AccessControlEngine
from app.services.activity import ActivityRecorder
from app.services.tasks import TaskLifecycle
from app.services.users import UserDirectory
from teamtasks_shared.schemas.common import Role

PASSWORD = "Password123!"


def as_utc(value):
    """SQLite hands back naive datetimes; the application writes UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def auth_headers(user: User) -> dict[str, str]:
    token, _jti = create_access_token(user)
    return {"Authorization": f"Bearer {token}"}


@dataclass
class Org:
    admin: User
    leader1: User
    leader2: User
    member1: User
    member2: User
    member3: User

    def actor(self, name: str) -> Actor:
        return Actor.from_user(getattr(self, name))


# ---------------------------------------------------------------------------
# Infrastructure
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def redis_mock():
    client = AsyncMock()
    client.exists = AsyncMock(return_value=0)
    client.setex = AsyncMock()
    with patch("app.core.redis.get_redis", AsyncMock(return_value=client)):
        yield client


@pytest.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


# ---------------------------------------------------------------------------
# Services
# ---------------------------------------------------------------------------


@pytest.fixture
def access():
    return AccessControlEngine()


@pytest.fixture
def broadcaster():
    return EventBroadcaster()


@pytest.fixture
def audit_failures():
    return []


@pytest.fixture
def recorder(session, access, session_factory, audit_failures):
    return ActivityRecorder(
        session,
        access,
        session_factory=session_factory,
        on_failure=lambda entry, exc: audit_failures.append((entry, exc)),
    )


@pytest.fixture
def directory(session, access, recorder, broadcaster):
    return UserDirectory(session, access, recorder, broadcaster)


@pytest.fixture
def lifecycle(session, access, recorder, broadcaster):
    return TaskLifecycle(session, access, recorder, broadcaster)


# ---------------------------------------------------------------------------
# Data
# ---------------------------------------------------------------------------


@pytest.fixture
async def org(session) -> Org:
    password_hash = hash_password(PASSWORD)

    def make(username, role, **extra):
        return User(
            username=username,
            email=f"{username}@example.com",
            full_name=username.replace("_", " ").title(),
            role=role.value,
            password_hash=password_hash,
            **extra,
        )

    admin = make("admin", Role.SUPERADMIN)
    session.add(admin)
    await session.flush()
    leader1 = make("leader_one", Role.LEADER, created_by=admin.id)
    leader2 = make("leader_two", Role.LEADER, created_by=admin.id)
    session.add_all([leader1, leader2])
    await session.flush()
    member1 = make("member_one", Role.MEMBER, assigned_leader=leader1.id, created_by=leader1.id)
    member2 = make("member_two", Role.MEMBER, assigned_leader=leader1.id, created_by=leader1.id)
    member3 = make("member_three", Role.MEMBER, assigned_leader=leader2.id, created_by=leader2.id)
    session.add_all([member1, member2, member3])
    await session.commit()
    return Org(admin, leader1, leader2, member1, member2, member3)


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(session_factory, broadcaster):
    async def _session_override():
        async with session_factory() as s:
            try:
                yield s
                await s.commit()
            except Exception:
                await s.rollback()
                raise

    saved_state = (
        fastapi_app.state.broadcaster,
        fastapi_app.state.session_factory,
        fastapi_app.state.on_audit_failure,
    )
    fastapi_app.dependency_overrides[get_session] = _session_override
    fastapi_app.state.broadcaster = broadcaster
    fastapi_app.state.session_factory = session_factory
    fastapi_app.state.on_audit_failure = None
    try:
        async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
            yield ac
    finally:
        fastapi_app.dependency_overrides.clear()
        (
            fastapi_app.state.broadcaster,
            fastapi_app.state.session_factory,
            fastapi_app.state.on_audit_failure,
        ) = saved_state
