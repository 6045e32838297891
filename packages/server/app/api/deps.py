"""
Service wiring for route handlers.

Every request gets its own services bound to its session. The broadcaster,
the session factory and the audit-failure hook are process-wide and live on
``app.state``.
"""

from __future__ import annotations

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.requests import HTTPConnection

from app.core.config import get_settings
from app.core.database import get_session
from app.core.realtime import EventBroadcaster
from app.services.access import AccessControlEngine
from app.services.activity import ActivityRecorder
from app.services.tasks import TaskLifecycle
from app.services.users import UserDirectory

settings = get_settings()

access_engine = AccessControlEngine()


def get_broadcaster(conn: HTTPConnection) -> EventBroadcaster:
    return conn.app.state.broadcaster


def get_access() -> AccessControlEngine:
    return access_engine


def get_session_factory(conn: HTTPConnection):
    """Session factory for writes that must not share the request session."""
    return conn.app.state.session_factory


def get_recorder(
    conn: HTTPConnection,
    session: AsyncSession = Depends(get_session),
    access: AccessControlEngine = Depends(get_access),
    session_factory=Depends(get_session_factory),
) -> ActivityRecorder:
    return ActivityRecorder(
        session,
        access,
        session_factory=session_factory,
        on_failure=getattr(conn.app.state, "on_audit_failure", None),
    )


def get_directory(
    session: AsyncSession = Depends(get_session),
    access: AccessControlEngine = Depends(get_access),
    recorder: ActivityRecorder = Depends(get_recorder),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> UserDirectory:
    return UserDirectory(session, access, recorder, broadcaster)


def get_task_lifecycle(
    session: AsyncSession = Depends(get_session),
    access: AccessControlEngine = Depends(get_access),
    recorder: ActivityRecorder = Depends(get_recorder),
    broadcaster: EventBroadcaster = Depends(get_broadcaster),
) -> TaskLifecycle:
    return TaskLifecycle(
        session,
        access,
        recorder,
        broadcaster,
        enforce_comment_ownership=settings.enforce_comment_ownership,
    )
