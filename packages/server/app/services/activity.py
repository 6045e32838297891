"""
Activity recorder: the append-only audit trail.

Every mutating action writes exactly one record after the mutation itself
has committed. Appends run in their own session so that a failed append
never disturbs the caller's unit of work. The append is best-effort: a
failed write is logged as ``activity.record_failed`` and handed to the
``on_failure`` hook, but never fails or rolls back the action that
triggered it.
"""

from __future__ import annotations

import uuid
from typing import Callable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlmodel import select

from app.core.auth import Actor
from app.core.pagination import Page, paginate
from app.models.activity import Activity
from app.services.access import AccessControlEngine, ResourceKind
from teamtasks_shared.schemas.activity import ActivityRead
from teamtasks_shared.schemas.common import ActivityType

log = structlog.get_logger()

AuditFailureHook = Callable[[Activity, Exception], None]


def build_activity(
    type: ActivityType,
    actor_id: uuid.UUID,
    description: str,
    *,
    target_user: Optional[uuid.UUID] = None,
    target_task: Optional[uuid.UUID] = None,
    metadata: Optional[dict] = None,
) -> Activity:
    return Activity(
        type=type.value,
        actor_id=actor_id,
        target_user=target_user,
        target_task=target_task,
        description=description[:500],
        details=metadata or {},
    )


def to_read(entry: Activity) -> ActivityRead:
    return ActivityRead(
        id=entry.id,
        type=entry.type,
        actor=entry.actor_id,
        target_user=entry.target_user,
        target_task=entry.target_task,
        description=entry.description,
        metadata=entry.details or {},
        created_at=entry.created_at,
    )


class ActivityRecorder:
    def __init__(
        self,
        session: AsyncSession,
        access: AccessControlEngine,
        *,
        session_factory: async_sessionmaker,
        on_failure: Optional[AuditFailureHook] = None,
    ):
        self.session = session
        self.access = access
        self.session_factory = session_factory
        self.on_failure = on_failure

    async def record(self, entry: Activity) -> bool:
        """Append one entry in its own commit. Returns False if the write failed."""
        try:
            async with self.session_factory() as writer:
                writer.add(entry)
                await writer.commit()
        except Exception as exc:
            log.error(
                "activity.record_failed",
                type=entry.type,
                actor_id=str(entry.actor_id),
                target_task=str(entry.target_task) if entry.target_task else None,
                target_user=str(entry.target_user) if entry.target_user else None,
                error=str(exc),
            )
            if self.on_failure is not None:
                self.on_failure(entry, exc)
            return False
        log.debug("activity.recorded", type=entry.type, actor_id=str(entry.actor_id))
        return True

    async def query(
        self,
        actor: Actor,
        *,
        type: Optional[ActivityType] = None,
        user_id: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 20,
    ) -> Page[Activity]:
        """Scoped, newest-first page of the audit trail."""
        stmt = select(Activity).where(self.access.scope_for(actor, ResourceKind.ACTIVITY))
        if type is not None:
            stmt = stmt.where(Activity.type == type.value)
        if user_id is not None:
            stmt = stmt.where(Activity.actor_id == user_id)
        stmt = stmt.order_by(Activity.created_at.desc(), Activity.id)
        return await paginate(self.session, stmt, page, limit)
