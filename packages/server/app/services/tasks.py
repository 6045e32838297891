"""
Task service layer: the task lifecycle.

Handles:
- Scoped listing and lookup
- Creation, partial updates and status changes (any status may follow any other)
- Deletion and comment append
- Audit records and real-time fan-out after each committed mutation
- Enrichment of task data for API responses
"""

from __future__ import annotations

import uuid
from collections import defaultdict
from typing import Optional, Sequence

import structlog
from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor
from app.core.exceptions import NotFoundError, ValidationError
from app.core.pagination import Page, paginate
from app.core.realtime import LEADERS_TOPIC, NEW_TASK, TASK_UPDATED, EventBroadcaster, user_topic
from app.models.task import Task, TaskComment
from app.models.user import User
from app.services import rules
from app.services.access import AccessControlEngine, Action, ResourceKind
from app.services.activity import ActivityRecorder, build_activity
from teamtasks_shared.schemas.common import ActivityType, TaskPriority, TaskStatus
from teamtasks_shared.schemas.tasks import CommentRead, TaskCreate, TaskRead, TaskUpdate

log = structlog.get_logger()


# ---------------------------------------------------------------------------
# Enrichment
# ---------------------------------------------------------------------------


def comment_to_read(comment: TaskComment) -> CommentRead:
    return CommentRead(
        id=comment.id,
        author=comment.author_id,
        text=comment.text,
        created_at=comment.created_at,
    )


def _to_read(task: Task, comments: Sequence[TaskComment]) -> TaskRead:
    return TaskRead(
        id=task.id,
        title=task.title,
        description=task.description,
        status=task.status,
        priority=task.priority,
        assigned_to=task.assigned_to,
        created_by=task.created_by,
        due_date=task.due_date,
        completed_at=task.completed_at,
        comments=[comment_to_read(c) for c in comments],
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


async def enrich_tasks(session: AsyncSession, tasks: Sequence[Task]) -> list[TaskRead]:
    """Convert Task rows to TaskRead, loading all their comments in one query."""
    if not tasks:
        return []
    result = await session.execute(
        select(TaskComment)
        .where(TaskComment.task_id.in_([t.id for t in tasks]))
        .order_by(TaskComment.created_at, TaskComment.id)
    )
    by_task: dict[uuid.UUID, list[TaskComment]] = defaultdict(list)
    for comment in result.scalars().all():
        by_task[comment.task_id].append(comment)
    return [_to_read(t, by_task[t.id]) for t in tasks]


async def enrich_task(session: AsyncSession, task: Task) -> TaskRead:
    return (await enrich_tasks(session, [task]))[0]


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TaskLifecycle:
    def __init__(
        self,
        session: AsyncSession,
        access: AccessControlEngine,
        recorder: ActivityRecorder,
        broadcaster: EventBroadcaster,
        *,
        enforce_comment_ownership: bool = False,
    ):
        self.session = session
        self.access = access
        self.recorder = recorder
        self.broadcaster = broadcaster
        self.enforce_comment_ownership = enforce_comment_ownership

    async def _load(self, task_id: uuid.UUID) -> Task:
        task = await self.session.get(Task, task_id)
        if not task:
            raise NotFoundError("Task", task_id)
        return task

    async def _publish(self, event: str, task: Task) -> None:
        payload = (await enrich_task(self.session, task)).model_dump(mode="json", by_alias=True)
        topics = [LEADERS_TOPIC]
        if task.assigned_to is not None:
            topics.insert(0, user_topic(task.assigned_to))
        delivered = await self.broadcaster.publish_many(topics, event, payload)
        log.debug("task.published", task_id=str(task.id), event_name=event, delivered=delivered)

    # --- reads ---------------------------------------------------------

    async def list_tasks(
        self,
        actor: Actor,
        *,
        status: Optional[TaskStatus] = None,
        priority: Optional[TaskPriority] = None,
        assigned_to: Optional[uuid.UUID] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Page[Task]:
        """Scoped, newest-first page of tasks. Filters narrow the scope, never widen it."""
        stmt = select(Task).where(self.access.scope_for(actor, ResourceKind.TASK))
        if status is not None:
            stmt = stmt.where(Task.status == status.value)
        if priority is not None:
            stmt = stmt.where(Task.priority == priority.value)
        if assigned_to is not None:
            stmt = stmt.where(Task.assigned_to == assigned_to)
        stmt = stmt.order_by(Task.created_at.desc(), Task.id)
        return await paginate(self.session, stmt, page, limit)

    async def get_task(self, actor: Actor, task_id: uuid.UUID) -> Task:
        """A task inside the actor's scope; 404 otherwise."""
        result = await self.session.execute(
            select(Task).where(
                Task.id == task_id,
                self.access.scope_for(actor, ResourceKind.TASK),
            )
        )
        task = result.scalars().first()
        if not task:
            raise NotFoundError("Task", task_id)
        return task

    # --- mutations -----------------------------------------------------

    async def create(self, actor: Actor, task_in: TaskCreate) -> Task:
        assignee = await self.session.get(User, task_in.assigned_to)
        if not assignee or not assignee.is_active:
            raise NotFoundError("User", task_in.assigned_to)
        self.access.can_mutate(
            actor, ResourceKind.TASK, Action.CREATE, assignee
        ).enforce(ResourceKind.TASK, Action.CREATE)

        task = Task(
            title=task_in.title,
            description=task_in.description,
            status=TaskStatus.PENDING.value,
            priority=task_in.priority.value,
            assigned_to=assignee.id,
            created_by=actor.id,
            due_date=task_in.due_date,
        )
        self.session.add(task)
        await self.session.commit()
        await self.session.refresh(task)

        log.info("task.created", task_id=str(task.id), assigned_to=str(assignee.id), actor_id=str(actor.id))
        await self.recorder.record(
            build_activity(
                ActivityType.CREATE_TASK,
                actor.id,
                f"Created task: {task.title}",
                target_task=task.id,
                metadata={"assignedTo": assignee.full_name},
            )
        )
        await self._publish(NEW_TASK, task)
        return task

    async def update(self, actor: Actor, task_id: uuid.UUID, task_in: TaskUpdate) -> Task:
        task = await self._load(task_id)
        self.access.can_mutate(
            actor, ResourceKind.TASK, Action.UPDATE, task
        ).enforce(ResourceKind.TASK, Action.UPDATE)

        patch = task_in.model_dump(exclude_unset=True)
        for field in ("title", "status", "priority"):
            if field in patch and patch[field] is None:
                raise ValidationError.for_field(field, f"{field.capitalize()} cannot be null")
        old_status = task.status
        rules.apply_changes(task, rules.apply_task_patch(task, patch))
        self.session.add(task)
        await self.session.commit()
        await self.session.refresh(task)

        log.info(
            "task.updated",
            task_id=str(task.id),
            fields=sorted(patch),
            old_status=old_status,
            new_status=task.status,
            actor_id=str(actor.id),
        )
        await self.recorder.record(
            build_activity(
                ActivityType.UPDATE_TASK,
                actor.id,
                f"Updated task: {task.title}",
                target_task=task.id,
                metadata=task_in.model_dump(mode="json", exclude_unset=True, by_alias=True),
            )
        )
        await self._publish(TASK_UPDATED, task)
        return task

    async def delete(self, actor: Actor, task_id: uuid.UUID) -> None:
        task = await self._load(task_id)
        self.access.can_mutate(
            actor, ResourceKind.TASK, Action.DELETE, task
        ).enforce(ResourceKind.TASK, Action.DELETE)

        title = task.title
        await self.session.execute(delete(TaskComment).where(TaskComment.task_id == task.id))
        await self.session.delete(task)
        await self.session.commit()

        log.info("task.deleted", task_id=str(task_id), actor_id=str(actor.id))
        await self.recorder.record(
            build_activity(
                ActivityType.DELETE_TASK,
                actor.id,
                f"Deleted task: {title}",
                target_task=task_id,
            )
        )

    async def add_comment(self, actor: Actor, task_id: uuid.UUID, text: str) -> TaskComment:
        task = await self._load(task_id)
        if self.enforce_comment_ownership:
            self.access.can_mutate(
                actor, ResourceKind.TASK, Action.COMMENT, task
            ).enforce(ResourceKind.TASK, Action.COMMENT)

        comment = rules.append_comment(task, actor.id, text)
        self.session.add(comment)
        await self.session.commit()
        await self.session.refresh(comment)

        log.info("task.commented", task_id=str(task.id), comment_id=str(comment.id), actor_id=str(actor.id))
        await self.recorder.record(
            build_activity(
                ActivityType.COMMENT,
                actor.id,
                f"Commented on task: {task.title}",
                target_task=task.id,
                metadata={"commentId": str(comment.id)},
            )
        )
        return comment
