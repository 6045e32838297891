"""
Task endpoints: scoped listing, CRUD and comments.

Statuses: pending, in-progress, completed, cancelled. Any status may follow
any other; moving to completed stamps completedAt.
Real-time events go out on create (new_task) and update (task_updated).
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_task_lifecycle
from app.core.auth import Actor, get_current_actor, require_leader_or_admin
from app.core.config import get_settings
from app.core.pagination import MAX_PAGE
from app.core.database import get_session
from app.services.tasks import TaskLifecycle, comment_to_read, enrich_task, enrich_tasks
from teamtasks_shared.schemas.common import MessageResponse, TaskPriority, TaskStatus
from teamtasks_shared.schemas.tasks import (
    CommentCreate,
    CommentRead,
    TaskCreate,
    TaskListResponse,
    TaskRead,
    TaskUpdate,
)

settings = get_settings()
router = APIRouter()


@router.get("", response_model=TaskListResponse)
async def list_tasks_endpoint(
    status: Optional[TaskStatus] = None,
    priority: Optional[TaskPriority] = None,
    assignedTo: Optional[uuid.UUID] = None,
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(settings.default_task_page_size, ge=1, le=settings.max_page_size),
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycle = Depends(get_task_lifecycle),
    session: AsyncSession = Depends(get_session),
):
    """List tasks visible to the caller, newest first, with optional filters."""
    result = await lifecycle.list_tasks(
        actor,
        status=status,
        priority=priority,
        assigned_to=assignedTo,
        page=page,
        limit=limit,
    )
    return TaskListResponse(
        tasks=await enrich_tasks(session, result.items),
        total_pages=result.total_pages,
        current_page=result.page,
        total=result.total,
    )


@router.post("", response_model=TaskRead, status_code=201)
async def create_task_endpoint(
    task_in: TaskCreate,
    actor: Actor = Depends(require_leader_or_admin),
    lifecycle: TaskLifecycle = Depends(get_task_lifecycle),
    session: AsyncSession = Depends(get_session),
):
    """Create a task for an active user. Leaders may only assign their own team."""
    task = await lifecycle.create(actor, task_in)
    return await enrich_task(session, task)


@router.get("/{taskId}", response_model=TaskRead)
async def get_task_endpoint(
    taskId: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycle = Depends(get_task_lifecycle),
    session: AsyncSession = Depends(get_session),
):
    task = await lifecycle.get_task(actor, taskId)
    return await enrich_task(session, task)


@router.put("/{taskId}", response_model=TaskRead)
async def update_task_endpoint(
    taskId: uuid.UUID,
    task_in: TaskUpdate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycle = Depends(get_task_lifecycle),
    session: AsyncSession = Depends(get_session),
):
    """Apply a partial update. Allowed for the creator, the assignee and superadmins."""
    task = await lifecycle.update(actor, taskId, task_in)
    return await enrich_task(session, task)


@router.delete("/{taskId}", response_model=MessageResponse)
async def delete_task_endpoint(
    taskId: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycle = Depends(get_task_lifecycle),
):
    """Delete a task. Allowed for the creator and superadmins."""
    await lifecycle.delete(actor, taskId)
    return MessageResponse(message="Task deleted successfully")


@router.post("/{taskId}/comments", response_model=CommentRead, status_code=201)
async def add_comment_endpoint(
    taskId: uuid.UUID,
    body: CommentCreate,
    actor: Actor = Depends(get_current_actor),
    lifecycle: TaskLifecycle = Depends(get_task_lifecycle),
):
    comment = await lifecycle.add_comment(actor, taskId, body.text)
    return comment_to_read(comment)
