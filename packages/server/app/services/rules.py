"""
Entity rules as pure functions.

Each function takes the current entity (and arguments) and returns the
field changes to apply. Nothing here touches the session; the services
apply the result with ``apply_changes`` and persist.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Mapping, Optional

from app.models.base import utcnow
from app.models.task import Task, TaskComment
from teamtasks_shared.schemas.common import Role, TaskStatus


def _plain(value: Any) -> Any:
    return value.value if hasattr(value, "value") else value


def apply_changes(entity: Any, changes: Mapping[str, Any]) -> Any:
    for key, value in changes.items():
        setattr(entity, key, value)
    return entity


# ---------------------------------------------------------------------------
# Tasks
# ---------------------------------------------------------------------------


def apply_task_patch(task: Task, patch: Mapping[str, Any], now: Optional[datetime] = None) -> dict[str, Any]:
    """Changes for a partial task update.

    Only keys present in ``patch`` are applied. Moving to ``completed``
    stamps ``completed_at``; moving away from it leaves the stamp in place.
    """
    changes = {key: _plain(value) for key, value in patch.items()}
    if changes.get("status") == TaskStatus.COMPLETED.value:
        changes["completed_at"] = now or utcnow()
    return changes


def unassign_task(task: Optional[Task] = None) -> dict[str, Any]:
    """Changes for a task whose assignee has been deactivated."""
    return {"assigned_to": None, "status": TaskStatus.PENDING.value}


def append_comment(task: Task, author_id: uuid.UUID, text: str, now: Optional[datetime] = None) -> TaskComment:
    return TaskComment(task_id=task.id, author_id=author_id, text=text, created_at=now or utcnow())


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def deactivate_user(user) -> dict[str, Any]:
    return {"is_active": False}


def apply_user_patch(user, patch: Mapping[str, Any]) -> dict[str, Any]:
    """Changes for a partial user update.

    Only members belong to a team: any other final role drops the
    ``assigned_leader``, whatever the patch asked for.
    """
    changes = {key: _plain(value) for key, value in patch.items()}
    final_role = changes.get("role", _plain(user.role))
    if final_role != Role.MEMBER.value:
        changes["assigned_leader"] = None
    return changes
