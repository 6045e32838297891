"""Task-related Pydantic schemas for shared use across server and frontend codegen."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import Field
from pydantic import UUID4

from .common import CamelModel, TaskPriority, TaskStatus


# ---------------------------------------------------------------------------
# Comments
# ---------------------------------------------------------------------------

class CommentCreate(CamelModel):
    """Request body for POST /tasks/{taskId}/comments."""
    text: str = Field(min_length=1, max_length=500)


class CommentRead(CamelModel):
    id: UUID4
    author: UUID4
    text: str
    created_at: datetime


# ---------------------------------------------------------------------------
# Task CRUD
# ---------------------------------------------------------------------------

class TaskCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    assigned_to: UUID4
    priority: TaskPriority = TaskPriority.MEDIUM
    due_date: Optional[datetime] = None


class TaskUpdate(CamelModel):
    """Partial patch: only fields present in the request are applied."""
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: Optional[TaskStatus] = None
    priority: Optional[TaskPriority] = None
    due_date: Optional[datetime] = None


class TaskRead(CamelModel):
    id: UUID4
    title: str
    description: Optional[str] = None
    status: TaskStatus
    priority: TaskPriority
    assigned_to: Optional[UUID4] = None
    created_by: UUID4
    due_date: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    comments: List[CommentRead] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class TaskListResponse(CamelModel):
    tasks: List[TaskRead]
    total_pages: int
    current_page: int
    total: int
