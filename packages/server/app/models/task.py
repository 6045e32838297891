"""Task and comment models."""

from datetime import datetime
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin, TimestampMixin, UTCDateTime, UUIDMixin


class Task(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "tasks"

    title: str = Field(nullable=False, max_length=200)
    description: Optional[str] = Field(default=None, max_length=1000)
    status: str = Field(nullable=False, default="pending", index=True)  # pending | in-progress | completed | cancelled
    priority: str = Field(nullable=False, default="medium", index=True)  # low | medium | high | urgent
    # Null once the assignee has been soft-deleted.
    assigned_to: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    created_by: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    due_date: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    completed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)


class TaskComment(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "task_comments"

    task_id: uuid.UUID = Field(foreign_key="tasks.id", nullable=False, index=True)
    author_id: uuid.UUID = Field(foreign_key="users.id", nullable=False)
    text: str = Field(nullable=False, max_length=500)
