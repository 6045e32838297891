"""Activity model (append-only audit trail)."""

from typing import Optional
import uuid

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB
from sqlmodel import Field, SQLModel

from .base import CreatedAtMixin


class Activity(CreatedAtMixin, SQLModel, table=True):
    __tablename__ = "activities"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    type: str = Field(nullable=False, index=True)  # see ActivityType
    actor_id: uuid.UUID = Field(foreign_key="users.id", nullable=False, index=True)
    target_user: Optional[uuid.UUID] = Field(default=None)
    # No foreign key: the record outlives the task it describes.
    target_task: Optional[uuid.UUID] = Field(default=None)
    description: str = Field(nullable=False, max_length=500)
    details: dict = Field(
        default_factory=dict,
        sa_type=sa.JSON().with_variant(JSONB(), "postgresql"),
        nullable=False,
    )
