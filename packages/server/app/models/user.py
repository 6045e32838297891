"""User model. Users are soft-deleted (is_active=False), never removed."""

from datetime import datetime
from typing import Optional
import uuid

from sqlmodel import Field, SQLModel

from .base import TimestampMixin, UTCDateTime, UUIDMixin


class User(UUIDMixin, TimestampMixin, SQLModel, table=True):
    __tablename__ = "users"

    username: str = Field(nullable=False, unique=True, index=True)
    email: str = Field(nullable=False, unique=True, index=True)
    password_hash: str = Field(nullable=False)
    full_name: str = Field(nullable=False)
    role: str = Field(nullable=False, index=True)  # member | leader | superadmin
    # Required for members, unused for leaders, absent for superadmins.
    assigned_leader: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id", index=True)
    is_active: bool = Field(default=True, nullable=False)
    created_by: Optional[uuid.UUID] = Field(default=None, foreign_key="users.id")
    last_login: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
