"""User management schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import EmailStr, Field, UUID4, field_validator

from .common import ASSIGNABLE_ROLES, CamelModel, Role


# ---------------------------------------------------------------------------
# Request schemas
# ---------------------------------------------------------------------------

class UserCreateRequest(CamelModel):
    username: str = Field(min_length=3, max_length=50, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(min_length=8)
    full_name: str = Field(min_length=1, max_length=200)
    role: Role
    assigned_leader: Optional[UUID4] = None

    @field_validator("role")
    @classmethod
    def check_role(cls, role: Optional[Role]) -> Optional[Role]:
        if role is not None and role not in ASSIGNABLE_ROLES:
            raise ValueError("Role must be 'leader' or 'member'")
        return role


class UserUpdateRequest(CamelModel):
    """Partial update. Passwords are never changed through this schema."""
    email: Optional[EmailStr] = None
    full_name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    role: Optional[Role] = None
    assigned_leader: Optional[UUID4] = None

    @field_validator("role")
    @classmethod
    def check_role(cls, role: Optional[Role]) -> Optional[Role]:
        if role is not None and role not in ASSIGNABLE_ROLES:
            raise ValueError("Role must be 'leader' or 'member'")
        return role


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------

class UserResponse(CamelModel):
    id: UUID4
    username: str
    email: str
    full_name: str
    role: Role
    assigned_leader: Optional[UUID4] = None
    is_active: bool
    created_by: Optional[UUID4] = None
    last_login: Optional[datetime] = None
    created_at: datetime


class UserListResponse(CamelModel):
    data: List[UserResponse]


class UserTaskStats(CamelModel):
    """Per-status task counts for one assignee."""
    total: int = 0
    pending: int = 0
    in_progress: int = 0
    completed: int = 0
    cancelled: int = 0
