"""
User Management API endpoints.

GET    /api/v1/users                  - List users in scope
POST   /api/v1/users                  - Create a leader or member
PUT    /api/v1/users/{userId}         - Update a user
DELETE /api/v1/users/{userId}         - Soft-delete a user
GET    /api/v1/users/{userId}/stats   - Task counts per status
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends

from app.api.deps import get_directory
from app.core.auth import Actor, require_leader_or_admin
from app.services.users import UserDirectory, to_response
from teamtasks_shared.schemas.common import MessageResponse
from teamtasks_shared.schemas.users import (
    UserCreateRequest,
    UserListResponse,
    UserResponse,
    UserTaskStats,
    UserUpdateRequest,
)

router = APIRouter()


@router.get("", response_model=UserListResponse)
async def list_users(
    actor: Actor = Depends(require_leader_or_admin),
    directory: UserDirectory = Depends(get_directory),
):
    """Active users visible to the caller, newest first."""
    users = await directory.list_users(actor)
    return UserListResponse(data=[to_response(u) for u in users])


@router.post("", response_model=UserResponse, status_code=201)
async def create_user(
    body: UserCreateRequest,
    actor: Actor = Depends(require_leader_or_admin),
    directory: UserDirectory = Depends(get_directory),
):
    """Create a user. Leaders may only create members, who join their team."""
    user = await directory.create_user(actor, body)
    return to_response(user)


@router.put("/{userId}", response_model=UserResponse)
async def update_user(
    userId: uuid.UUID,
    body: UserUpdateRequest,
    actor: Actor = Depends(require_leader_or_admin),
    directory: UserDirectory = Depends(get_directory),
):
    user = await directory.update_user(actor, userId, body)
    return to_response(user)


@router.delete("/{userId}", response_model=MessageResponse)
async def delete_user(
    userId: uuid.UUID,
    actor: Actor = Depends(require_leader_or_admin),
    directory: UserDirectory = Depends(get_directory),
):
    """Deactivate a user and return their tasks to the unassigned pool."""
    await directory.delete_user(actor, userId)
    return MessageResponse(message="User deleted successfully")


@router.get("/{userId}/stats", response_model=UserTaskStats)
async def user_stats(
    userId: uuid.UUID,
    actor: Actor = Depends(require_leader_or_admin),
    directory: UserDirectory = Depends(get_directory),
):
    return await directory.task_stats(actor, userId)
