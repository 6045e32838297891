"""
User directory: user records and the leader → member hierarchy.

Mutations follow one order: access decision, entity change and commit,
then a single audit record. Soft delete is the only way a user leaves the
system; it unassigns their tasks and closes their live connections.
"""

from __future__ import annotations

import uuid
from typing import Any, Optional

import structlog
from sqlalchemy import func, or_, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from app.core.auth import Actor, hash_password
from app.core.exceptions import NotFoundError, ValidationError
from app.core.realtime import EventBroadcaster
from app.models.task import Task
from app.models.user import User
from app.services import rules
from app.services.access import AccessControlEngine, Action, ResourceKind, team_ids
from app.services.activity import ActivityRecorder, build_activity
from teamtasks_shared.schemas.common import ActivityType, Role, TaskStatus
from teamtasks_shared.schemas.users import (
    UserCreateRequest,
    UserResponse,
    UserTaskStats,
    UserUpdateRequest,
)

log = structlog.get_logger()


def to_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        username=user.username,
        email=user.email,
        full_name=user.full_name,
        role=user.role,
        assigned_leader=user.assigned_leader,
        is_active=user.is_active,
        created_by=user.created_by,
        last_login=user.last_login,
        created_at=user.created_at,
    )


class UserDirectory:
    def __init__(
        self,
        session: AsyncSession,
        access: AccessControlEngine,
        recorder: ActivityRecorder,
        broadcaster: Optional[EventBroadcaster] = None,
    ):
        self.session = session
        self.access = access
        self.recorder = recorder
        self.broadcaster = broadcaster

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    async def get(self, user_id: uuid.UUID) -> User:
        user = await self.session.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def get_active(self, user_id: uuid.UUID) -> User:
        user = await self.session.get(User, user_id)
        if not user or not user.is_active:
            raise NotFoundError("User", user_id)
        return user

    async def find_for_login(self, identifier: str) -> Optional[User]:
        """Active user whose username or email equals ``identifier``."""
        result = await self.session.execute(
            select(User).where(
                or_(User.username == identifier, User.email == identifier),
                User.is_active.is_(True),
            )
        )
        return result.scalars().first()

    async def team_of(self, leader_id: uuid.UUID) -> list[User]:
        """Active members assigned to a leader."""
        result = await self.session.execute(
            select(User).where(User.id.in_(team_ids(leader_id))).order_by(User.created_at)
        )
        return list(result.scalars().all())

    async def list_users(self, actor: Actor) -> list[User]:
        result = await self.session.execute(
            select(User)
            .where(self.access.scope_for(actor, ResourceKind.USER))
            .order_by(User.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_scoped(self, actor: Actor, user_id: uuid.UUID) -> User:
        """A user inside the actor's user scope; 404 otherwise."""
        result = await self.session.execute(
            select(User).where(
                User.id == user_id,
                self.access.scope_for(actor, ResourceKind.USER),
            )
        )
        user = result.scalars().first()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def task_stats(self, actor: Actor, user_id: uuid.UUID) -> UserTaskStats:
        """Per-status counts of the tasks assigned to a user."""
        await self.get_scoped(actor, user_id)
        result = await self.session.execute(
            select(Task.status, func.count())
            .where(Task.assigned_to == user_id)
            .group_by(Task.status)
        )
        counts = {status: count for status, count in result.all()}
        return UserTaskStats(
            total=sum(counts.values()),
            pending=counts.get(TaskStatus.PENDING.value, 0),
            in_progress=counts.get(TaskStatus.IN_PROGRESS.value, 0),
            completed=counts.get(TaskStatus.COMPLETED.value, 0),
            cancelled=counts.get(TaskStatus.CANCELLED.value, 0),
        )

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    async def _require_active_leader(self, leader_id: uuid.UUID) -> None:
        leader = await self.session.get(User, leader_id)
        if not leader or not leader.is_active or leader.role != Role.LEADER.value:
            raise ValidationError.for_field("assignedLeader", "Assigned leader must be an active leader")

    async def _require_no_active_team(self, leader: User, field: str) -> None:
        """A leader with active members can neither be demoted nor deleted."""
        if leader.role != Role.LEADER.value:
            return
        if await self.team_of(leader.id):
            raise ValidationError.for_field(
                field, "Leader still has active team members; reassign them first"
            )

    async def _check_unique(
        self,
        *,
        username: Optional[str] = None,
        email: Optional[str] = None,
        exclude_id: Optional[uuid.UUID] = None,
    ) -> None:
        if username is not None:
            stmt = select(User.id).where(User.username == username)
            if exclude_id:
                stmt = stmt.where(User.id != exclude_id)
            if (await self.session.execute(stmt)).first():
                raise ValidationError.for_field("username", "Username already exists")
        if email is not None:
            stmt = select(User.id).where(User.email == email)
            if exclude_id:
                stmt = stmt.where(User.id != exclude_id)
            if (await self.session.execute(stmt)).first():
                raise ValidationError.for_field("email", "Email already exists")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    async def create_user(self, actor: Actor, req: UserCreateRequest) -> User:
        self.access.can_mutate(
            actor, ResourceKind.USER, Action.CREATE, changes={"role": req.role}
        ).enforce(ResourceKind.USER, Action.CREATE)

        if req.role == Role.LEADER:
            assigned_leader = None
        elif actor.role == Role.LEADER:
            # Leader-created users always join the creating leader's team.
            assigned_leader = actor.id
        else:
            if req.assigned_leader is None:
                raise ValidationError.for_field("assignedLeader", "Members require an assigned leader")
            await self._require_active_leader(req.assigned_leader)
            assigned_leader = req.assigned_leader

        await self._check_unique(username=req.username, email=req.email)

        user = User(
            username=req.username,
            email=req.email,
            password_hash=hash_password(req.password),
            full_name=req.full_name,
            role=req.role.value,
            assigned_leader=assigned_leader,
            created_by=actor.id,
        )
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        log.info("user.created", user_id=str(user.id), role=user.role, actor_id=str(actor.id))
        await self.recorder.record(
            build_activity(
                ActivityType.CREATE_USER,
                actor.id,
                f"Created {user.role}: {user.full_name}",
                target_user=user.id,
            )
        )
        return user

    async def update_user(self, actor: Actor, user_id: uuid.UUID, req: UserUpdateRequest) -> User:
        user = await self.get_active(user_id)
        patch: dict[str, Any] = req.model_dump(exclude_unset=True)

        self.access.can_mutate(
            actor, ResourceKind.USER, Action.UPDATE, user, changes=patch
        ).enforce(ResourceKind.USER, Action.UPDATE)

        if "email" in patch:
            if patch["email"] is None:
                raise ValidationError.for_field("email", "Email cannot be empty")
            await self._check_unique(email=patch["email"], exclude_id=user.id)
        if "full_name" in patch and patch["full_name"] is None:
            raise ValidationError.for_field("fullName", "Full name cannot be empty")
        if "role" in patch and patch["role"] is None:
            raise ValidationError.for_field("role", "Role cannot be empty")

        changes = rules.apply_user_patch(user, patch)
        final_role = changes.get("role", user.role)
        final_leader = changes.get("assigned_leader", user.assigned_leader)
        if final_role != user.role:
            await self._require_no_active_team(user, "role")
        if final_role == Role.MEMBER.value:
            if final_leader is None:
                raise ValidationError.for_field("assignedLeader", "Members require an assigned leader")
            if "assigned_leader" in changes:
                await self._require_active_leader(final_leader)

        rules.apply_changes(user, changes)
        self.session.add(user)
        await self.session.commit()
        await self.session.refresh(user)

        log.info("user.updated", user_id=str(user.id), fields=sorted(patch), actor_id=str(actor.id))
        await self.recorder.record(
            build_activity(
                ActivityType.UPDATE_USER,
                actor.id,
                f"Updated user: {user.full_name}",
                target_user=user.id,
                metadata=req.model_dump(mode="json", exclude_unset=True, by_alias=True),
            )
        )
        return user

    async def delete_user(self, actor: Actor, user_id: uuid.UUID) -> None:
        """Soft-delete a user and release the tasks assigned to them."""
        user = await self.get_active(user_id)
        self.access.can_mutate(
            actor, ResourceKind.USER, Action.DELETE, user
        ).enforce(ResourceKind.USER, Action.DELETE)
        await self._require_no_active_team(user, "userId")

        rules.apply_changes(user, rules.deactivate_user(user))
        self.session.add(user)
        result = await self.session.execute(
            update(Task)
            .where(Task.assigned_to == user.id)
            .values(**rules.unassign_task())
            .execution_options(synchronize_session=False)
        )
        await self.session.commit()
        unassigned = result.rowcount or 0

        log.info(
            "user.soft_deleted",
            user_id=str(user.id),
            unassigned_tasks=unassigned,
            actor_id=str(actor.id),
        )
        await self.recorder.record(
            build_activity(
                ActivityType.DELETE_USER,
                actor.id,
                f"Deleted user: {user.full_name}",
                target_user=user.id,
                metadata={"unassignedTasks": unassigned},
            )
        )
        if self.broadcaster is not None:
            await self.broadcaster.close_actor(user.id)
