"""
Access control: who may see and who may change what.

Two questions are answered here and nowhere else:
- ``scope_for``: which records of a kind an actor may list (a SQL predicate)
- ``can_mutate``: whether an actor may perform an action on one record

The hierarchy is exactly superadmin → leader → member, so team membership
is a single ``assigned_leader`` hop rather than a graph traversal.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Mapping, Optional

from sqlalchemy import or_, true
from sqlalchemy.sql.elements import ColumnElement
from sqlmodel import select

from app.core.auth import ROLE_NOT_PERMITTED, Actor
from app.core.exceptions import AuthorizationError
from app.models.activity import Activity
from app.models.task import Task
from app.models.user import User
from teamtasks_shared.schemas.common import Role


class ResourceKind(str, Enum):
    TASK = "task"
    USER = "user"
    ACTIVITY = "activity"


class Action(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    COMMENT = "comment"


class DenyReason(str, Enum):
    NOT_YOUR_TEAM = "NotYourTeam"
    CANNOT_CREATE_PEER = "CannotCreatePeer"
    CANNOT_MODIFY_PEER = "CannotModifyPeer"
    NOT_TASK_OWNER = "NotTaskOwner"
    NOT_TASK_CREATOR = "NotTaskCreator"
    ROLE_NOT_PERMITTED = ROLE_NOT_PERMITTED


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[DenyReason] = None

    def enforce(self, kind: ResourceKind, action: Action) -> None:
        """Raise AuthorizationError when the decision is a denial."""
        if not self.allowed:
            raise AuthorizationError(self.reason.value, resource=kind.value, action=action.value)


ALLOW = Decision(True)


def deny(reason: DenyReason) -> Decision:
    return Decision(False, reason)


def team_ids(leader_id: uuid.UUID):
    """Subquery of the ids of active members assigned to a leader."""
    return select(User.id).where(
        User.assigned_leader == leader_id,
        User.role == Role.MEMBER.value,
        User.is_active.is_(True),
    )


class AccessControlEngine:
    """Role- and ownership-based scoping. Stateless."""

    # ------------------------------------------------------------------
    # Read scopes
    # ------------------------------------------------------------------

    def scope_for(self, actor: Actor, kind: ResourceKind) -> ColumnElement[bool]:
        """Predicate restricting a list query of ``kind`` to what ``actor`` may see.

        Raises AuthorizationError when the actor may not list ``kind`` at all.
        """
        if actor.role == Role.SUPERADMIN:
            if kind == ResourceKind.USER:
                return User.is_active.is_(True)
            return true()

        if actor.role == Role.LEADER:
            team = team_ids(actor.id)
            if kind == ResourceKind.TASK:
                return or_(Task.created_by == actor.id, Task.assigned_to.in_(team))
            if kind == ResourceKind.USER:
                return User.id.in_(team)
            if kind == ResourceKind.ACTIVITY:
                return or_(Activity.actor_id == actor.id, Activity.actor_id.in_(team))
            raise ValueError(f"Unknown resource kind: {kind}")

        if actor.role == Role.MEMBER:
            if kind == ResourceKind.TASK:
                return Task.assigned_to == actor.id
            if kind in (ResourceKind.USER, ResourceKind.ACTIVITY):
                raise AuthorizationError(ROLE_NOT_PERMITTED, resource=kind.value, action="list")
            raise ValueError(f"Unknown resource kind: {kind}")

        raise ValueError(f"Unknown role: {actor.role}")

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def can_mutate(
        self,
        actor: Actor,
        kind: ResourceKind,
        action: Action,
        resource: Any = None,
        *,
        changes: Optional[Mapping[str, Any]] = None,
    ) -> Decision:
        """Decide whether ``actor`` may perform ``action`` on ``resource``.

        ``resource`` is the record acted upon: the assignee ``User`` for a
        task create, the ``Task`` for other task actions, the target ``User``
        for user update/delete, and nothing for user create. ``changes`` holds
        the requested field values for user create/update.
        """
        changes = changes or {}
        if kind == ResourceKind.TASK:
            return self._task_decision(actor, action, resource)
        if kind == ResourceKind.USER:
            return self._user_decision(actor, action, resource, changes)
        # Activity records are written by the system only.
        return deny(DenyReason.ROLE_NOT_PERMITTED)

    def _task_decision(self, actor: Actor, action: Action, resource: Any) -> Decision:
        if action == Action.CREATE:
            if actor.role == Role.SUPERADMIN:
                return ALLOW
            if actor.role == Role.LEADER:
                if (
                    resource is not None
                    and resource.role == Role.MEMBER.value
                    and resource.assigned_leader == actor.id
                ):
                    return ALLOW
                return deny(DenyReason.NOT_YOUR_TEAM)
            return deny(DenyReason.ROLE_NOT_PERMITTED)

        if actor.role == Role.SUPERADMIN:
            return ALLOW

        if action in (Action.UPDATE, Action.COMMENT):
            if actor.id in (resource.created_by, resource.assigned_to):
                return ALLOW
            return deny(DenyReason.NOT_TASK_OWNER)

        if action == Action.DELETE:
            if actor.id == resource.created_by:
                return ALLOW
            return deny(DenyReason.NOT_TASK_CREATOR)

        raise ValueError(f"Unknown task action: {action}")

    def _user_decision(
        self,
        actor: Actor,
        action: Action,
        target: Optional[User],
        changes: Mapping[str, Any],
    ) -> Decision:
        if actor.role == Role.SUPERADMIN:
            return ALLOW
        if actor.role == Role.MEMBER:
            return deny(DenyReason.ROLE_NOT_PERMITTED)

        requested_role = changes.get("role")
        if action == Action.CREATE:
            if requested_role in (Role.LEADER, Role.SUPERADMIN):
                return deny(DenyReason.CANNOT_CREATE_PEER)
            return ALLOW

        if target is None or target.assigned_leader != actor.id:
            return deny(DenyReason.NOT_YOUR_TEAM)
        # Only members belong to a team; any other role is a peer or above.
        if target.role != Role.MEMBER.value:
            return deny(DenyReason.CANNOT_MODIFY_PEER)

        if action == Action.UPDATE:
            if requested_role in (Role.LEADER, Role.SUPERADMIN):
                return deny(DenyReason.CANNOT_MODIFY_PEER)
            new_leader = changes.get("assigned_leader")
            if new_leader is not None and new_leader != actor.id:
                return deny(DenyReason.NOT_YOUR_TEAM)
            return ALLOW

        if action == Action.DELETE:
            return ALLOW

        raise ValueError(f"Unknown user action: {action}")
