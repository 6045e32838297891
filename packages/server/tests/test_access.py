"""
Tests for the access control engine.

Covers:
- Mutation decisions for tasks and users, including every deny reason
- Scope predicates evaluated against a real (SQLite) dataset
"""

from __future__ import annotations

import uuid
from types import SimpleNamespace

import pytest
from sqlmodel import select

from app.core.auth import Actor
from app.core.exceptions import AuthorizationError
from app.models.activity import Activity
from app.models.task import Task
from app.models.user import User
from app.services.access import (
    AccessControlEngine,
    Action,
    DenyReason,
    ResourceKind,
)
from teamtasks_shared.schemas.common import Role

engine = AccessControlEngine()


def _actor(role: Role) -> Actor:
    return Actor(id=uuid.uuid4(), role=role)


def _task(created_by, assigned_to):
    return SimpleNamespace(created_by=created_by, assigned_to=assigned_to)


def _user(role: Role, assigned_leader=None):
    return SimpleNamespace(id=uuid.uuid4(), role=role.value, assigned_leader=assigned_leader)


# ---------------------------------------------------------------------------
# Unit tests: task decisions
# ---------------------------------------------------------------------------


class TestTaskDecisions:
    def test_superadmin_may_create_for_anyone(self):
        admin = _actor(Role.SUPERADMIN)
        assignee = _user(Role.MEMBER, assigned_leader=uuid.uuid4())
        assert engine.can_mutate(admin, ResourceKind.TASK, Action.CREATE, assignee).allowed

    def test_leader_may_create_for_own_team(self):
        leader = _actor(Role.LEADER)
        assignee = _user(Role.MEMBER, assigned_leader=leader.id)
        assert engine.can_mutate(leader, ResourceKind.TASK, Action.CREATE, assignee).allowed

    def test_leader_cannot_create_for_other_team(self):
        leader = _actor(Role.LEADER)
        assignee = _user(Role.MEMBER, assigned_leader=uuid.uuid4())
        decision = engine.can_mutate(leader, ResourceKind.TASK, Action.CREATE, assignee)
        assert not decision.allowed
        assert decision.reason == DenyReason.NOT_YOUR_TEAM

    def test_leader_cannot_create_for_assigned_peer_leader(self):
        leader = _actor(Role.LEADER)
        peer = _user(Role.LEADER, assigned_leader=leader.id)
        decision = engine.can_mutate(leader, ResourceKind.TASK, Action.CREATE, peer)
        assert decision.reason == DenyReason.NOT_YOUR_TEAM

    def test_member_cannot_create(self):
        member = _actor(Role.MEMBER)
        decision = engine.can_mutate(member, ResourceKind.TASK, Action.CREATE, _user(Role.MEMBER))
        assert decision.reason == DenyReason.ROLE_NOT_PERMITTED

    def test_assignee_may_update_and_comment(self):
        member = _actor(Role.MEMBER)
        task = _task(created_by=uuid.uuid4(), assigned_to=member.id)
        assert engine.can_mutate(member, ResourceKind.TASK, Action.UPDATE, task).allowed
        assert engine.can_mutate(member, ResourceKind.TASK, Action.COMMENT, task).allowed

    def test_stranger_cannot_update(self):
        member = _actor(Role.MEMBER)
        task = _task(created_by=uuid.uuid4(), assigned_to=uuid.uuid4())
        decision = engine.can_mutate(member, ResourceKind.TASK, Action.UPDATE, task)
        assert decision.reason == DenyReason.NOT_TASK_OWNER

    def test_assignee_cannot_delete(self):
        member = _actor(Role.MEMBER)
        task = _task(created_by=uuid.uuid4(), assigned_to=member.id)
        decision = engine.can_mutate(member, ResourceKind.TASK, Action.DELETE, task)
        assert decision.reason == DenyReason.NOT_TASK_CREATOR

    def test_creator_may_delete(self):
        leader = _actor(Role.LEADER)
        task = _task(created_by=leader.id, assigned_to=uuid.uuid4())
        assert engine.can_mutate(leader, ResourceKind.TASK, Action.DELETE, task).allowed

    def test_superadmin_may_delete_anything(self):
        admin = _actor(Role.SUPERADMIN)
        task = _task(created_by=uuid.uuid4(), assigned_to=uuid.uuid4())
        assert engine.can_mutate(admin, ResourceKind.TASK, Action.DELETE, task).allowed

    def test_enforce_raises_with_reason(self):
        member = _actor(Role.MEMBER)
        task = _task(created_by=uuid.uuid4(), assigned_to=uuid.uuid4())
        with pytest.raises(AuthorizationError) as exc_info:
            engine.can_mutate(member, ResourceKind.TASK, Action.DELETE, task).enforce(
                ResourceKind.TASK, Action.DELETE
            )
        assert exc_info.value.reason == "NotTaskCreator"
        assert exc_info.value.to_dict()["details"]["resource"] == "task"


# ---------------------------------------------------------------------------
# Unit tests: user decisions
# ---------------------------------------------------------------------------


class TestUserDecisions:
    def test_leader_cannot_create_leader(self):
        leader = _actor(Role.LEADER)
        decision = engine.can_mutate(
            leader, ResourceKind.USER, Action.CREATE, changes={"role": Role.LEADER}
        )
        assert decision.reason == DenyReason.CANNOT_CREATE_PEER

    def test_leader_may_create_member(self):
        leader = _actor(Role.LEADER)
        assert engine.can_mutate(
            leader, ResourceKind.USER, Action.CREATE, changes={"role": Role.MEMBER}
        ).allowed

    def test_member_cannot_manage_users(self):
        member = _actor(Role.MEMBER)
        decision = engine.can_mutate(
            member, ResourceKind.USER, Action.CREATE, changes={"role": Role.MEMBER}
        )
        assert decision.reason == DenyReason.ROLE_NOT_PERMITTED

    def test_leader_cannot_touch_other_team(self):
        leader = _actor(Role.LEADER)
        target = _user(Role.MEMBER, assigned_leader=uuid.uuid4())
        for action in (Action.UPDATE, Action.DELETE):
            decision = engine.can_mutate(leader, ResourceKind.USER, action, target)
            assert decision.reason == DenyReason.NOT_YOUR_TEAM

    def test_leader_cannot_promote_to_leader(self):
        leader = _actor(Role.LEADER)
        target = _user(Role.MEMBER, assigned_leader=leader.id)
        decision = engine.can_mutate(
            leader, ResourceKind.USER, Action.UPDATE, target, changes={"role": Role.LEADER}
        )
        assert decision.reason == DenyReason.CANNOT_MODIFY_PEER

    def test_leader_cannot_move_member_to_another_leader(self):
        leader = _actor(Role.LEADER)
        target = _user(Role.MEMBER, assigned_leader=leader.id)
        decision = engine.can_mutate(
            leader, ResourceKind.USER, Action.UPDATE, target,
            changes={"assigned_leader": uuid.uuid4()},
        )
        assert decision.reason == DenyReason.NOT_YOUR_TEAM

    def test_leader_cannot_delete_leader_even_if_assigned(self):
        leader = _actor(Role.LEADER)
        target = _user(Role.LEADER, assigned_leader=leader.id)
        decision = engine.can_mutate(leader, ResourceKind.USER, Action.DELETE, target)
        assert decision.reason == DenyReason.CANNOT_MODIFY_PEER

    def test_leader_cannot_update_assigned_peer_leader(self):
        leader = _actor(Role.LEADER)
        target = _user(Role.LEADER, assigned_leader=leader.id)
        decision = engine.can_mutate(
            leader, ResourceKind.USER, Action.UPDATE, target, changes={"full_name": "X"}
        )
        assert decision.reason == DenyReason.CANNOT_MODIFY_PEER

    def test_leader_may_update_and_delete_own_member(self):
        leader = _actor(Role.LEADER)
        target = _user(Role.MEMBER, assigned_leader=leader.id)
        assert engine.can_mutate(
            leader, ResourceKind.USER, Action.UPDATE, target, changes={"full_name": "X"}
        ).allowed
        assert engine.can_mutate(leader, ResourceKind.USER, Action.DELETE, target).allowed

    def test_superadmin_always_allowed(self):
        admin = _actor(Role.SUPERADMIN)
        target = _user(Role.LEADER)
        assert engine.can_mutate(
            admin, ResourceKind.USER, Action.UPDATE, target, changes={"role": Role.LEADER}
        ).allowed
        assert engine.can_mutate(admin, ResourceKind.USER, Action.DELETE, target).allowed

    def test_activity_is_never_mutable(self):
        admin = _actor(Role.SUPERADMIN)
        decision = engine.can_mutate(admin, ResourceKind.ACTIVITY, Action.DELETE)
        assert not decision.allowed


# ---------------------------------------------------------------------------
# Integration tests: scope predicates
# ---------------------------------------------------------------------------


class TestScopes:
    async def _tasks_visible(self, session, actor):
        result = await session.execute(select(Task).where(engine.scope_for(actor, ResourceKind.TASK)))
        return {t.title for t in result.scalars().all()}

    @pytest.fixture
    async def tasks(self, session, org):
        rows = [
            Task(title="l1-m1", assigned_to=org.member1.id, created_by=org.leader1.id),
            Task(title="l1-m2", assigned_to=org.member2.id, created_by=org.leader1.id),
            Task(title="l2-m3", assigned_to=org.member3.id, created_by=org.leader2.id),
            Task(title="admin-m1", assigned_to=org.member1.id, created_by=org.admin.id),
            Task(title="admin-m3", assigned_to=org.member3.id, created_by=org.admin.id),
        ]
        session.add_all(rows)
        await session.commit()
        return rows

    async def test_superadmin_sees_all_tasks(self, session, org, tasks):
        assert len(await self._tasks_visible(session, org.actor("admin"))) == 5

    async def test_leader_sees_created_and_team_tasks(self, session, org, tasks):
        visible = await self._tasks_visible(session, org.actor("leader1"))
        assert visible == {"l1-m1", "l1-m2", "admin-m1"}

    async def test_member_sees_only_assigned(self, session, org, tasks):
        visible = await self._tasks_visible(session, org.actor("member3"))
        assert visible == {"l2-m3", "admin-m3"}

    async def test_inactive_member_drops_out_of_team(self, session, org, tasks):
        org.member2.is_active = False
        session.add(org.member2)
        await session.commit()
        visible = await self._tasks_visible(session, org.actor("leader1"))
        assert visible == {"l1-m1", "l1-m2", "admin-m1"}  # l1-m2 still visible as its creator
        result = await session.execute(select(User).where(engine.scope_for(org.actor("leader1"), ResourceKind.USER)))
        assert {u.username for u in result.scalars().all()} == {"member_one"}

    async def test_superadmin_user_scope_excludes_inactive(self, session, org):
        org.member3.is_active = False
        session.add(org.member3)
        await session.commit()
        result = await session.execute(select(User).where(engine.scope_for(org.actor("admin"), ResourceKind.USER)))
        names = {u.username for u in result.scalars().all()}
        assert "member_three" not in names
        assert len(names) == 5

    async def test_leader_activity_scope(self, session, org):
        session.add_all([
            Activity(type="login", actor_id=org.leader1.id, description="a"),
            Activity(type="login", actor_id=org.member1.id, description="b"),
            Activity(type="login", actor_id=org.member3.id, description="c"),
            Activity(type="login", actor_id=org.admin.id, description="d"),
        ])
        await session.commit()
        result = await session.execute(
            select(Activity).where(engine.scope_for(org.actor("leader1"), ResourceKind.ACTIVITY))
        )
        assert {a.description for a in result.scalars().all()} == {"a", "b"}

    @pytest.mark.parametrize("kind", [ResourceKind.USER, ResourceKind.ACTIVITY])
    def test_member_forbidden_from_user_and_activity_lists(self, kind):
        with pytest.raises(AuthorizationError) as exc_info:
            engine.scope_for(_actor(Role.MEMBER), kind)
        assert exc_info.value.reason == "RoleNotPermitted"

    async def test_team_excludes_leaders_with_stray_assignment(self, session, org):
        org.leader2.assigned_leader = org.leader1.id
        session.add(org.leader2)
        session.add(Activity(type="login", actor_id=org.leader2.id, description="peer"))
        await session.commit()
        result = await session.execute(
            select(Activity).where(engine.scope_for(org.actor("leader1"), ResourceKind.ACTIVITY))
        )
        assert "peer" not in {a.description for a in result.scalars().all()}
        result = await session.execute(select(User).where(engine.scope_for(org.actor("leader1"), ResourceKind.USER)))
        assert {u.username for u in result.scalars().all()} == {"member_one", "member_two"}
