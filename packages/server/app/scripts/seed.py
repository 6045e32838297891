"""
Seed a local database with a superadmin, one leader, two members and
sample tasks.

    python -m app.scripts.seed [--reset]
"""

import argparse
import asyncio
from datetime import timedelta

from sqlmodel import select

from app.core.auth import hash_password
from app.core.database import drop_db, get_session_context, init_db
from app.models.base import utcnow
from app.models.task import Task
from app.models.user import User
from teamtasks_shared.schemas.common import Role, TaskPriority, TaskStatus

SUPERADMIN_PASSWORD = "Admin123!"
DEFAULT_PASSWORD = "Password123!"


def _user(username, email, full_name, role, password, **extra) -> User:
    return User(
        username=username,
        email=email,
        full_name=full_name,
        role=role.value,
        password_hash=hash_password(password),
        **extra,
    )


async def seed(reset: bool) -> None:
    if reset:
        await drop_db()
        print("Dropped existing tables.")
    await init_db()

    async with get_session_context() as session:
        existing = await session.execute(select(User).where(User.username == "admin"))
        if existing.scalar_one_or_none():
            print("Database already seeded. Use --reset to start over.")
            return

        admin = _user("admin", "admin@taskmanager.com", "System Administrator", Role.SUPERADMIN, SUPERADMIN_PASSWORD)
        session.add(admin)
        await session.flush()

        leader = _user(
            "john_leader", "john@company.com", "John Smith", Role.LEADER, DEFAULT_PASSWORD,
            created_by=admin.id,
        )
        session.add(leader)
        await session.flush()

        alice = _user(
            "alice_member", "alice@company.com", "Alice Johnson", Role.MEMBER, DEFAULT_PASSWORD,
            assigned_leader=leader.id, created_by=leader.id,
        )
        bob = _user(
            "bob_member", "bob@company.com", "Bob Wilson", Role.MEMBER, DEFAULT_PASSWORD,
            assigned_leader=leader.id, created_by=leader.id,
        )
        session.add_all([alice, bob])
        await session.flush()

        now = utcnow()
        session.add_all([
            Task(
                title="Design new landing page",
                description="Create a modern, responsive landing page for the new product launch",
                assigned_to=alice.id,
                created_by=leader.id,
                priority=TaskPriority.HIGH.value,
                status=TaskStatus.IN_PROGRESS.value,
                due_date=now + timedelta(days=7),
            ),
            Task(
                title="Update user documentation",
                description="Review and update the user manual with latest features",
                assigned_to=bob.id,
                created_by=leader.id,
                priority=TaskPriority.MEDIUM.value,
                status=TaskStatus.PENDING.value,
                due_date=now + timedelta(days=14),
            ),
            Task(
                title="Fix authentication bug",
                description="Resolve the login issue reported by users",
                assigned_to=alice.id,
                created_by=leader.id,
                priority=TaskPriority.URGENT.value,
                status=TaskStatus.COMPLETED.value,
                completed_at=now,
            ),
        ])

    print("Database seeded successfully!")
    print("Login credentials:")
    print(f"  Superadmin: admin / {SUPERADMIN_PASSWORD}")
    print(f"  Leader: john_leader / {DEFAULT_PASSWORD}")
    print(f"  Member: alice_member / {DEFAULT_PASSWORD}")
    print(f"  Member: bob_member / {DEFAULT_PASSWORD}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the Team Tasks database with sample data.")
    parser.add_argument("--reset", action="store_true", help="Drop and recreate all tables first")

    args = parser.parse_args()

    asyncio.run(seed(args.reset))
