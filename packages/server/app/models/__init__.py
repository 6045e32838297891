# SQLModel definitions - imported here to ensure metadata is populated for Alembic.
from .base import UUIDMixin, TimestampMixin  # noqa: F401
from .user import User  # noqa: F401
from .task import Task, TaskComment  # noqa: F401
from .activity import Activity  # noqa: F401
