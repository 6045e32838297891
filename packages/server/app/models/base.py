"""Shared columns for SQLModel tables.

Every timestamp is stored timezone-aware and written in UTC.
"""

from datetime import datetime, timezone
import uuid

import sqlalchemy as sa
from sqlmodel import Field, SQLModel

UTCDateTime = sa.DateTime(timezone=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UUIDMixin(SQLModel):
    id: uuid.UUID = Field(
        default_factory=uuid.uuid4,
        primary_key=True,
        index=True,
        nullable=False,
    )


class CreatedAtMixin(SQLModel):
    # Listings sort newest first on this column.
    created_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        index=True,
        sa_column_kwargs={"server_default": sa.func.now()},
        sa_type=UTCDateTime,
    )


class TimestampMixin(CreatedAtMixin):
    updated_at: datetime = Field(
        default_factory=utcnow,
        nullable=False,
        sa_column_kwargs={"server_default": sa.func.now(), "onupdate": utcnow},
        sa_type=UTCDateTime,
    )
