"""Offset pagination over SQLModel select statements."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Generic, TypeVar

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

T = TypeVar("T")

# Keeps the computed offset inside a 64-bit integer.
MAX_PAGE = 1_000_000


@dataclass
class Page(Generic[T]):
    items: list[T]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


async def paginate(session: AsyncSession, stmt, page: int, limit: int) -> Page:
    """Count ``stmt``, then fetch one page of it. ``page`` is 1-based."""
    count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
    total = (await session.execute(count_stmt)).scalar_one()

    result = await session.execute(stmt.offset((page - 1) * limit).limit(limit))
    return Page(items=list(result.scalars().all()), total=total, page=page, limit=limit)
