"""Activity (audit trail) schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, UUID4

from .common import ActivityType, CamelModel


class ActivityRead(CamelModel):
    id: UUID4
    type: ActivityType
    actor: UUID4
    target_user: Optional[UUID4] = None
    target_task: Optional[UUID4] = None
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class ActivityPage(CamelModel):
    activities: List[ActivityRead]
    total_pages: int
    current_page: int
    total: int
