"""
Activity (audit trail) endpoints.

GET /api/v1/activity - scoped, paginated, newest first
"""

from __future__ import annotations

import uuid
from typing import Optional

from fastapi import APIRouter, Depends, Query

from app.api.deps import get_recorder
from app.core.auth import Actor, require_leader_or_admin
from app.core.config import get_settings
from app.core.pagination import MAX_PAGE
from app.services.activity import ActivityRecorder, to_read
from teamtasks_shared.schemas.activity import ActivityPage
from teamtasks_shared.schemas.common import ActivityType

settings = get_settings()
router = APIRouter()


@router.get("", response_model=ActivityPage)
async def list_activity(
    type: Optional[ActivityType] = None,
    userId: Optional[uuid.UUID] = None,
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(settings.default_activity_page_size, ge=1, le=settings.max_page_size),
    actor: Actor = Depends(require_leader_or_admin),
    recorder: ActivityRecorder = Depends(get_recorder),
):
    """Audit entries by the caller and their team (everything for superadmins)."""
    result = await recorder.query(actor, type=type, user_id=userId, page=page, limit=limit)
    return ActivityPage(
        activities=[to_read(a) for a in result.items],
        total_pages=result.total_pages,
        current_page=result.page,
        total=result.total,
    )
