"""
API v1 Router

Resource endpoints under /api/v1. Authentication (/auth) and the real-time
channel (/ws) are mounted by the application factory.
"""

from fastapi import APIRouter
from . import activity, tasks, users

RESOURCES = {
    "/tasks": (tasks.router, "Tasks"),
    "/users": (users.router, "Users"),
    "/activity": (activity.router, "Activity"),
}

router = APIRouter()

for prefix, (resource_router, tag) in RESOURCES.items():
    router.include_router(resource_router, prefix=prefix, tags=[tag])


@router.get("/", tags=["API"])
async def api_root():
    """Version and the resource collections it serves."""
    return {"api": "v1", "version": "0.1.0", "endpoints": list(RESOURCES)}
