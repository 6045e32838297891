"""
Real-time channel.

WS /ws?token=<jwt> - authenticates once at handshake, then receives
``{"event": "new_task" | "task_updated", "data": <task>}`` messages.
A client frame of ``ping`` is answered with ``{"event": "pong"}``.
"""

from __future__ import annotations

from typing import Optional

import structlog
from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from app.core.auth import authenticate_websocket
from app.core.exceptions import AuthenticationError
from app.core.realtime import CLOSE_CREDENTIAL_REVOKED

log = structlog.get_logger()
router = APIRouter()


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket, token: Optional[str] = Query(None)):
    try:
        actor = await authenticate_websocket(token, websocket.app.state.session_factory)
    except AuthenticationError as exc:
        log.info("realtime.rejected", reason=exc.message)
        await websocket.close(code=CLOSE_CREDENTIAL_REVOKED, reason=exc.message)
        return

    broadcaster = websocket.app.state.broadcaster
    conn = await broadcaster.connect(websocket, actor)
    try:
        while True:
            if await websocket.receive_text() == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(conn)
