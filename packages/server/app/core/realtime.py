"""
Real-time event fan-out over websockets.

Features:
- Topic membership derived once per connection at handshake time
  (``user:<id>`` for everyone, plus ``leaders`` or ``admins`` by role)
- Best-effort, at-most-once delivery: no queuing, no replay
- Dead connections are dropped during publish
- Registry mutations are lock-protected for concurrent connect/disconnect

One ``EventBroadcaster`` is built per application and injected into the
components that publish.
"""

from __future__ import annotations

import asyncio
from typing import Any, Iterable
from uuid import UUID

import structlog
from fastapi import WebSocket

from teamtasks_shared.schemas.common import Role

log = structlog.get_logger()

NEW_TASK = "new_task"
TASK_UPDATED = "task_updated"

LEADERS_TOPIC = "leaders"
ADMINS_TOPIC = "admins"

# Close code sent when a connection's credential is no longer valid.
CLOSE_CREDENTIAL_REVOKED = 4001


def user_topic(user_id: UUID | str) -> str:
    return f"user:{user_id}"


def topics_for(actor_id: UUID, role: Role) -> frozenset[str]:
    """Topics a connection joins at authentication time."""
    topics = {user_topic(actor_id)}
    if role == Role.LEADER:
        topics.add(LEADERS_TOPIC)
    elif role == Role.SUPERADMIN:
        topics.add(ADMINS_TOPIC)
    return frozenset(topics)


class Connection:
    """Tracks a single websocket connection and the topics it joined."""

    __slots__ = ("websocket", "actor_id", "role", "topics")

    def __init__(self, websocket: WebSocket, actor_id: UUID, role: Role):
        self.websocket = websocket
        self.actor_id = actor_id
        self.role = role
        self.topics = topics_for(actor_id, role)


class EventBroadcaster:
    """Topic-based registry of live connections."""

    def __init__(self) -> None:
        # topic -> connections joined to it
        self._topics: dict[str, set[Connection]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, actor) -> Connection:
        """Accept an authenticated websocket and join it to its topics."""
        await websocket.accept()
        conn = Connection(websocket, actor.id, actor.role)
        async with self._lock:
            for topic in conn.topics:
                self._topics.setdefault(topic, set()).add(conn)
        log.info("realtime.connected", actor_id=str(actor.id), topics=sorted(conn.topics))
        return conn

    async def disconnect(self, conn: Connection) -> None:
        """Remove a connection from every topic it joined. Idempotent."""
        async with self._lock:
            self._remove(conn)
        log.info("realtime.disconnected", actor_id=str(conn.actor_id))

    def _remove(self, conn: Connection) -> None:
        for topic in conn.topics:
            members = self._topics.get(topic)
            if members is None:
                continue
            members.discard(conn)
            if not members:
                del self._topics[topic]

    async def publish(self, topic: str, event: str, payload: dict[str, Any]) -> int:
        """Deliver an event to every connection currently joined to ``topic``.

        Returns the number of connections the event was handed to.
        """
        return await self.publish_many([topic], event, payload)

    async def publish_many(self, topics: Iterable[str], event: str, payload: dict[str, Any]) -> int:
        """Deliver an event once to every connection joined to any of ``topics``."""
        topics = list(topics)
        async with self._lock:
            recipients: set[Connection] = set()
            for topic in topics:
                recipients.update(self._topics.get(topic, ()))
        if not recipients:
            return 0

        message = {"event": event, "data": payload}
        delivered = 0
        dead: list[Connection] = []
        for conn in recipients:
            try:
                await conn.websocket.send_json(message)
                delivered += 1
            except Exception:
                dead.append(conn)

        if dead:
            async with self._lock:
                for conn in dead:
                    self._remove(conn)
            log.warning("realtime.dead_connections_dropped", topics=topics, count=len(dead))
        return delivered

    async def close_actor(self, actor_id: UUID, reason: str = "credential_revoked") -> None:
        """Close every live connection belonging to one actor."""
        async with self._lock:
            conns = list(self._topics.get(user_topic(actor_id), ()))
            for conn in conns:
                self._remove(conn)
        for conn in conns:
            try:
                await conn.websocket.close(code=CLOSE_CREDENTIAL_REVOKED, reason=reason)
            except Exception:
                log.debug("realtime.close_failed", actor_id=str(actor_id))

    def subscriber_count(self, topic: str) -> int:
        return len(self._topics.get(topic, ()))
