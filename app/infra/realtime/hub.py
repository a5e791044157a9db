import asyncio
import logging
from collections import defaultdict
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from fastapi import WebSocket
from starlette.websockets import WebSocketDisconnect

from app.core.security import Identity
from app.infra.realtime.events import RealtimeEvent

logger = logging.getLogger(__name__)


@dataclass(eq=False, slots=True)
class RealtimeSession:
    websocket: WebSocket
    identity: Identity | None = None
    connection_id: str = field(default_factory=lambda: uuid4().hex)
    rooms: set[str] = field(default_factory=set)
    # Serialises writes so one connection sees events in emission order.
    send_lock: asyncio.Lock = field(default_factory=asyncio.Lock)


def build_envelope(event: RealtimeEvent, payload: Mapping[str, Any]) -> dict[str, Any]:
    return {
        "event": event.value,
        "data": dict(payload),
        "sent_at": datetime.now(UTC).isoformat(),
    }


class InMemoryRealtimeHub:
    """In-process room hub for websocket fanout."""

    def __init__(self) -> None:
        self._room_members: dict[str, set[RealtimeSession]] = defaultdict(set)
        self._sessions: dict[str, RealtimeSession] = {}
        self._lock = asyncio.Lock()

    async def connect(
        self, websocket: WebSocket, identity: Identity | None = None
    ) -> RealtimeSession:
        await websocket.accept()
        session = RealtimeSession(websocket=websocket, identity=identity)
        async with self._lock:
            self._sessions[session.connection_id] = session
        return session

    def member_count(self, room: str) -> int:
        members = self._room_members.get(room)
        if members is None:
            return 0
        return len(members)

    @property
    def connection_count(self) -> int:
        return len(self._sessions)

    async def disconnect(self, session: RealtimeSession) -> None:
        async with self._lock:
            self._sessions.pop(session.connection_id, None)
            for room in session.rooms:
                self._discard_member(room, session)
            session.rooms.clear()

    async def join(self, session: RealtimeSession, room: str) -> None:
        async with self._lock:
            self._room_members[room].add(session)
            session.rooms.add(room)

    async def emit(
        self,
        session: RealtimeSession,
        event: RealtimeEvent,
        payload: Mapping[str, Any],
    ) -> bool:
        """Send one event to a single connection; False if the socket is gone."""
        envelope = build_envelope(event, payload)
        try:
            async with session.send_lock:
                await session.websocket.send_json(envelope)
        except (RuntimeError, WebSocketDisconnect):
            return False
        return True

    async def publish(
        self,
        rooms: Sequence[str],
        event: RealtimeEvent,
        payload: Mapping[str, Any],
    ) -> None:
        unique_rooms = [room for room in dict.fromkeys(rooms) if room]
        if not unique_rooms:
            return

        async with self._lock:
            recipients: dict[str, RealtimeSession] = {}
            for room in unique_rooms:
                for session in self._room_members.get(room, set()):
                    recipients.setdefault(session.connection_id, session)

        # A session in several target rooms still receives the event once.
        stale: list[RealtimeSession] = []
        for session in recipients.values():
            if not await self.emit(session, event, payload):
                stale.append(session)

        if stale:
            logger.debug("Dropping %d stale realtime sessions", len(stale))
            for session in stale:
                await self.disconnect(session)

    def _discard_member(self, room: str, session: RealtimeSession) -> None:
        members = self._room_members.get(room)
        if members is None:
            return
        members.discard(session)
        if not members:
            self._room_members.pop(room, None)
