"""Seam between services and the realtime transport."""

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Protocol

from app.infra.realtime.events import RealtimeEvent

logger = logging.getLogger(__name__)


class RealtimePublisher(Protocol):
    async def publish(
        self,
        rooms: Sequence[str],
        event: RealtimeEvent,
        payload: Mapping[str, Any],
    ) -> None: ...


class NoopRealtimePublisher:
    """Stand-in when no hub is wired, e.g. scripts and REST-only workers."""

    async def publish(
        self,
        rooms: Sequence[str],
        event: RealtimeEvent,
        payload: Mapping[str, Any],
    ) -> None:
        logger.debug(
            "No realtime hub; dropped %s for %s (%d fields)",
            event.value,
            ", ".join(rooms) or "no rooms",
            len(payload),
        )
