"""Realtime event transport (WebSocket) adapters."""

from app.infra.realtime.hub import InMemoryRealtimeHub, RealtimeSession
from app.infra.realtime.presence import VisitorCounter

__all__ = ["InMemoryRealtimeHub", "RealtimeSession", "VisitorCounter"]
