import asyncio
from collections import defaultdict, deque
from dataclasses import dataclass
from time import monotonic


@dataclass(frozen=True, slots=True)
class RateLimitRule:
    limit: int
    window_seconds: int


class RateLimitExceeded(Exception):
    def __init__(self, key: str, retry_after: float) -> None:
        super().__init__("Too many messages, please slow down.")
        self.key = key
        self.retry_after = retry_after


class InMemoryRateLimiter:
    """Sliding-window limiter keyed by identity, local to one process."""

    def __init__(self) -> None:
        self._events: dict[str, deque[float]] = defaultdict(deque)
        self._lock = asyncio.Lock()

    async def allow(self, key: str, rule: RateLimitRule) -> bool:
        return await self._retry_after(key, rule) is None

    async def check(self, key: str, rule: RateLimitRule) -> None:
        retry_after = await self._retry_after(key, rule)
        if retry_after is not None:
            raise RateLimitExceeded(key, retry_after)

    async def _retry_after(self, key: str, rule: RateLimitRule) -> float | None:
        now = monotonic()
        window_start = now - rule.window_seconds

        async with self._lock:
            events = self._events[key]
            while events and events[0] <= window_start:
                events.popleft()

            if len(events) >= rule.limit:
                return max(events[0] - window_start, 0.0)

            events.append(now)
            return None
