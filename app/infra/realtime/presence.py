import asyncio


class VisitorCounter:
    """Process-wide count of open realtime connections, never below zero."""

    def __init__(self) -> None:
        self._count = 0
        self._lock = asyncio.Lock()

    @property
    def count(self) -> int:
        return self._count

    async def increment(self) -> int:
        async with self._lock:
            self._count += 1
            return self._count

    async def decrement(self) -> int:
        async with self._lock:
            self._count = max(0, self._count - 1)
            return self._count
