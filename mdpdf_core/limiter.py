"""Counting semaphore that caps simultaneous render-engine sessions."""
from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


class RenderLimiter:
    """Counting semaphore capping how many render sessions run at once.

    This is the only state shared between conversions. Hand one instance to
    the conversion service; each conversion holds one slot for its whole
    render.
    """

    def __init__(self, capacity: int):
        if capacity < 1:
            raise ValueError("Limiter capacity must be at least 1")
        self._capacity = capacity
        self._in_use = 0
        self._semaphore = asyncio.Semaphore(capacity)

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def in_use(self) -> int:
        return self._in_use

    @property
    def available(self) -> int:
        return self._capacity - self._in_use

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self._semaphore.acquire()
        self._in_use += 1
        try:
            yield
        finally:
            self._in_use -= 1
            self._semaphore.release()
