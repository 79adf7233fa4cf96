import asyncio
import logging
import threading
import time
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)

class RateLimiter:
    """Single-slot cursor that spaces provider calls at least `delay` seconds apart.

    Every caller reserves the next free slot under a lock and then sleeps until
    that slot opens, so concurrent callers queue in submission order no matter
    which event loop or thread they run on.
    """

    def __init__(
        self,
        delay: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.delay = delay
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._next_slot = 0.0

    def reserve(self) -> float:
        """Claim the next slot and return how long the caller has to wait for it"""
        with self._lock:
            now = self._clock()
            start = max(now, self._next_slot)
            self._next_slot = start + self.delay
            return start - now

    async def acquire(self) -> float:
        wait = self.reserve()
        if wait > 0:
            logger.info(f"Rate limiting provider call for {wait:.3f}s")
            await self._sleep(wait)
        return wait

    def record_success(self) -> None:
        """Push the cursor to one delay after the call that just succeeded"""
        with self._lock:
            self._next_slot = max(self._next_slot, self._clock() + self.delay)

    def reset(self) -> None:
        with self._lock:
            self._next_slot = 0.0
