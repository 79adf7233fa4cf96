import asyncio
import logging
import threading
from concurrent.futures import Future
from typing import Coroutine, Optional

logger = logging.getLogger(__name__)

class BackgroundRunner:
    """Runs fire-and-forget coroutines on a dedicated event loop thread.

    Work spawned here outlives the request that started it. A failed task is
    logged and dropped; nothing is reported back to the original caller.
    """

    def __init__(self, name: str = "background-tasks"):
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._lock = threading.Lock()

    def _ensure_started(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is None:
                self._loop = asyncio.new_event_loop()
                self._thread = threading.Thread(
                    target=self._loop.run_forever,
                    name=self.name,
                    daemon=True
                )
                self._thread.start()
                logger.info(f"Background runner '{self.name}' started")
            return self._loop

    def spawn(self, coro: Coroutine, description: str = "background task") -> Future:
        loop = self._ensure_started()
        future = asyncio.run_coroutine_threadsafe(coro, loop)
        future.add_done_callback(lambda f: self._log_outcome(f, description))
        return future

    @staticmethod
    def _log_outcome(future: Future, description: str) -> None:
        if future.cancelled():
            logger.warning(f"{description} was cancelled")
            return
        error = future.exception()
        if error is not None:
            logger.error(f"{description} failed: {str(error)}", exc_info=error)

    def shutdown(self, timeout: float = 5.0) -> None:
        with self._lock:
            loop, thread = self._loop, self._thread
            self._loop = None
            self._thread = None
        if loop is None:
            return
        loop.call_soon_threadsafe(loop.stop)
        if thread is not None:
            thread.join(timeout)
        loop.close()
        logger.info(f"Background runner '{self.name}' stopped")
