"""
Session Runner

Flask handles requests on worker threads while a ValuationSession lives on
one asyncio event loop (its subscriptions and background writes are loop
callbacks). The runner owns that loop on a dedicated thread and lets
request handlers submit coroutines to it and wait for the result.
"""

import asyncio
import threading
from typing import Any, Awaitable, Callable, Optional

from tasador.logging_config import get_logger
from tasador.valuation.session import ValuationSession

logger = get_logger(__name__)

DEFAULT_CALL_TIMEOUT = 60.0


class SessionRunner:
    """Runs one ValuationSession on a private event-loop thread."""

    def __init__(self, session: ValuationSession, call_timeout: float = DEFAULT_CALL_TIMEOUT):
        self.session = session
        self.call_timeout = call_timeout
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> "SessionRunner":
        if self.is_running:
            return self
        self._loop = asyncio.new_event_loop()
        self._thread = threading.Thread(
            target=self._run_loop, name="tasador_session", daemon=True
        )
        self._thread.start()
        self.run(self.session.open)
        logger.info("Session runner started for %s", self.session.agent_id)
        return self

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.run_forever()

    def run(self, func: Callable[..., Awaitable[Any]], *args, **kwargs) -> Any:
        """Run ``func(*args, **kwargs)`` on the session loop and return its result.

        Exceptions raised by the coroutine propagate to the caller.
        """
        if self._loop is None:
            raise RuntimeError("Session runner is not started")
        future = asyncio.run_coroutine_threadsafe(func(*args, **kwargs), self._loop)
        return future.result(timeout=self.call_timeout)

    def stop(self) -> None:
        if not self.is_running:
            return
        try:
            self.run(self.session.close)
        finally:
            self._loop.call_soon_threadsafe(self._loop.stop)
            self._thread.join(timeout=5)
            self._loop.close()
            self._thread = None
            self._loop = None
            logger.info("Session runner stopped")
