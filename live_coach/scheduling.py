"""
Cancelable timers on the running asyncio loop.

* ``DeferredTask``  – run once after a delay; rescheduling restarts the delay
  (trailing-edge debounce).
* ``PeriodicTask``  – run every ``interval`` seconds until stopped.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)


class DeferredTask:
    """Schedule ``callback`` to run once ``delay`` seconds after the last ``schedule()``."""

    def __init__(
        self,
        callback: Callable[[], Any],
        delay: float,
        loop: Optional[asyncio.AbstractEventLoop] = None,
    ) -> None:
        self.callback = callback
        self.delay = delay
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def schedule(self) -> None:
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        try:
            self.callback()
        except Exception as e:
            logger.error(f"Deferred task failed: {e}", exc_info=True)


class PeriodicTask:
    """Background loop calling ``callback`` (sync or async) every ``interval`` seconds."""

    def __init__(self, callback: Callable[[], Any], interval: float, name: str = "periodic") -> None:
        self.callback = callback
        self.interval = interval
        self.name = name
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._loop(), name=self.name)
        logger.debug("%s started (interval=%.2fs)", self.name, self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.debug("%s stopped", self.name)

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                result = self.callback()
                if inspect.isawaitable(result):
                    await result
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"{self.name} callback error: {e}")
