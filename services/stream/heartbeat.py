"""Cancellable keep-alive task scoped to a block of work."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

LOGGER = logging.getLogger(__name__)

HEARTBEAT_INTERVAL_SECONDS = 5.0


class Heartbeat:
    """Invoke `beat` every `interval` seconds while the context is active.

    Usage:
        async with Heartbeat(send_heartbeat):
            await long_running_work()
    """

    def __init__(self, beat: Callable[[], Awaitable[None]], interval: float = HEARTBEAT_INTERVAL_SECONDS) -> None:
        self.beat = beat
        self.interval = interval
        self._task: Optional[asyncio.Task] = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.beat()

    async def __aenter__(self) -> "Heartbeat":
        self._task = asyncio.create_task(self._run())
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        finally:
            self._task = None
