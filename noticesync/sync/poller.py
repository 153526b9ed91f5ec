import asyncio
from enum import Enum
from typing import Awaitable, Callable, Optional

from loguru import logger

from noticesync.utils.tools import random_delay


class TickKind(str, Enum):
    INITIAL = "initial"
    POLL = "poll"
    MANUAL = "manual"


TickHandler = Callable[[TickKind], Awaitable[None]]


class Poller:
    """
    Cooperative refresh scheduler.

    Fires an initial tick on start, then a poll tick every `interval` seconds.
    Only one tick runs at a time: a tick that fires while another is still in
    flight is skipped, never queued.
    """

    def __init__(self, interval: float, on_tick: TickHandler, jitter_percent: float = 0.0):
        self.interval = interval
        self._on_tick = on_tick
        self._jitter_percent = jitter_percent

        self._loop_task: Optional[asyncio.Task] = None
        self._current: Optional[asyncio.Task] = None
        self._running = False
        self.skipped = 0
        self._log = logger.bind(component="poller")

    @property
    def running(self) -> bool:
        return self._running

    @property
    def in_flight(self) -> bool:
        return self._current is not None and not self._current.done()

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._loop_task = asyncio.create_task(self._timer_loop(), name="notice_poller")
        self._log.info(f"Polling every {self.interval}s")

    async def stop(self) -> None:
        """Stop the timer; a tick already in flight is left to finish"""
        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                self._log.debug("Poller loop cancelled")
            self._loop_task = None

    async def wait_idle(self) -> None:
        if self.in_flight:
            await asyncio.wait({self._current})

    async def refresh(self) -> bool:
        """Manual refresh; returns False when skipped because a tick is in flight"""
        task = self._fire(TickKind.MANUAL)
        if task is None:
            return False
        await asyncio.wait({task})
        return True

    def _fire(self, kind: TickKind) -> Optional[asyncio.Task]:
        if self.in_flight:
            self.skipped += 1
            self._log.debug(f"{kind.value} tick skipped, previous refresh still in flight")
            return None

        self._current = asyncio.create_task(self._run_tick(kind), name=f"notice_tick_{kind.value}")
        return self._current

    async def _run_tick(self, kind: TickKind) -> None:
        try:
            await self._on_tick(kind)
        except Exception as e:
            self._log.exception(f"{kind.value} tick failed: {e}")

    async def _timer_loop(self) -> None:
        kind = TickKind.INITIAL
        while self._running:
            self._fire(kind)
            kind = TickKind.POLL
            await random_delay(self.interval, self._jitter_percent)
