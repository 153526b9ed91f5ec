import asyncio
from typing import Callable, Optional, Sequence

from loguru import logger

from noticesync.core.models import Notice
from noticesync.sync.poller import TickKind


class BadgeController:
    """Ephemeral "N new items" counter fed by polling merges"""

    def __init__(self, timeout: float = 5.0, on_change: Optional[Callable[[int], None]] = None):
        self.timeout = timeout
        self._on_change = on_change
        self._count = 0
        self._clear_handle: Optional[asyncio.TimerHandle] = None
        self._log = logger.bind(component="badge")

    @property
    def new_items_count(self) -> int:
        return self._count

    @property
    def label(self) -> str:
        if not self._count:
            return ""
        return f"{self._count} new item" + ("" if self._count == 1 else "s")

    def report(self, added: Sequence[Notice], kind: TickKind) -> None:
        # initial loads and manual refreshes never raise the badge
        if kind != TickKind.POLL or not added:
            return

        self._cancel_timer()
        self._set(len(added))
        self._clear_handle = asyncio.get_running_loop().call_later(self.timeout, self.clear)
        self._log.info(self.label)

    def clear(self) -> None:
        self._cancel_timer()
        self._set(0)

    def close(self) -> None:
        self._cancel_timer()

    def _cancel_timer(self) -> None:
        if self._clear_handle:
            self._clear_handle.cancel()
            self._clear_handle = None

    def _set(self, count: int) -> None:
        if count == self._count:
            return
        self._count = count
        if self._on_change:
            self._on_change(count)
