import asyncio
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from loguru import logger

from noticesync.config.loader import AppConfig
from noticesync.core.exceptions import FetchError, MissingTokenError, Unauthorized
from noticesync.core.http_client import HttpClient
from noticesync.core.models import Notice, NoticeKey, SourceCategory
from noticesync.sources.base import NoticeSource
from noticesync.sources.factory import SourceFactory
from noticesync.sync import filters
from noticesync.sync.badge import BadgeController
from noticesync.sync.merge import merge
from noticesync.sync.poller import Poller, TickKind
from noticesync.sync.read_state import ReadStateStore, unread_count
from noticesync.utils.tools import now_ms


@dataclass(frozen=True)
class EngineState:
    """Immutable snapshot handed to subscribers"""
    notices: Tuple[Notice, ...] = ()
    errors: Mapping[SourceCategory, BaseException] = field(default_factory=dict)
    new_items_count: int = 0
    loaded: bool = False
    refreshing: bool = False
    first_load_failed: bool = False
    last_updated_ms: Optional[int] = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def is_empty_failure(self) -> bool:
        """Every source failed on the very first load and nothing is cached"""
        return self.first_load_failed and not self.notices

    def unread_count(self, category: Optional[SourceCategory] = None) -> int:
        if category is not None:
            category = SourceCategory.parse(category)
        return unread_count(self.notices, category)


Listener = Callable[[EngineState], None]


class NoticeEngine:
    """Polls every notice source, merges their snapshots and publishes the result"""

    def __init__(
            self,
            config: AppConfig,
            sources: Optional[Sequence[NoticeSource]] = None,
            http_client: Optional[HttpClient] = None
    ):
        if not config.auth_token:
            raise MissingTokenError("NoticeEngine requires a bearer token before it can start")

        self.config = config
        self._log = logger.bind(component="engine")
        self._owns_http = http_client is None and sources is None
        self.http = http_client
        if self._owns_http:
            self.http = HttpClient(config.api.base_url, config.auth_token, config.api.timeout)

        self.sources: Dict[SourceCategory, NoticeSource] = {}
        for source in sources if sources is not None else self._build_sources():
            if source.category in self.sources:
                raise ValueError(f"Two sources configured for {source.category.value}")
            self.sources[source.category] = source

        self._state = EngineState()
        self._listeners: List[Listener] = []
        self._stopped = False
        self._stats = {category: {"success": 0, "errors": 0, "total": 0} for category in self.sources}

        self.read_state = ReadStateStore(
            self.sources,
            get_notices=lambda: self._state.notices,
            apply_local=self._apply_read_updates,
            config=config.read_state
        )
        self.badge = BadgeController(config.badge.timeout, on_change=self._on_badge_change)
        self.poller = Poller(config.polling.interval, self._tick, config.polling.jitter_percent)

    def _build_sources(self) -> List[NoticeSource]:
        return [
            SourceFactory.create(source_config, self.http, self.config.api.student_id)
            for source_config in self.config.enabled_sources
        ]

    @property
    def state(self) -> EngineState:
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it"""
        self._listeners.append(listener)

        def unsubscribe():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_state(self, state: EngineState) -> None:
        # single synchronous swap: listeners never see a half-merged collection
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                self._log.exception(f"Listener failed: {e}")

    def start(self) -> None:
        self._stopped = False
        self.poller.start()

    async def stop(self) -> None:
        """Stop polling; results of fetches still in flight are discarded"""
        self._stopped = True
        await self.poller.stop()
        self.badge.close()
        if self._state.refreshing:
            self._set_state(replace(self._state, refreshing=False))

    async def close(self) -> None:
        await self.stop()
        await self.poller.wait_idle()
        if self._owns_http and self.http:
            await self.http.close()
        self._log.info("Cleanup complete")

    async def refresh(self) -> bool:
        """Manual refresh; skipped (False) while another refresh is in flight"""
        return await self.poller.refresh()

    async def mark_read(self, category: SourceCategory, notice_id: int) -> None:
        await self.read_state.mark_read(SourceCategory.parse(category), notice_id)

    async def mark_all_read(self, category: SourceCategory) -> int:
        return await self.read_state.mark_all_read(SourceCategory.parse(category))

    def unread_count(self, category: Optional[SourceCategory] = None) -> int:
        return self._state.unread_count(category)

    def view(self, filter_state: Optional[filters.FilterState] = None, now: Optional[int] = None) -> List[Notice]:
        return filters.sort_for_view(filters.apply(self._state.notices, filter_state, now))

    def _apply_read_updates(self, updates: Dict[NoticeKey, bool]) -> None:
        notices = tuple(
            replace(notice, read=updates[notice.key])
            if notice.key in updates and notice.read != updates[notice.key] else notice
            for notice in self._state.notices
        )
        self._set_state(replace(self._state, notices=notices))

    def _on_badge_change(self, count: int) -> None:
        self._set_state(replace(self._state, new_items_count=count))

    async def _fetch_all(self) -> Dict[SourceCategory, object]:
        """Fan out to every source and wait for all of them to settle"""
        categories = list(self.sources)
        results = await asyncio.gather(
            *(self.sources[category].fetch() for category in categories),
            return_exceptions=True
        )

        snapshots = {}
        for category, result in zip(categories, results):
            if isinstance(result, BaseException) and not isinstance(result, Exception):
                raise result
            if isinstance(result, Exception) and not isinstance(result, FetchError):
                self._log.opt(exception=result).error(f"{category.value} fetch crashed: {result}")
            snapshots[category] = result
        return snapshots

    async def _tick(self, kind: TickKind) -> None:
        if self._stopped:
            return

        fetched_at = time.monotonic()
        start_time = asyncio.get_running_loop().time()
        self._set_state(replace(self._state, refreshing=True))

        try:
            snapshots = await self._fetch_all()
        except BaseException:
            if not self._stopped:
                self._set_state(replace(self._state, refreshing=False))
            raise

        if self._stopped:
            self._log.debug(f"{kind.value} tick finished after stop, results discarded")
            return

        result = merge(self._state.notices, snapshots)
        notices = self.read_state.annotate(result.merged, fetched_at=fetched_at)

        errors = dict(self._state.errors)
        for category, snapshot in snapshots.items():
            if isinstance(snapshot, BaseException):
                errors[category] = snapshot
            else:
                errors.pop(category, None)

        all_failed = bool(snapshots) and len(result.failures) == len(snapshots)
        first_load_failed = all_failed and (not self._state.loaded or self._state.first_load_failed)

        self._set_state(replace(
            self._state,
            notices=tuple(notices),
            errors=errors,
            loaded=True,
            refreshing=False,
            first_load_failed=first_load_failed,
            last_updated_ms=now_ms(),
        ))

        self.badge.report(result.added, kind)
        self._record_stats(kind, snapshots, len(result.added), asyncio.get_running_loop().time() - start_time)

    def _record_stats(self, kind: TickKind, snapshots: Mapping, added: int, process_time: float) -> None:
        parts = []
        for category, snapshot in snapshots.items():
            stats = self._stats[category]
            if isinstance(snapshot, BaseException):
                stats["errors"] += 1
                log = self._log.error if isinstance(snapshot, Unauthorized) else self._log.warning
                log(f"❌ {category.value}: {snapshot}")
                parts.append(f"{category.value}: error")
            else:
                stats["success"] += 1
                stats["total"] = len(snapshot)
                parts.append(f"{category.value}: {len(snapshot)}")

        log_msg = f"{kind.value} | +{added} | {' | '.join(parts)} | {process_time:.2f}s"
        if added:
            self._log.info(f"✅ {log_msg}")
        else:
            self._log.debug(log_msg)
