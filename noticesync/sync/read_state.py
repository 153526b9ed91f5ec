"""Optimistic read-state tracking reconciled against server snapshots."""
import asyncio
import time
from dataclasses import dataclass, replace
from typing import Callable, Dict, List, Mapping, Optional, Sequence, Set

from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from noticesync.config.loader import ReadStateConfig
from noticesync.core.exceptions import AcknowledgementError, FetchError, UnknownNoticeError
from noticesync.core.models import Notice, NoticeKey, SourceCategory
from noticesync.sources.base import NoticeSource


def unread_count(notices: Sequence[Notice], category: Optional[SourceCategory] = None) -> int:
    return sum(
        1 for notice in notices
        if not notice.read and (category is None or notice.source_category == category)
    )


def read_counts(notices: Sequence[Notice]) -> Dict[SourceCategory, int]:
    """Unread notices per category, derived from the collection itself"""
    counts = {category: 0 for category in SourceCategory}
    for notice in notices:
        if not notice.read:
            counts[notice.source_category] += 1
    return counts


@dataclass
class _Override:
    value: bool
    # monotonic time the server accepted the receipt, None while unconfirmed
    confirmed_at: Optional[float] = None


class ReadStateStore:
    """
    Owns the `read` flag of every notice.

    Local assignments are applied immediately through `apply_local` and kept
    as overrides until a server snapshot agrees with them. Once a receipt has
    been accepted, a snapshot fetched afterwards is authoritative again, so a
    server-side rollback is honoured.
    """

    def __init__(
            self,
            sources: Mapping[SourceCategory, NoticeSource],
            get_notices: Callable[[], Sequence[Notice]],
            apply_local: Callable[[Dict[NoticeKey, bool]], None],
            config: Optional[ReadStateConfig] = None
    ):
        self._sources = dict(sources)
        self._get_notices = get_notices
        self._apply_local = apply_local
        self.config = config or ReadStateConfig()

        self._overrides: Dict[NoticeKey, _Override] = {}
        self._failed: Set[NoticeKey] = set()
        self._log = logger.bind(component="read_state")

    @property
    def pending(self) -> List[NoticeKey]:
        """Keys whose read receipt was rejected and not yet retried successfully"""
        return sorted(self._failed, key=lambda key: (key[0].value, key[1]))

    def annotate(self, notices: Sequence[Notice], fetched_at: Optional[float] = None) -> List[Notice]:
        """Overlay local read values on a freshly merged collection.

        `fetched_at` is the monotonic time the snapshot's fetch started.
        """
        present = set()
        result = []

        for notice in notices:
            present.add(notice.key)
            override = self._overrides.get(notice.key)
            if override is None:
                result.append(notice)
                continue

            server_is_newer = (
                override.confirmed_at is not None
                and fetched_at is not None
                and fetched_at > override.confirmed_at
            )
            if notice.read == override.value or server_is_newer:
                del self._overrides[notice.key]
                self._failed.discard(notice.key)
                result.append(notice)
            else:
                result.append(replace(notice, read=override.value))

        for key in [key for key in self._overrides if key not in present]:
            del self._overrides[key]
            self._failed.discard(key)

        return result

    def set_read(self, key: NoticeKey, value: bool) -> None:
        """Assign a read value locally, without contacting the server"""
        self._assign({key: value})

    def _assign(self, updates: Dict[NoticeKey, bool]) -> None:
        for key, value in updates.items():
            self._overrides[key] = _Override(value)
        self._apply_local(updates)

    def _confirm(self, keys: Sequence[NoticeKey]) -> None:
        confirmed_at = time.monotonic()
        for key in keys:
            self._failed.discard(key)
            if override := self._overrides.get(key):
                override.confirmed_at = confirmed_at

    def _reject(self, previous: Dict[NoticeKey, bool], causes: Sequence[BaseException]) -> AcknowledgementError:
        keys = list(previous)
        if self.config.rollback_on_failure:
            self._log.warning(f"Rolling back {len(keys)} read flag(s) after failed receipt")
            self._assign(previous)
        else:
            self._failed.update(keys)
        return AcknowledgementError(keys, causes)

    def _source(self, category: SourceCategory) -> NoticeSource:
        source = self._sources.get(category)
        if source is None:
            raise UnknownNoticeError(f"No source configured for {category.value}")
        return source

    def _find(self, key: NoticeKey) -> Notice:
        for notice in self._get_notices():
            if notice.key == key:
                return notice
        raise UnknownNoticeError(f"Unknown notice {key[0].value}:{key[1]}")

    async def mark_read(self, category: SourceCategory, notice_id: int) -> None:
        """Flip one notice to read, then send its receipt.

        Raises AcknowledgementError when the server rejects the receipt; the
        local flag stays read unless rollback_on_failure is configured.
        """
        category = SourceCategory.parse(category)
        key = (category, notice_id)
        source = self._source(category)
        previous = self._find(key).read

        self._assign({key: True})

        try:
            await source.acknowledge(notice_id)
        except Exception as e:
            self._log.warning(f"Read receipt for {category.value}:{notice_id} failed: {e}")
            raise self._reject({key: previous}, [e]) from e

        self._confirm([key])

    async def mark_all_read(self, category: SourceCategory) -> int:
        """Flip every unread notice of a category to read; returns how many were flipped"""
        category = SourceCategory.parse(category)
        source = self._source(category)
        unread = [n for n in self._get_notices() if n.source_category == category and not n.read]
        if not unread:
            return 0

        keys = [notice.key for notice in unread]
        self._assign({key: True for key in keys})

        if source.supports_bulk_ack:
            try:
                await source.acknowledge_all()
            except Exception as e:
                self._log.warning(f"Bulk read receipt for {category.value} failed: {e}")
                raise self._reject({key: False for key in keys}, [e]) from e
            self._confirm(keys)
            return len(keys)

        results = await asyncio.gather(
            *(source.acknowledge(notice.id) for notice in unread),
            return_exceptions=True
        )

        confirmed, failed, causes = [], {}, []
        interrupted: Optional[BaseException] = None
        for key, outcome in zip(keys, results):
            if isinstance(outcome, BaseException):
                failed[key] = False
                causes.append(outcome)
                if not isinstance(outcome, Exception) and interrupted is None:
                    interrupted = outcome
            else:
                confirmed.append(key)

        # bookkeeping for every key happens before anything propagates
        self._confirm(confirmed)
        error = self._reject(failed, causes) if failed else None
        if interrupted is not None:
            raise interrupted
        if error is not None:
            self._log.warning(f"{len(failed)} / {len(keys)} read receipts for {category.value} failed")
            raise error
        return len(keys)

    async def retry_failed(self) -> List[NoticeKey]:
        """Re-send rejected receipts; returns the keys that still fail"""
        still_failing = []

        for key in self.pending:
            category, notice_id = key
            source = self._source(category)
            try:
                async for attempt in AsyncRetrying(
                        stop=stop_after_attempt(max(self.config.retry_attempts, 1)),
                        wait=wait_exponential(multiplier=self.config.retry_wait, max=8),
                        retry=retry_if_exception_type(FetchError),
                        reraise=True
                ):
                    with attempt:
                        await source.acknowledge(notice_id)
            except FetchError as e:
                self._log.warning(f"Retry of {category.value}:{notice_id} gave up: {e}")
                still_failing.append(key)
                continue

            self._confirm([key])

        return still_failing
