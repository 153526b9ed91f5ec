"""Pure view derivation: filtering, sorting and counters over merged notices."""
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from noticesync.core.models import Notice
from noticesync.utils.tools import now_ms as current_ms

DAY_MS = 86_400_000

READ_STATUSES = ("all", "read", "unread")
DATE_RANGES = {"all": None, "today": None, "7days": 7 * DAY_MS, "30days": 30 * DAY_MS}


@dataclass(frozen=True)
class FilterState:
    read_status: str = "all"
    date_range: str = "all"
    search_query: str = ""
    include_expired: bool = False

    def __post_init__(self):
        if self.read_status not in READ_STATUSES:
            raise ValueError(f"read_status must be one of {READ_STATUSES}, got {self.read_status!r}")
        if self.date_range not in DATE_RANGES:
            raise ValueError(f"date_range must be one of {tuple(DATE_RANGES)}, got {self.date_range!r}")


Predicate = Callable[[Notice], bool]


def _same_local_day(a_ms: int, b_ms: int) -> bool:
    return datetime.fromtimestamp(a_ms / 1000).date() == datetime.fromtimestamp(b_ms / 1000).date()


def matches_search(notice: Notice, query: str) -> bool:
    query = query.strip().lower()
    if not query:
        return True

    fields = [notice.title, notice.message, notice.category, notice.exam_title, notice.exam_code, *notice.tags]
    return any(query in value.lower() for value in fields if value)


def build_predicates(filter_state: FilterState, now_ms: int) -> List[Predicate]:
    predicates: List[Predicate] = []

    if not filter_state.include_expired:
        predicates.append(lambda n: not n.is_expired(now_ms))

    if filter_state.read_status == "read":
        predicates.append(lambda n: n.read)
    elif filter_state.read_status == "unread":
        predicates.append(lambda n: not n.read)

    if filter_state.date_range == "today":
        predicates.append(lambda n: _same_local_day(n.published_at_ms, now_ms))
    elif window := DATE_RANGES[filter_state.date_range]:
        predicates.append(lambda n: now_ms - n.published_at_ms <= window)

    if filter_state.search_query.strip():
        predicates.append(lambda n: matches_search(n, filter_state.search_query))

    return predicates


def apply(notices: Sequence[Notice], filter_state: Optional[FilterState] = None, now_ms: Optional[int] = None) -> List[Notice]:
    """Return the notices matching every active clause, in their original order"""
    filter_state = filter_state or FilterState()
    now_ms = current_ms() if now_ms is None else now_ms
    predicates = build_predicates(filter_state, now_ms)

    return [notice for notice in notices if all(predicate(notice) for predicate in predicates)]


def sort_for_view(notices: Sequence[Notice]) -> List[Notice]:
    """Pinned notices first, then newest first"""
    return sorted(notices, key=lambda n: (not n.is_pinned, -n.published_at_ms))


def filter_counts(notices: Sequence[Notice]) -> Dict[str, int]:
    unread = sum(1 for notice in notices if not notice.read)
    return {"all": len(notices), "read": len(notices) - unread, "unread": unread}
