from datetime import datetime

import pytest

from noticesync.core.models import Notice, SourceCategory
from noticesync.sync.filters import DAY_MS, FilterState, apply, filter_counts, sort_for_view

NOW = int(datetime(2026, 10, 18, 15, 0).timestamp() * 1000)


def notice(id, published_at_ms=NOW, read=False, **kwargs):
    kwargs.setdefault("title", f"Notice {id}")
    kwargs.setdefault("message", "")
    return Notice(
        id=id,
        source_category=SourceCategory.GENERAL,
        published_at_ms=published_at_ms,
        read=read,
        **kwargs,
    )


@pytest.fixture
def notices():
    return [
        notice(1, read=True),
        notice(2),
        notice(3, published_at_ms=NOW - 3 * DAY_MS, read=True, tags=["Results"]),
        notice(4, published_at_ms=NOW - 20 * DAY_MS, category="Exams"),
        notice(5, published_at_ms=NOW - 45 * DAY_MS, exam_title="Organic Chemistry", exam_code="CHEM-201"),
    ]


def ids(notices):
    return [n.id for n in notices]


def test_default_filter_returns_everything_in_order(notices):
    assert ids(apply(notices, FilterState(), now_ms=NOW)) == [1, 2, 3, 4, 5]


def test_unread_returns_exactly_the_unread_subset(notices):
    result = apply(notices, FilterState(read_status="unread", date_range="all", search_query=""), now_ms=NOW)

    assert ids(result) == [2, 4, 5]
    assert all(not n.read for n in result)


def test_read_status_read(notices):
    assert ids(apply(notices, FilterState(read_status="read"), now_ms=NOW)) == [1, 3]


@pytest.mark.parametrize("date_range, expected", [
    ("today", [1, 2]),
    ("7days", [1, 2, 3]),
    ("30days", [1, 2, 3, 4]),
])
def test_date_ranges(notices, date_range, expected):
    assert ids(apply(notices, FilterState(date_range=date_range), now_ms=NOW)) == expected


def test_window_boundary_is_inclusive():
    edge = notice(1, published_at_ms=NOW - 7 * DAY_MS)
    past = notice(2, published_at_ms=NOW - 7 * DAY_MS - 1)

    assert ids(apply([edge, past], FilterState(date_range="7days"), now_ms=NOW)) == [1]


def test_today_means_same_calendar_day():
    midnight = int(datetime(2026, 10, 18, 0, 0).timestamp() * 1000)
    yesterday = int(datetime(2026, 10, 17, 23, 59).timestamp() * 1000)

    result = apply([notice(1, midnight), notice(2, yesterday)], FilterState(date_range="today"), now_ms=NOW)

    assert ids(result) == [1]


@pytest.mark.parametrize("query, expected", [
    ("notice 2", [2]),
    ("RESULTS", [3]),
    ("exams", [4]),
    ("chemistry", [5]),
    ("chem-201", [5]),
    ("   ", [1, 2, 3, 4, 5]),
    ("nothing like this", []),
])
def test_search_matches_any_field(notices, query, expected):
    assert ids(apply(notices, FilterState(search_query=query), now_ms=NOW)) == expected


def test_clauses_are_combined_with_and(notices):
    state = FilterState(read_status="unread", date_range="30days", search_query="notice")

    assert ids(apply(notices, state, now_ms=NOW)) == [2, 4]


def test_expired_notices_hidden_unless_requested():
    items = [notice(1, expires_at_ms=NOW - 1), notice(2, expires_at_ms=NOW + DAY_MS), notice(3)]

    assert ids(apply(items, FilterState(), now_ms=NOW)) == [2, 3]
    assert ids(apply(items, FilterState(include_expired=True), now_ms=NOW)) == [1, 2, 3]


def test_apply_does_not_mutate_input(notices):
    before = list(notices)

    apply(notices, FilterState(read_status="unread", search_query="chem"), now_ms=NOW)

    assert notices == before
    assert [n.read for n in notices] == [True, False, True, False, False]


def test_invalid_filter_values_are_rejected():
    with pytest.raises(ValueError):
        FilterState(read_status="archived")
    with pytest.raises(ValueError):
        FilterState(date_range="week")


def test_sort_for_view_floats_pinned_then_newest():
    items = [
        notice(1, published_at_ms=NOW - 2 * DAY_MS),
        notice(2, published_at_ms=NOW - 5 * DAY_MS, is_pinned=True),
        notice(3, published_at_ms=NOW),
        notice(4, published_at_ms=NOW - DAY_MS, is_pinned=True),
    ]

    assert ids(sort_for_view(items)) == [4, 2, 3, 1]


def test_filter_counts(notices):
    assert filter_counts(notices) == {"all": 5, "read": 2, "unread": 3}
