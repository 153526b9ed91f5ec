import asyncio

import pytest

from noticesync.core.models import Notice, SourceCategory
from noticesync.sync.badge import BadgeController
from noticesync.sync.poller import TickKind


def added(count):
    return [
        Notice(id=i, title="", message="", source_category=SourceCategory.GENERAL, published_at_ms=0)
        for i in range(count)
    ]


@pytest.mark.asyncio
async def test_poll_additions_raise_badge_then_it_clears():
    changes = []
    badge = BadgeController(timeout=0.05, on_change=changes.append)

    badge.report(added(1), TickKind.POLL)

    assert badge.new_items_count == 1
    assert badge.label == "1 new item"

    await asyncio.sleep(0.08)

    assert badge.new_items_count == 0
    assert changes == [1, 0]


@pytest.mark.asyncio
@pytest.mark.parametrize("kind", [TickKind.INITIAL, TickKind.MANUAL])
async def test_initial_and_manual_loads_never_raise_badge(kind):
    badge = BadgeController(timeout=0.05)

    badge.report(added(3), kind)

    assert badge.new_items_count == 0


@pytest.mark.asyncio
async def test_new_report_replaces_count_and_restarts_timer():
    badge = BadgeController(timeout=0.06)

    badge.report(added(2), TickKind.POLL)
    await asyncio.sleep(0.04)
    badge.report(added(3), TickKind.POLL)
    await asyncio.sleep(0.04)

    assert badge.new_items_count == 3
    assert badge.label == "3 new items"

    await asyncio.sleep(0.05)
    assert badge.new_items_count == 0


@pytest.mark.asyncio
async def test_poll_without_additions_leaves_badge_alone():
    badge = BadgeController(timeout=0.05)
    badge.report(added(2), TickKind.POLL)

    badge.report([], TickKind.POLL)

    assert badge.new_items_count == 2
    badge.close()
