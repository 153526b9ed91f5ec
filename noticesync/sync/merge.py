"""Combine per-source snapshots into one deduplicated notice collection."""
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Sequence, Union

from loguru import logger

from noticesync.core.models import CATEGORY_ORDER, Notice, SourceCategory

SnapshotResult = Union[Sequence[Notice], BaseException]

_log = logger.bind(component="merge")


@dataclass
class MergeResult:
    merged: List[Notice]
    added: List[Notice]
    failures: Dict[SourceCategory, BaseException] = field(default_factory=dict)
    removed: int = 0


def group_by_category(notices: Sequence[Notice]) -> Dict[SourceCategory, List[Notice]]:
    groups: Dict[SourceCategory, List[Notice]] = {category: [] for category in CATEGORY_ORDER}
    for notice in notices:
        groups.setdefault(notice.source_category, []).append(notice)
    return groups


def _dedupe(category: SourceCategory, snapshot: Sequence[Notice]) -> List[Notice]:
    """Keep the first occurrence of every id; drop notices filed under another category"""
    seen = set()
    result = []
    for notice in snapshot:
        if notice.source_category != category:
            _log.warning(f"{notice.source_category.value}:{notice.id} delivered in the {category.value} snapshot, dropped")
            continue
        if notice.id in seen:
            continue
        seen.add(notice.id)
        result.append(notice)
    return result


def merge(
        previous: Sequence[Notice],
        new_snapshots: Mapping[SourceCategory, SnapshotResult]
) -> MergeResult:
    """
    Replace each category's sub-collection with its new snapshot.

    Categories that failed (an exception instead of a list) or that are missing
    from new_snapshots keep their previous notices unchanged. `added` holds the
    notices whose (category, id) key was not present in `previous`.
    """
    groups = group_by_category(previous)
    failures: Dict[SourceCategory, BaseException] = {}

    for category, snapshot in new_snapshots.items():
        if isinstance(snapshot, BaseException):
            failures[category] = snapshot
            continue
        groups[category] = _dedupe(category, snapshot)

    merged: List[Notice] = []
    for notices in groups.values():
        merged.extend(notices)

    previous_keys = {notice.key for notice in previous}
    merged_keys = {notice.key for notice in merged}
    added = [notice for notice in merged if notice.key not in previous_keys]
    removed = len(previous_keys - merged_keys)

    return MergeResult(merged=merged, added=added, failures=failures, removed=removed)
