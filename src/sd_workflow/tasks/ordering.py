# src/sd_workflow/tasks/ordering.py

"""
Deadline ordering with grouping, shared by every task list.

Output shape is always: active* pending* confirmed*.
- active follows the ascending/descending toggle
- pending and confirmed are always earliest -> latest, so finished work does
  not reshuffle when the user flips the active sort
- tasks without a usable deadline go last within their bucket
- equal keys (or two invalid keys) break by id, ascending
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import IntEnum
from typing import Any, TypeVar

from .datekey import DateKey, deadline_key

T = TypeVar("T")


class Bucket(IntEnum):
    ACTIVE = 0
    PENDING = 1
    CONFIRMED = 2


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def bucket_of(item: Any) -> Bucket:
    if _field(item, "confirmed"):
        return Bucket.CONFIRMED
    if _field(item, "result_submitted"):
        return Bucket.PENDING
    return Bucket.ACTIVE


def _sort_key(item: Any, ascending: bool) -> tuple[int, int, str]:
    key: DateKey | None = deadline_key(_field(item, "deadline"))
    item_id = str(_field(item, "id") or "")
    if key is None:
        return (1, 0, item_id)
    return (0, key if ascending else -key, item_id)


def group_and_sort(items: Iterable[T], ascending: bool = True) -> list[T]:
    """Order tasks (Task objects or row dicts) for display."""
    groups: dict[Bucket, list[T]] = {b: [] for b in Bucket}
    for item in items:
        groups[bucket_of(item)].append(item)

    out: list[T] = []
    for bucket in Bucket:
        asc = ascending if bucket is Bucket.ACTIVE else True
        out.extend(sorted(groups[bucket], key=lambda it, a=asc: _sort_key(it, a)))
    return out
