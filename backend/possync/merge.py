"""
Merge Engine

One last-write-wins primitive shared by every category. Pure functions:
no I/O, no clock, inputs are never mutated.

GUARANTEES (merge_by_id):
- at most one record per id in the output
- no tombstoned id appears in the output
- an id known to only one side keeps that version
- for an id known to both sides the strictly newer timestamp wins;
  ties keep the local version
- a record without a timestamp is treated as time zero
"""

from __future__ import annotations

from typing import Any, Callable, Iterable, Mapping

from .categories import Category
from .time_utils import to_millis


Record = dict[str, Any]
TimestampAccessor = Callable[[Mapping[str, Any]], Any]


def timestamp_accessor(fields: Iterable[str]) -> TimestampAccessor:
    """Accessor returning the first non-empty value along a fallback chain."""
    chain = tuple(fields)

    def get_updated_at(record: Mapping[str, Any]) -> Any:
        for key in chain:
            value = record.get(key)
            if value:
                return value
        return None

    return get_updated_at


def constant_accessor(record: Mapping[str, Any]) -> Any:
    """Append-only accessor: every version ties, so the local copy is never displaced."""
    return None


def accessor_for(category: Category) -> TimestampAccessor:
    if category.is_append_only or not category.timestamp_fields:
        return constant_accessor
    return timestamp_accessor(category.timestamp_fields)


def is_newer(candidate: Mapping[str, Any], current: Mapping[str, Any], get_updated_at: TimestampAccessor) -> bool:
    """True only when candidate is strictly newer than current."""
    return to_millis(get_updated_at(candidate)) > to_millis(get_updated_at(current))


def merge_by_id(
    local: Iterable[Record],
    remote: Iterable[Record],
    get_updated_at: TimestampAccessor,
    deleted_ids: Iterable[str] = (),
) -> list[Record]:
    deleted = set(deleted_ids)
    merged: dict[str, Record] = {}

    for item in local:
        item_id = item.get("id")
        if not item_id or item_id in deleted:
            continue
        merged[item_id] = item

    for item in remote:
        item_id = item.get("id")
        if not item_id or item_id in deleted:
            continue
        existing = merged.get(item_id)
        if existing is None or is_newer(item, existing, get_updated_at):
            merged[item_id] = item

    return list(merged.values())


def merge_singleton(
    local: Record | None,
    remote: Record | None,
    get_updated_at: TimestampAccessor,
) -> Record | None:
    """Last-write-wins for a single record (store settings)."""
    if not remote:
        return local
    if not local:
        return remote
    if is_newer(remote, local, get_updated_at):
        return remote
    return local


def merge_tombstones(
    local: Mapping[str, Mapping[str, Any]],
    remote: Mapping[str, Mapping[str, Any]],
) -> dict[str, dict[str, Any]]:
    """
    Grow-only union of per-category tombstones ({category: {id: deletedAt}}).

    Ids are never removed. When both sides know an id the earlier deletion
    time is kept so re-applied deletions do not drift forward.
    """
    merged: dict[str, dict[str, Any]] = {name: dict(ids) for name, ids in local.items()}
    for name, ids in remote.items():
        target = merged.setdefault(name, {})
        for record_id, deleted_at in ids.items():
            if record_id not in target:
                target[record_id] = deleted_at
                continue
            known = target[record_id]
            if deleted_at and (not known or to_millis(deleted_at) < to_millis(known)):
                target[record_id] = deleted_at
    return merged
