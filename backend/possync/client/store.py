# Overview: In-memory Local Store of synchronized categories with JSON-file persistence.

"""
Local Store

Holds every category as wire-format dicts, the store settings singleton, and
the local tombstone set ({category: {id: deletedAt}}).

CONCURRENCY: one RLock guards all state. Sync timer threads and the caller
never observe a half-applied merge: apply_remote computes the merged result
first and swaps it in under the lock.
"""

from __future__ import annotations

import copy
import json
import logging
import tempfile
import threading
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from ..categories import COLLECTIONS, STORE_SETTINGS, Category, get_category
from ..merge import accessor_for, merge_by_id, merge_singleton, merge_tombstones
from ..time_utils import now_iso, to_millis, to_utc_z

logger = logging.getLogger(__name__)

_EPOCH = datetime(1970, 1, 1)


def next_timestamp(previous: Any = None) -> str:
    """Current time as a wire timestamp, strictly later than `previous`."""
    candidate = now_iso()
    previous_ms = to_millis(previous)
    if previous and to_millis(candidate) <= previous_ms:
        candidate = to_utc_z(_EPOCH + timedelta(milliseconds=int(round(previous_ms)) + 1))
    return candidate


class LocalStore:
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._collections: Dict[str, List[dict]] = {c.name: [] for c in COLLECTIONS}
        self._settings: Optional[dict] = None
        self._tombstones: Dict[str, Dict[str, str]] = {}

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(self, category: str) -> List[dict]:
        cat = self._collection(category)
        with self._lock:
            return copy.deepcopy(self._collections[cat.name])

    def get(self, category: str, record_id: str) -> Optional[dict]:
        cat = self._collection(category)
        with self._lock:
            found = self._find(cat.name, record_id)
            return copy.deepcopy(found) if found is not None else None

    @property
    def store_settings(self) -> Optional[dict]:
        with self._lock:
            return copy.deepcopy(self._settings)

    def tombstones(self) -> Dict[str, Dict[str, str]]:
        with self._lock:
            return copy.deepcopy(self._tombstones)

    def snapshot(self) -> Dict[str, Any]:
        """Every category plus storeSettings, as pushed to the server."""
        with self._lock:
            data: Dict[str, Any] = copy.deepcopy(self._collections)
            data[STORE_SETTINGS.name] = copy.deepcopy(self._settings)
            return data

    def deletions_payload(self) -> Dict[str, List[str]]:
        with self._lock:
            return {name: sorted(ids) for name, ids in self._tombstones.items() if ids}

    # ------------------------------------------------------------------
    # Local mutations
    # ------------------------------------------------------------------

    def add(self, category: str, record: dict) -> dict:
        """
        Insert a new record. Assigns `<PREFIX>-<uuid4>` when no id is given,
        plus createdAt (and updatedAt for mutable categories).
        """
        cat = self._collection(category)
        item = copy.deepcopy(record)
        now = now_iso()
        item.setdefault("id", f"{cat.id_prefix}-{uuid.uuid4()}")
        item.setdefault("createdAt", now)
        if cat.is_mutable:
            item["updatedAt"] = now
            if "date" in cat.timestamp_fields:
                item.setdefault("date", now)

        with self._lock:
            if self._find(cat.name, item["id"]) is not None:
                raise ValueError(f"{cat.name}: id {item['id']} already exists")
            self._collections[cat.name].append(item)
        self._autosave()
        return copy.deepcopy(item)

    def update(self, category: str, record_id: str, changes: dict) -> dict:
        """Apply changes to a mutable record and advance its updatedAt."""
        cat = self._collection(category)
        if not cat.is_mutable:
            raise ValueError(f"{cat.name} is append-only")

        with self._lock:
            current = self._find(cat.name, record_id)
            if current is None:
                raise KeyError(f"{cat.name}: unknown id {record_id}")
            previous = accessor_for(cat)(current)
            current.update(copy.deepcopy(changes))
            current["id"] = record_id
            current["updatedAt"] = next_timestamp(previous)
            result = copy.deepcopy(current)
        self._autosave()
        return result

    def delete(self, category: str, record_id: str) -> bool:
        """Remove a mutable record and tombstone its id. Returns False if unknown."""
        cat = self._collection(category)
        if not cat.honours_tombstones:
            raise ValueError(f"{cat.name} records cannot be deleted")

        with self._lock:
            rows = self._collections[cat.name]
            kept = [r for r in rows if r.get("id") != record_id]
            removed = len(kept) != len(rows)
            self._collections[cat.name] = kept
            self._tombstones.setdefault(cat.name, {}).setdefault(record_id, now_iso())
        self._autosave()
        return removed

    def update_store_settings(self, changes: dict) -> dict:
        with self._lock:
            current = dict(self._settings or {})
            previous = accessor_for(STORE_SETTINGS)(current)
            current.update(copy.deepcopy(changes))
            current.setdefault("createdAt", now_iso())
            current["updatedAt"] = next_timestamp(previous)
            self._settings = current
            result = copy.deepcopy(current)
        self._autosave()
        return result

    # ------------------------------------------------------------------
    # Pull merge
    # ------------------------------------------------------------------

    def apply_remote(self, data: Dict[str, Any]) -> None:
        """
        Merge a pulled snapshot into local state.

        Categories missing from `data` count as empty, so they never erase
        local records. Tombstones from both sides are unioned first and
        suppress ids in every mutable category.
        """
        remote_tombstones = _tombstones_from_wire(data.get("deletions"))

        with self._lock:
            tombstones = merge_tombstones(self._tombstones, remote_tombstones)

            collections: Dict[str, List[dict]] = {}
            for cat in COLLECTIONS:
                remote = data.get(cat.name)
                if not isinstance(remote, list):
                    remote = []
                remote = [r for r in remote if isinstance(r, dict)]
                deleted = tombstones.get(cat.name, {}) if cat.honours_tombstones else ()
                collections[cat.name] = merge_by_id(
                    self._collections[cat.name],
                    copy.deepcopy(remote),
                    accessor_for(cat),
                    deleted,
                )

            settings = self._merge_settings(data.get(STORE_SETTINGS.name))

            self._collections = collections
            self._settings = settings
            self._tombstones = tombstones
        self._autosave()

    def _merge_settings(self, remote: Any) -> Optional[dict]:
        if not isinstance(remote, dict):
            remote = None
        local = self._settings
        merged = merge_singleton(local, copy.deepcopy(remote), accessor_for(STORE_SETTINGS))
        if merged is not local and local and not merged.get("paymentMethods"):
            merged["paymentMethods"] = list(local.get("paymentMethods") or [])
        return merged

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def save(self, path: Optional[str] = None) -> None:
        target = Path(path) if path else self.path
        if target is None:
            raise ValueError("no store path configured")
        target.parent.mkdir(parents=True, exist_ok=True)
        # Serialise, write and rename under one lock: the file on disk only moves forward
        with self._lock:
            payload = {
                "collections": self._collections,
                "storeSettings": self._settings,
                "tombstones": self._tombstones,
            }
            text = json.dumps(payload, ensure_ascii=False, indent=2)
            with tempfile.NamedTemporaryFile(
                "w", encoding="utf-8", dir=target.parent, prefix=target.name + ".", suffix=".tmp", delete=False
            ) as handle:
                handle.write(text)
            tmp = Path(handle.name)
            try:
                tmp.replace(target)
            except OSError:
                tmp.unlink(missing_ok=True)
                raise

    @classmethod
    def load(cls, path: str) -> "LocalStore":
        """Open a store file; a missing file yields an empty store bound to that path."""
        store = cls(path)
        if not store.path.exists():
            return store
        payload = json.loads(store.path.read_text(encoding="utf-8"))
        collections = payload.get("collections") or {}
        for cat in COLLECTIONS:
            rows = collections.get(cat.name)
            if isinstance(rows, list):
                store._collections[cat.name] = [r for r in rows if isinstance(r, dict)]
        settings = payload.get("storeSettings")
        store._settings = settings if isinstance(settings, dict) else None
        store._tombstones = {
            name: dict(ids)
            for name, ids in (payload.get("tombstones") or {}).items()
            if isinstance(ids, dict)
        }
        return store

    def _autosave(self) -> None:
        if self.path is not None:
            self.save()

    # ------------------------------------------------------------------

    def _collection(self, name: str) -> Category:
        cat = get_category(name)
        if cat is None or cat not in COLLECTIONS:
            raise KeyError(f"unknown collection {name}")
        return cat

    def _find(self, name: str, record_id: str) -> Optional[dict]:
        for row in self._collections[name]:
            if row.get("id") == record_id:
                return row
        return None


def _tombstones_from_wire(raw: Any) -> Dict[str, Dict[str, Any]]:
    """[{collection, recordId, deletedAt}] -> {collection: {recordId: deletedAt}}"""
    result: Dict[str, Dict[str, Any]] = {}
    if not isinstance(raw, list):
        return result
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        collection = entry.get("collection")
        record_id = entry.get("recordId")
        if not collection or not record_id:
            continue
        if get_category(collection) is None:
            logger.warning("Ignoring tombstone for unknown collection %s", collection)
            continue
        result.setdefault(collection, {})[str(record_id)] = entry.get("deletedAt")
    return result
