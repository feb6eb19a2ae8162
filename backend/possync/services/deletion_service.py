# Overview: Service-layer operations for tombstones (deletion markers).

"""
Tombstone Ledger (server side)

INVARIANTS:
- Grow-only: sync never removes a tombstone.
- Idempotent: re-applying a deletion refreshes deleted_at and nothing else.
- Scoped: every tombstone belongs to exactly one account.
"""

from __future__ import annotations

from typing import Any, Iterable

from flask import current_app
from sqlalchemy.exc import DataError, IntegrityError

from ..categories import get_category
from ..extensions import db
from ..models import Deletion
from ..models.sync import deletion_key
from possync.time_utils import utcnow
from .concurrency import in_savepoint


def normalize_deletion_input(raw: Any) -> list[tuple[str, str]]:
    """
    Flatten {collection: [record ids]} into (collection, record_id) pairs.

    Malformed entries, unknown collections and ids too long to store are
    skipped with a warning.
    """
    max_length = Deletion.__table__.c.record_id.type.length
    if not raw:
        return []
    if not isinstance(raw, dict):
        current_app.logger.warning("Ignoring malformed deletions payload (%s)", type(raw).__name__)
        return []

    pairs: list[tuple[str, str]] = []
    for collection, ids in raw.items():
        if get_category(collection) is None:
            current_app.logger.warning("Ignoring deletions for unknown collection %r", collection)
            continue
        if not isinstance(ids, list):
            current_app.logger.warning("Ignoring malformed deletions for %s", collection)
            continue
        for record_id in ids:
            if not isinstance(record_id, str) or not record_id.strip():
                continue
            record_id = record_id.strip()
            if len(record_id) > max_length:
                current_app.logger.warning("Ignoring %s deletion: id longer than %d characters", collection, max_length)
                continue
            pairs.append((collection, record_id))
    return pairs


def apply_deletions(account_id: str, pairs: Iterable[tuple[str, str]]) -> int:
    """
    Upsert tombstones for (collection, record_id) pairs. Caller commits.

    Each tombstone is written in its own savepoint so a concurrent push of
    the same deletion from another device only costs a retry. A tombstone the
    database rejects is skipped and logged; the rest still apply.

    Returns the number of tombstones written (new or refreshed).
    """
    now = utcnow()
    count = 0
    for collection, record_id in dict.fromkeys(pairs):
        key = deletion_key(collection, record_id)

        def _upsert():
            row = db.session.get(Deletion, (account_id, key))
            if row is None:
                db.session.add(Deletion(
                    account_id=account_id,
                    id=key,
                    collection=collection,
                    record_id=record_id,
                    deleted_at=now,
                ))
            else:
                row.deleted_at = now

        try:
            in_savepoint(_upsert)
        except (IntegrityError, DataError) as exc:
            current_app.logger.warning("Skipping %s deletion %r after database error: %s", collection, record_id, exc.orig)
            continue
        count += 1
    return count


def deleted_ids_by_collection(account_id: str) -> dict[str, set[str]]:
    """The account's full tombstone set, grouped by collection."""
    result: dict[str, set[str]] = {}
    rows = db.session.query(Deletion.collection, Deletion.record_id).filter_by(account_id=account_id).all()
    for collection, record_id in rows:
        result.setdefault(collection, set()).add(record_id)
    return result


def list_deletions(account_id: str) -> list[dict]:
    q = db.session.query(Deletion).filter_by(account_id=account_id)
    return [d.to_dict() for d in q.order_by(Deletion.deleted_at.asc()).all()]
