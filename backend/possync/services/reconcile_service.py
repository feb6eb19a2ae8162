# Overview: Service-layer operations for push reconciliation (the Remote Reconciler).

"""
Remote Reconciler

Applies one push (a full client snapshot plus its tombstones) to the
account's persisted state.

ORDER (strict, each step durable before the next):
1. Tombstones: upsert deletion markers, then load the account's full set.
2. Records, category by category in RECONCILE_ORDER:
   - mutable: skip tombstoned ids; skip unless strictly newer than the
     stored version; otherwise overwrite the whole record (children too)
   - append-only: insert if the id is unknown, otherwise leave it alone
   - store settings: same rule as mutable, keyed by account
3. Coupon usage recount from the now-durable orders.

FAILURE SEMANTICS:
- A malformed record is skipped and logged; the rest of the push commits.
- Lock/connection failures propagate so the whole request fails and the
  client retries on its next tick.

CONSISTENCY: last-write-wins by timestamp. Two devices racing on the same
record converge on whichever version carries the later updatedAt, in
whatever order the pushes arrive. A write that arrives late with an older
timestamp loses.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from flask import current_app
from sqlalchemy.exc import DataError, IntegrityError

from ..categories import RECONCILE_ORDER, SINGLETON, Category
from ..extensions import db
from ..models.settings import settings_id_for
from ..validation import ValidationError
from possync.time_utils import as_naive_utc, utcnow
from .concurrency import in_savepoint, lock_for_update, run_with_retry
from .deletion_service import apply_deletions, deleted_ids_by_collection, normalize_deletion_input
from .promotions_service import recount_coupon_usage
from .sync_schemas import NormalizedRecord, RecordSchema, get_schema, normalize_record


APPLIED = "applied"
STALE = "stale"
EXISTS = "exists"
TOMBSTONED = "tombstoned"
INVALID = "invalid"


@dataclass
class ReconcileResult:
    tombstones: int = 0
    outcomes: dict[str, Counter] = field(default_factory=dict)
    coupons_recounted: int = 0

    def count(self, outcome: str, category: str | None = None) -> int:
        if category is not None:
            return self.outcomes.get(category, Counter())[outcome]
        return sum(c[outcome] for c in self.outcomes.values())


def _find_existing(schema: RecordSchema, account_id: str, record: NormalizedRecord):
    model = schema.model
    if schema.category.kind == SINGLETON:
        return lock_for_update(db.session.query(model).filter_by(account_id=account_id)).first()

    existing = lock_for_update(db.session.query(model).filter_by(id=record.id)).first()
    if existing is not None and existing.account_id != account_id:
        raise ValidationError(f"{schema.name}: id {record.id} belongs to another account")
    return existing


def _replace_children(schema: RecordSchema, parent: Any, rows: list[dict]) -> None:
    # Flush the deletes first: replacement rows may reuse the same item ids
    parent.items.clear()
    db.session.flush()
    parent.items.extend(schema.child.model(**row) for row in rows)


def write_record(schema: RecordSchema, account_id: str, record: NormalizedRecord) -> str:
    """
    Read-compare-write one record. Runs inside the caller's savepoint.

    Returns the outcome (APPLIED, STALE or EXISTS).
    """
    category = schema.category
    values = dict(record.values)
    if category.kind == SINGLETON:
        values["id"] = settings_id_for(account_id)

    existing = _find_existing(schema, account_id, record)

    if category.is_append_only:
        if existing is not None:
            return EXISTS
        db.session.add(schema.model(account_id=account_id, **values))
        return APPLIED

    incoming_at = record.updated_at
    if existing is not None:
        stored_at = as_naive_utc(existing.updated_at)
        # No timestamp sorts as oldest possible: it never displaces a stored version
        if incoming_at is None or (stored_at is not None and stored_at >= incoming_at):
            return STALE
        for key, value in values.items():
            if key in ("id", "created_at"):
                continue
            setattr(existing, key, value)
        existing.updated_at = incoming_at
        if schema.child is not None:
            _replace_children(schema, existing, record.children)
        return APPLIED

    created = schema.model(account_id=account_id, updated_at=incoming_at or utcnow(), **values)
    if schema.child is not None:
        created.items = [schema.child.model(**row) for row in record.children]
    db.session.add(created)
    return APPLIED


def _apply_one(schema: RecordSchema, account_id: str, raw: Any, deleted: set[str]) -> str:
    name = schema.name
    raw_id = raw.get("id") if isinstance(raw, dict) else None

    try:
        record = normalize_record(schema, raw)
    except ValidationError as exc:
        current_app.logger.warning("Skipping malformed %s record %r: %s", name, raw_id, exc)
        return INVALID

    if schema.category.honours_tombstones and record.id in deleted:
        return TOMBSTONED

    try:
        outcome = in_savepoint(lambda: write_record(schema, account_id, record))
    except ValidationError as exc:
        current_app.logger.warning("Skipping %s record %r: %s", name, record.id, exc)
        outcome = INVALID
    except (IntegrityError, DataError) as exc:
        current_app.logger.warning("Skipping %s record %r after database error: %s", name, record.id, exc.orig)
        outcome = INVALID
    return outcome


def _records_for(category: Category, data: dict) -> list:
    raw = data.get(category.name)
    if raw is None:
        return []
    if category.kind == SINGLETON:
        return [raw] if raw else []
    if not isinstance(raw, list):
        current_app.logger.warning("Ignoring %s: expected a list, got %s", category.name, type(raw).__name__)
        return []
    return raw


def _apply_category(schema: RecordSchema, account_id: str, records: list, deleted: set[str]) -> Counter:
    outcomes: Counter = Counter()
    for raw in records:
        outcomes[_apply_one(schema, account_id, raw, deleted)] += 1
    db.session.commit()
    return outcomes


def _apply_tombstones(account_id: str, pairs: list[tuple[str, str]]) -> int:
    applied = apply_deletions(account_id, pairs)
    db.session.commit()
    return applied


def _recount_coupons(account_id: str) -> int:
    changed = recount_coupon_usage(account_id)
    db.session.commit()
    return changed


def reconcile(account_id: str, data: Any, deletions: Any = None) -> ReconcileResult:
    """
    Apply a pushed snapshot to the account's stored state.

    Each step commits on its own and is retried as a whole on lock
    contention, so a retry never drops writes made earlier in the step.

    Raises ValidationError only when the payload as a whole is unusable
    (data is not an object). Individual bad records are skipped.
    """
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValidationError("data must be an object")

    result = ReconcileResult()

    # 1. Tombstones (accepted at the top level and, for older clients, inside data)
    pairs = normalize_deletion_input(deletions) + normalize_deletion_input(data.get("deletions"))
    result.tombstones = run_with_retry(lambda: _apply_tombstones(account_id, pairs))
    deleted = deleted_ids_by_collection(account_id)

    # 2. Records, category by category
    for category in RECONCILE_ORDER:
        records = _records_for(category, data)
        if not records:
            continue
        schema = get_schema(category.name)
        category_deleted = deleted.get(category.name, set())
        result.outcomes[category.name] = run_with_retry(
            lambda: _apply_category(schema, account_id, records, category_deleted)
        )

    # 3. Derived aggregate
    result.coupons_recounted = run_with_retry(lambda: _recount_coupons(account_id))

    current_app.logger.info(
        "Reconciled push for %s: %d applied, %d stale, %d existing, %d tombstoned, %d invalid, %d coupons recounted",
        account_id,
        result.count(APPLIED),
        result.count(STALE),
        result.count(EXISTS),
        result.count(TOMBSTONED),
        result.count(INVALID),
        result.coupons_recounted,
    )
    return result
