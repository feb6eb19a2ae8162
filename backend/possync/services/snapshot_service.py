# Overview: Service-layer operations for building the pull snapshot.

from __future__ import annotations

from sqlalchemy.orm import selectinload

from ..categories import COLLECTIONS, STORE_SETTINGS
from ..extensions import db
from ..models import StoreSetting
from .deletion_service import list_deletions
from .sync_schemas import get_schema


def build_snapshot(account_id: str) -> dict:
    """
    Every category of one account, in wire format.

    Shape: {<category>: [...], "storeSettings": {...} | None,
            "deletions": [{collection, recordId, deletedAt}]}
    """
    snapshot: dict = {}
    for category in COLLECTIONS:
        schema = get_schema(category.name)
        model = schema.model
        q = db.session.query(model).filter_by(account_id=account_id)
        if schema.child is not None:
            q = q.options(selectinload(model.items))
        snapshot[category.name] = [row.to_dict() for row in q.order_by(model.id.asc()).all()]

    settings = db.session.query(StoreSetting).filter_by(account_id=account_id).first()
    snapshot[STORE_SETTINGS.name] = settings.to_dict() if settings else None
    snapshot["deletions"] = list_deletions(account_id)
    return snapshot


def snapshot_stats(account_id: str) -> dict[str, int]:
    """Record counts per category (CLI / diagnostics)."""
    stats: dict[str, int] = {}
    for category in COLLECTIONS:
        model = get_schema(category.name).model
        stats[category.name] = db.session.query(model).filter_by(account_id=account_id).count()
    stats[STORE_SETTINGS.name] = db.session.query(StoreSetting).filter_by(account_id=account_id).count()
    return stats
