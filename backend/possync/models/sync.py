from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z


def deletion_key(collection: str, record_id: str) -> str:
    """Deterministic tombstone id: the same deletion always maps to the same row."""
    return f"DEL-{collection}-{record_id}"


class Deletion(db.Model):
    """
    Tombstone: marks (collection, record_id) as deleted for one account.

    INVARIANTS:
    - Grow-only. Rows are never deleted by sync; re-applying a deletion only
      refreshes deleted_at.
    - A tombstoned id is never resurrected, whatever its updated_at.
    """
    __tablename__ = "deletions"
    __table_args__ = (
        db.UniqueConstraint("account_id", "collection", "record_id", name="uq_deletions_account_record"),
    )

    # Composite key: the deterministic id is scoped to the account
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), primary_key=True)
    id = db.Column(db.String(255), primary_key=True)

    collection = db.Column(db.String(64), nullable=False)
    record_id = db.Column(db.String(128), nullable=False)
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "collection": self.collection,
            "recordId": self.record_id,
            "deletedAt": to_utc_z(self.deleted_at),
        }
