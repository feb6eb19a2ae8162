from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z


class Customer(db.Model):
    """
    Member / customer with a stored-value balance.

    The balance is a plain field on the record: it is synchronized by
    last-write-wins like every other mutable field. The append-only
    CustomerLedgerEntry rows are the audit trail behind it.
    """
    __tablename__ = "customers"

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=True)
    phone = db.Column(db.String(64), nullable=True, index=True)
    balance = db.Column(db.Float, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "balance": self.balance,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class CustomerLedgerEntry(db.Model):
    """
    Append-only balance movement (recharge / consume / adjust).

    Immutable once stored: a second push with the same id is ignored.
    """
    __tablename__ = "customer_ledger"
    __table_args__ = (
        db.Index("ix_customer_ledger_account_customer", "account_id", "customer_id"),
    )

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    customer_id = db.Column(db.String(64), nullable=False)
    type = db.Column(db.String(32), nullable=False)  # recharge, consume, adjust
    amount = db.Column(db.Float, nullable=False)
    balance_after = db.Column(db.Float, nullable=False)
    note = db.Column(db.Text, nullable=True)
    related_id = db.Column(db.String(64), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customerId": self.customer_id,
            "type": self.type,
            "amount": self.amount,
            "balanceAfter": self.balance_after,
            "note": self.note,
            "relatedId": self.related_id,
            "createdAt": to_utc_z(self.created_at),
        }
