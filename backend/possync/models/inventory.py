from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z


class InventoryBatch(db.Model):
    """
    Received batch of a product (append-only).

    WHY immutable: batches are the cost/expiry history behind Product.stock.
    Corrections are new stock ledger entries, never edits.
    """
    __tablename__ = "inventory_batches"

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    product_id = db.Column(db.String(64), nullable=False, index=True)
    supplier_id = db.Column(db.String(64), nullable=True)
    batch_no = db.Column(db.String(128), nullable=True)
    quantity = db.Column(db.Float, nullable=False)
    cost = db.Column(db.Float, nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    received_at = db.Column(db.DateTime(timezone=True), nullable=False)
    stock_in_id = db.Column(db.String(64), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "supplierId": self.supplier_id,
            "batchNo": self.batch_no,
            "quantity": self.quantity,
            "cost": self.cost,
            "expiresAt": to_utc_z(self.expires_at),
            "receivedAt": to_utc_z(self.received_at),
            "stockInId": self.stock_in_id,
        }


class StockInRecord(db.Model):
    """
    Stock-in document. Parent carries updated_at; its line items have no
    lifecycle of their own and are replaced wholesale on every upsert.

    status: draft, confirmed
    """
    __tablename__ = "stock_in_records"

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    date = db.Column(db.DateTime(timezone=True), nullable=False)
    note = db.Column(db.Text, nullable=True)
    supplier_id = db.Column(db.String(64), nullable=True)
    batch_no = db.Column(db.String(128), nullable=True)
    expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="draft")
    total_quantity = db.Column(db.Float, nullable=False, default=0)
    total_cost = db.Column(db.Float, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    items = db.relationship(
        "StockInItem",
        backref="stock_in",
        cascade="all, delete-orphan",
        order_by="StockInItem.position",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "items": [item.to_dict() for item in self.items],
            "date": to_utc_z(self.date),
            "note": self.note,
            "supplierId": self.supplier_id,
            "batchNo": self.batch_no,
            "expiresAt": to_utc_z(self.expires_at),
            "status": self.status,
            "totalQuantity": self.total_quantity,
            "totalCost": self.total_cost,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class StockInItem(db.Model):
    __tablename__ = "stock_in_items"

    id = db.Column(db.String(96), primary_key=True)
    stock_in_id = db.Column(db.String(64), db.ForeignKey("stock_in_records.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.String(64), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    cost = db.Column(db.Float, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "quantity": self.quantity,
            "cost": self.cost,
        }


class StockLedgerEntry(db.Model):
    """
    Append-only stock movement.

    quantity is signed: positive for stock in, negative for stock out.
    type: stock_in, stock_out, adjustment
    """
    __tablename__ = "stock_ledger"
    __table_args__ = (
        db.Index("ix_stock_ledger_account_product", "account_id", "product_id"),
    )

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    product_id = db.Column(db.String(64), nullable=False)
    type = db.Column(db.String(32), nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    date = db.Column(db.DateTime(timezone=True), nullable=False)
    related_id = db.Column(db.String(64), nullable=True)
    note = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "productId": self.product_id,
            "type": self.type,
            "quantity": self.quantity,
            "date": to_utc_z(self.date),
            "relatedId": self.related_id,
            "note": self.note,
        }
