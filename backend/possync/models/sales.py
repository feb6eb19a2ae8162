from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z


class Order(db.Model):
    """
    Sales order.

    LIFECYCLE:
    - status: draft, confirmed, cancelled, refunded
    - payment_status: unpaid, paid, refunded

    Only confirmed orders count toward coupon usage. Line items are replaced
    wholesale whenever the order is upserted.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_account_discount", "account_id", "discount_type", "discount_rule_id", "status"),
    )

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    order_no = db.Column(db.String(64), nullable=False, index=True)
    customer_id = db.Column(db.String(64), nullable=True)
    date = db.Column(db.DateTime(timezone=True), nullable=False)

    total = db.Column(db.Float, nullable=False)
    payment_method = db.Column(db.String(64), nullable=True)
    payment_amount = db.Column(db.Float, nullable=True)

    discount_amount = db.Column(db.Float, nullable=False, default=0)
    discount_type = db.Column(db.String(32), nullable=True)  # member_rate, full_reduction, coupon
    discount_name = db.Column(db.String(255), nullable=True)
    discount_rule_id = db.Column(db.String(64), nullable=True)
    discount_rate = db.Column(db.Float, nullable=True)
    payable_total = db.Column(db.Float, nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default="unpaid")
    status = db.Column(db.String(16), nullable=False, default="draft")

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.position",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderNo": self.order_no,
            "items": [item.to_dict() for item in self.items],
            "customerId": self.customer_id,
            "date": to_utc_z(self.date),
            "total": self.total,
            "paymentMethod": self.payment_method,
            "paymentAmount": self.payment_amount,
            "discountAmount": self.discount_amount,
            "discountType": self.discount_type,
            "discountName": self.discount_name,
            "discountRuleId": self.discount_rule_id,
            "discountRate": self.discount_rate,
            "payableTotal": self.payable_total,
            "paymentStatus": self.payment_status,
            "status": self.status,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """Order line. type: product, service"""
    __tablename__ = "order_items"

    id = db.Column(db.String(96), primary_key=True)
    order_id = db.Column(db.String(64), db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    type = db.Column(db.String(16), nullable=False)
    product_id = db.Column(db.String(64), nullable=True)
    service_id = db.Column(db.String(64), nullable=True)
    name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Float, nullable=False)
    price = db.Column(db.Float, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "productId": self.product_id,
            "serviceId": self.service_id,
            "name": self.name,
            "quantity": self.quantity,
            "price": self.price,
        }


class Receipt(db.Model):
    """Printed receipt for an order (append-only)."""
    __tablename__ = "receipts"

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    order_id = db.Column(db.String(64), nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "createdAt": to_utc_z(self.created_at),
        }


class Refund(db.Model):
    """Refund against an order (append-only)."""
    __tablename__ = "refunds"

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    order_id = db.Column(db.String(64), nullable=False, index=True)
    amount = db.Column(db.Float, nullable=False)
    reason = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "orderId": self.order_id,
            "amount": self.amount,
            "reason": self.reason,
            "createdAt": to_utc_z(self.created_at),
        }
