from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z


class DiscountRule(db.Model):
    """
    Spend-threshold discount ("full reduction": spend `threshold`, save `amount`).

    scope: all, product, service
    """
    __tablename__ = "discount_rules"

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    scope = db.Column(db.String(16), nullable=False, default="all")
    threshold = db.Column(db.Float, nullable=False)
    amount = db.Column(db.Float, nullable=False)
    start_at = db.Column(db.DateTime(timezone=True), nullable=True)
    end_at = db.Column(db.DateTime(timezone=True), nullable=True)
    enabled = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "scope": self.scope,
            "threshold": self.threshold,
            "amount": self.amount,
            "startAt": to_utc_z(self.start_at),
            "endAt": to_utc_z(self.end_at),
            "enabled": self.enabled,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }


class Coupon(db.Model):
    """
    Coupon redeemable against an order.

    used_count is a derived aggregate: it is recounted from confirmed
    orders after every push and never taken from the pushed payload.
    """
    __tablename__ = "coupons"

    id = db.Column(db.String(64), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    code = db.Column(db.String(64), nullable=True)
    scope = db.Column(db.String(16), nullable=False, default="all")
    threshold = db.Column(db.Float, nullable=True)
    amount = db.Column(db.Float, nullable=False)
    start_at = db.Column(db.DateTime(timezone=True), nullable=True)
    end_at = db.Column(db.DateTime(timezone=True), nullable=True)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    usage_limit = db.Column(db.Integer, nullable=True)
    used_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "code": self.code,
            "scope": self.scope,
            "threshold": self.threshold,
            "amount": self.amount,
            "startAt": to_utc_z(self.start_at),
            "endAt": to_utc_z(self.end_at),
            "enabled": self.enabled,
            "usageLimit": self.usage_limit,
            "usedCount": self.used_count,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
