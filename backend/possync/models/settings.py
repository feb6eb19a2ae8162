from __future__ import annotations

from ..extensions import db
from possync.time_utils import to_utc_z


DEFAULT_PAYMENT_METHODS = ["余额", "现金", "微信", "支付宝", "银行卡"]


def settings_id_for(account_id: str) -> str:
    return f"SETTINGS-{account_id}"


class StoreSetting(db.Model):
    """
    Per-account store settings (singleton: one row per account).

    member_discount_rate: multiplier applied to member orders (0.9 = 10% off).
    """
    __tablename__ = "store_settings"

    id = db.Column(db.String(96), primary_key=True)
    account_id = db.Column(db.String(64), db.ForeignKey("accounts.id"), nullable=False, unique=True)

    member_discount_rate = db.Column(db.Float, nullable=False, default=1)
    payment_methods = db.Column(db.JSON, nullable=False, default=lambda: list(DEFAULT_PAYMENT_METHODS))

    created_at = db.Column(db.DateTime(timezone=True), nullable=False)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "memberDiscountRate": self.member_discount_rate,
            "paymentMethods": list(self.payment_methods or []),
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
