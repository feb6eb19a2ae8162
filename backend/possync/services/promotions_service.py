# Overview: Service-layer operations for discount rules and coupons.

"""
Coupon usage is a derived aggregate.

used_count is never taken from a pushed payload. After every push it is
recounted from the account's confirmed orders that applied the coupon, and
the stored value is overwritten. Tombstoned orders no longer count.
Whatever a device sends (or fails to send), the next push heals the count.
"""

from __future__ import annotations

from sqlalchemy import func, select

from ..categories import ORDERS
from ..extensions import db
from ..models import Coupon, Deletion, Order
from possync.time_utils import later_than


COUPON_DISCOUNT_TYPE = "coupon"
COUNTED_ORDER_STATUS = "confirmed"


def count_coupon_usage(account_id: str) -> dict[str, int]:
    """Confirmed, non-deleted coupon orders per coupon id for one account."""
    deleted_orders = select(Deletion.record_id).where(
        Deletion.account_id == account_id,
        Deletion.collection == ORDERS.name,
    )
    rows = (
        db.session.query(Order.discount_rule_id, func.count(Order.id))
        .filter(
            Order.account_id == account_id,
            Order.discount_type == COUPON_DISCOUNT_TYPE,
            Order.status == COUNTED_ORDER_STATUS,
            Order.discount_rule_id.isnot(None),
            Order.id.notin_(deleted_orders),
        )
        .group_by(Order.discount_rule_id)
        .all()
    )
    return {rule_id: count for rule_id, count in rows}


def recount_coupon_usage(account_id: str) -> int:
    """
    Overwrite used_count for every coupon of the account from confirmed orders.

    Coupons whose count changed get a fresh updated_at so clients pick the new
    value up on their next pull (a tie would keep their stale local copy).

    Returns the number of coupons whose count changed. Caller commits.
    """
    counts = count_coupon_usage(account_id)
    changed = 0
    for coupon in db.session.query(Coupon).filter_by(account_id=account_id).all():
        used = counts.get(coupon.id, 0)
        if coupon.used_count != used:
            coupon.used_count = used
            coupon.updated_at = later_than(coupon.updated_at)
            changed += 1
    db.session.flush()
    return changed
