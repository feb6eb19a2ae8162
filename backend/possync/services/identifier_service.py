# Overview: Service-layer operations for identifiers; deterministic ids and document numbers.

"""
Identifier Service

WHY deterministic: the same logical record can arrive in many pushes (every
push is a full snapshot). Anything the server synthesizes for it must come
out identical every time, otherwise repeated pushes would churn the record.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from possync.time_utils import utcnow


ORDER_NO_PREFIX = "SO"
ORDER_NO_SUFFIX_LENGTH = 6


def new_id(prefix: str | None = None) -> str:
    """Random record id, optionally prefixed (e.g. PROD-<uuid4>)."""
    value = str(uuid.uuid4())
    return f"{prefix}-{value}" if prefix else value


def derive_order_no(order_id: str, order_date: datetime | None) -> str:
    """
    Derive an order number for an order pushed without one.

    Format: SO + YYYYMMDDHHmm (UTC, from the order date) + last 6 characters
    of the order id upper-cased. Only the date and id feed the result, so a
    re-pushed order always derives the same number.
    """
    when = order_date or utcnow()
    suffix = str(order_id)[-ORDER_NO_SUFFIX_LENGTH:].upper()
    return f"{ORDER_NO_PREFIX}{when.strftime('%Y%m%d%H%M')}{suffix}"


def child_item_id(prefix: str, parent_id: str, index: int) -> str:
    """Fallback id for a line item pushed without one (stable per position)."""
    return f"{prefix}-{parent_id}-{index}"
