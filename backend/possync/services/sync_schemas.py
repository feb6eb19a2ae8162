"""
Typed schemas for synchronized records.

Each category's wire payload (camelCase JSON) is normalized into column
values for its model. Anything malformed raises ValidationError; the
reconciler skips that one record and carries on with the batch.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable

from sqlalchemy import DateTime

from ..categories import (
    Category,
    SINGLETON,
    PRODUCTS,
    SERVICES,
    CUSTOMERS,
    SUPPLIERS,
    DISCOUNT_RULES,
    COUPONS,
    STORE_SETTINGS,
    INVENTORY_BATCHES,
    STOCK_IN_RECORDS,
    ORDERS,
    RECEIPTS,
    STOCK_LEDGER,
    CUSTOMER_LEDGER,
    REFUNDS,
)
from ..models import (
    Product,
    Service,
    Supplier,
    Customer,
    CustomerLedgerEntry,
    DiscountRule,
    Coupon,
    StoreSetting,
    InventoryBatch,
    StockInRecord,
    StockInItem,
    StockLedgerEntry,
    Order,
    OrderItem,
    Receipt,
    Refund,
)
from ..models.settings import DEFAULT_PAYMENT_METHODS
from ..validation import ModelValidationPolicy, ValidationError, validate_payload
from possync.time_utils import parse_iso_datetime, utcnow
from .identifier_service import child_item_id, derive_order_no


_CAMEL_RE = re.compile(r"(?<!^)(?=[A-Z])")

DISCOUNT_SCOPES = {"all", "product", "service"}


def camel_to_snake(name: str) -> str:
    return _CAMEL_RE.sub("_", name).lower()


@dataclass(frozen=True)
class ChildSchema:
    model: Any
    fields: tuple[str, ...]
    required: frozenset[str]
    id_prefix: str
    choices: dict[str, set[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class RecordSchema:
    category: Category
    model: Any
    fields: tuple[str, ...]
    required: frozenset[str] = frozenset()
    choices: dict[str, set[str]] = field(default_factory=dict)
    defaults: dict[str, Any] = field(default_factory=dict)
    child: ChildSchema | None = None
    prepare: Callable[[dict], dict] | None = None
    finalize: Callable[[dict], dict] | None = None

    @property
    def name(self) -> str:
        return self.category.name


@dataclass
class NormalizedRecord:
    """A validated record ready to be written."""
    id: str
    values: dict[str, Any]
    updated_at: datetime | None
    children: list[dict[str, Any]] = field(default_factory=list)


def _policy(fields: tuple[str, ...], required: frozenset[str], choices: dict[str, set[str]]) -> ModelValidationPolicy:
    return ModelValidationPolicy(
        writable_fields={camel_to_snake(f) for f in fields},
        required_on_create={camel_to_snake(f) for f in required},
        choices={camel_to_snake(k): v for k, v in choices.items()} or None,
    )


def _to_columns(raw: dict, fields: tuple[str, ...]) -> dict:
    return {camel_to_snake(f): raw[f] for f in fields if f in raw}


def incoming_timestamp(category: Category, raw: dict) -> datetime | None:
    """
    Conflict timestamp of a pushed record: the first parseable value along
    the category's fallback chain. None means "oldest possible".
    """
    for key in category.timestamp_fields:
        value = raw.get(key)
        if not value:
            continue
        try:
            parsed = parse_iso_datetime(str(value))
        except ValueError:
            continue
        if parsed is not None:
            return parsed
    return None


def _fill_absent_columns(model: Any, fields: tuple[str, ...], values: dict, fallback: datetime) -> None:
    """
    Make the upsert a whole-record overwrite: nullable fields absent from the
    payload become NULL, and required datetimes absent from it take `fallback`.
    """
    columns = {c.key: c for c in model.__mapper__.columns}
    for key in (camel_to_snake(f) for f in fields):
        col = columns[key]
        if key in values:
            continue
        if col.nullable:
            values[key] = None
        elif isinstance(col.type, DateTime):
            values[key] = fallback


def normalize_record(schema: RecordSchema, raw: Any) -> NormalizedRecord:
    if not isinstance(raw, dict):
        raise ValidationError(f"{schema.name}: record must be an object")

    record_id = raw.get("id")
    if schema.category.kind == SINGLETON:
        # Keyed by account; the server assigns the id
        record_id = str(record_id or "")
    elif not isinstance(record_id, str) or not record_id.strip():
        raise ValidationError(f"{schema.name}: record is missing an id")
    record_id = record_id.strip()

    if schema.prepare:
        raw = schema.prepare(dict(raw))

    values = validate_payload(
        model=schema.model,
        payload=_to_columns(raw, schema.fields),
        policy=_policy(schema.fields, schema.required, schema.choices),
        partial=False,
        ignore_unknown=True,
    )
    for key, default in schema.defaults.items():
        if values.get(key) is None:
            values[key] = default() if callable(default) else default

    updated_at = incoming_timestamp(schema.category, raw)
    # createdAt is fixed at creation, so it keeps derived values (order numbers) stable
    _fill_absent_columns(schema.model, schema.fields, values, values.get("created_at") or updated_at or utcnow())

    values["id"] = record_id
    if schema.finalize:
        values = schema.finalize(values)

    children: list[dict[str, Any]] = []
    if schema.child is not None:
        children = _normalize_children(schema.child, record_id, raw.get("items"))

    return NormalizedRecord(id=record_id, values=values, updated_at=updated_at, children=children)


def _normalize_children(child: ChildSchema, parent_id: str, raw_items: Any) -> list[dict[str, Any]]:
    if raw_items is None:
        return []
    if not isinstance(raw_items, list):
        raise ValidationError("items must be a list")

    policy = _policy(child.fields, child.required, child.choices)
    rows: list[dict[str, Any]] = []
    seen: set[str] = set()
    for index, item in enumerate(raw_items):
        if not isinstance(item, dict):
            raise ValidationError(f"item {index} must be an object")
        values = validate_payload(
            model=child.model,
            payload=_to_columns(item, child.fields),
            policy=policy,
            partial=False,
            ignore_unknown=True,
        )
        item_id = item.get("id")
        if not isinstance(item_id, str) or not item_id.strip():
            item_id = child_item_id(child.id_prefix, parent_id, index)
        if item_id in seen:
            raise ValidationError(f"duplicate item id {item_id}")
        seen.add(item_id)
        values["id"] = item_id
        values["position"] = index
        rows.append(values)
    return rows


# ---------------------------------------------------------------------------
# Category-specific hooks
# ---------------------------------------------------------------------------

def _finalize_order(values: dict) -> dict:
    discount_amount = values.get("discount_amount")
    if discount_amount is None:
        discount_amount = 0.0
        values["discount_amount"] = discount_amount
    if values.get("payable_total") is None:
        values["payable_total"] = max(0.0, values["total"] - discount_amount)
    if not values.get("order_no"):
        values["order_no"] = derive_order_no(values["id"], values.get("date"))
    return values


def _prepare_settings(raw: dict) -> dict:
    rate = raw.get("memberDiscountRate")
    if isinstance(rate, bool) or not isinstance(rate, (int, float)):
        raw["memberDiscountRate"] = 1
    methods = raw.get("paymentMethods")
    if not isinstance(methods, list) or not methods:
        raw["paymentMethods"] = list(DEFAULT_PAYMENT_METHODS)
    else:
        raw["paymentMethods"] = [str(m) for m in methods]
    return raw


STOCK_IN_ITEM_SCHEMA = ChildSchema(
    model=StockInItem,
    fields=("productId", "quantity", "cost"),
    required=frozenset({"productId", "quantity"}),
    id_prefix="SIITEM",
)

ORDER_ITEM_SCHEMA = ChildSchema(
    model=OrderItem,
    fields=("type", "productId", "serviceId", "name", "quantity", "price"),
    required=frozenset({"type", "quantity", "price"}),
    id_prefix="OI",
    choices={"type": {"product", "service"}},
)


SCHEMAS: dict[str, RecordSchema] = {
    s.name: s
    for s in (
        RecordSchema(
            category=PRODUCTS,
            model=Product,
            fields=("name", "barcode", "price", "cost", "stock", "lowStockThreshold", "createdAt"),
            required=frozenset({"name", "price"}),
            defaults={"stock": 0.0},
        ),
        RecordSchema(
            category=SERVICES,
            model=Service,
            fields=("name", "price", "durationMinutes", "note", "createdAt"),
            required=frozenset({"name", "price"}),
        ),
        RecordSchema(
            category=CUSTOMERS,
            model=Customer,
            fields=("name", "phone", "balance", "createdAt"),
            defaults={"balance": 0.0},
        ),
        RecordSchema(
            category=DISCOUNT_RULES,
            model=DiscountRule,
            fields=("name", "scope", "threshold", "amount", "startAt", "endAt", "enabled", "createdAt"),
            required=frozenset({"name", "threshold", "amount"}),
            choices={"scope": DISCOUNT_SCOPES},
            defaults={"scope": "all", "enabled": True},
        ),
        RecordSchema(
            category=COUPONS,
            model=Coupon,
            # usedCount is deliberately absent: it is recounted server-side
            fields=("name", "code", "scope", "threshold", "amount", "startAt", "endAt", "enabled", "usageLimit", "createdAt"),
            required=frozenset({"name", "amount"}),
            choices={"scope": DISCOUNT_SCOPES},
            defaults={"scope": "all", "enabled": True},
        ),
        RecordSchema(
            category=STORE_SETTINGS,
            model=StoreSetting,
            fields=("memberDiscountRate", "paymentMethods", "createdAt"),
            prepare=_prepare_settings,
        ),
        RecordSchema(
            category=SUPPLIERS,
            model=Supplier,
            fields=("name", "contact", "phone", "note", "createdAt"),
            required=frozenset({"name"}),
        ),
        RecordSchema(
            category=INVENTORY_BATCHES,
            model=InventoryBatch,
            fields=("productId", "supplierId", "batchNo", "quantity", "cost", "expiresAt", "receivedAt", "stockInId"),
            required=frozenset({"productId", "quantity"}),
        ),
        RecordSchema(
            category=STOCK_IN_RECORDS,
            model=StockInRecord,
            fields=("date", "note", "supplierId", "batchNo", "expiresAt", "status", "totalQuantity", "totalCost", "createdAt"),
            required=frozenset({"status", "totalQuantity"}),
            choices={"status": {"draft", "confirmed"}},
            child=STOCK_IN_ITEM_SCHEMA,
        ),
        RecordSchema(
            category=ORDERS,
            model=Order,
            fields=(
                "orderNo", "customerId", "date", "total", "paymentMethod", "paymentAmount",
                "discountAmount", "discountType", "discountName", "discountRuleId", "discountRate",
                "payableTotal", "paymentStatus", "status", "createdAt",
            ),
            required=frozenset({"total", "paymentStatus", "status"}),
            choices={
                "status": {"draft", "confirmed", "cancelled", "refunded"},
                "paymentStatus": {"unpaid", "paid", "refunded"},
                "discountType": {"member_rate", "full_reduction", "coupon"},
            },
            child=ORDER_ITEM_SCHEMA,
            finalize=_finalize_order,
        ),
        RecordSchema(
            category=RECEIPTS,
            model=Receipt,
            fields=("orderId", "createdAt"),
            required=frozenset({"orderId"}),
        ),
        RecordSchema(
            category=STOCK_LEDGER,
            model=StockLedgerEntry,
            fields=("productId", "type", "quantity", "date", "relatedId", "note"),
            required=frozenset({"productId", "type", "quantity"}),
            choices={"type": {"stock_in", "stock_out", "adjustment"}},
        ),
        RecordSchema(
            category=CUSTOMER_LEDGER,
            model=CustomerLedgerEntry,
            fields=("customerId", "type", "amount", "balanceAfter", "note", "relatedId", "createdAt"),
            required=frozenset({"customerId", "type", "amount", "balanceAfter"}),
            choices={"type": {"recharge", "consume", "adjust"}},
        ),
        RecordSchema(
            category=REFUNDS,
            model=Refund,
            fields=("orderId", "amount", "reason", "createdAt"),
            required=frozenset({"orderId", "amount"}),
        ),
    )
}


def get_schema(name: str) -> RecordSchema:
    return SCHEMAS[name]
