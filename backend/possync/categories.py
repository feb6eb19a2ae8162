"""
Synchronized entity categories.

Single source of truth for the category names used on the wire, how each
category resolves conflicts, and the order the server applies them in.
Kept free of Flask/SQLAlchemy imports so the client package can use it.

KINDS:
- MUTABLE: last-write-wins on the timestamp chain, tombstones honoured
- APPEND_ONLY: immutable once known; first-seen version wins
- SINGLETON: one record per account (store settings), last-write-wins
"""

from __future__ import annotations

from dataclasses import dataclass


MUTABLE = "MUTABLE"
APPEND_ONLY = "APPEND_ONLY"
SINGLETON = "SINGLETON"


@dataclass(frozen=True)
class Category:
    name: str
    kind: str
    timestamp_fields: tuple[str, ...] = ()
    id_prefix: str = ""
    has_children: bool = False

    @property
    def is_mutable(self) -> bool:
        return self.kind == MUTABLE

    @property
    def is_append_only(self) -> bool:
        return self.kind == APPEND_ONLY

    @property
    def honours_tombstones(self) -> bool:
        return self.kind == MUTABLE


PRODUCTS = Category("products", MUTABLE, ("updatedAt", "createdAt"), "PROD")
SERVICES = Category("services", MUTABLE, ("updatedAt", "createdAt"), "SERV")
CUSTOMERS = Category("customers", MUTABLE, ("updatedAt", "createdAt"), "CUST")
DISCOUNT_RULES = Category("discountRules", MUTABLE, ("updatedAt", "createdAt"), "DR")
COUPONS = Category("coupons", MUTABLE, ("updatedAt", "createdAt"), "CPN")
STORE_SETTINGS = Category("storeSettings", SINGLETON, ("updatedAt", "createdAt"), "SETTINGS")
SUPPLIERS = Category("suppliers", MUTABLE, ("updatedAt", "createdAt"), "SUP")
INVENTORY_BATCHES = Category("inventoryBatches", APPEND_ONLY, (), "BATCH")
STOCK_IN_RECORDS = Category("stockInRecords", MUTABLE, ("updatedAt", "date"), "SI", has_children=True)
ORDERS = Category("orders", MUTABLE, ("updatedAt", "date"), "ORD", has_children=True)
RECEIPTS = Category("receipts", APPEND_ONLY, (), "RCPT")
STOCK_LEDGER = Category("stockLedger", APPEND_ONLY, (), "SL")
CUSTOMER_LEDGER = Category("customerLedger", APPEND_ONLY, (), "CL")
REFUNDS = Category("refunds", APPEND_ONLY, (), "RF")

# Server apply order. Orders must be durable before coupon usage is recounted.
RECONCILE_ORDER: tuple[Category, ...] = (
    PRODUCTS,
    SERVICES,
    CUSTOMERS,
    DISCOUNT_RULES,
    COUPONS,
    STORE_SETTINGS,
    SUPPLIERS,
    INVENTORY_BATCHES,
    STOCK_IN_RECORDS,
    ORDERS,
    RECEIPTS,
    STOCK_LEDGER,
    CUSTOMER_LEDGER,
    REFUNDS,
)

CATEGORIES: dict[str, Category] = {c.name: c for c in RECONCILE_ORDER}

# Collections (every category except the singleton)
COLLECTIONS: tuple[Category, ...] = tuple(c for c in RECONCILE_ORDER if c.kind != SINGLETON)

TOMBSTONE_CATEGORIES: tuple[Category, ...] = tuple(c for c in RECONCILE_ORDER if c.honours_tombstones)


def get_category(name: str) -> Category | None:
    return CATEGORIES.get(name)
