"""Initial sync schema: accounts, tokens, synchronized categories, deletions

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_initial"
down_revision = None
branch_labels = None
depends_on = None


def _account_fk():
    return sa.ForeignKeyConstraint(["account_id"], ["accounts.id"])


def _timestamps(updated: bool = True):
    cols = [sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False))
    return cols


def _index_account(table: str):
    with op.batch_alter_table(table, schema=None) as batch_op:
        batch_op.create_index(f"ix_{table}_account_id", ["account_id"], unique=False)


def upgrade():
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("username", sa.String(128), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("last_login_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("accounts", schema=None) as batch_op:
        batch_op.create_index("ix_accounts_username", ["username"], unique=True)

    op.create_table(
        "sync_tokens",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("token_hash", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_revoked", sa.Boolean(), nullable=False, server_default=sa.text("0")),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_reason", sa.String(255), nullable=True),
        sa.Column("user_agent", sa.String(255), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sync_tokens", schema=None) as batch_op:
        batch_op.create_index("ix_sync_tokens_account_id", ["account_id"], unique=False)
        batch_op.create_index("ix_sync_tokens_token_hash", ["token_hash"], unique=True)
        batch_op.create_index("ix_sync_tokens_account_revoked", ["account_id", "is_revoked"], unique=False)

    # Mutable categories
    op.create_table(
        "products",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("barcode", sa.String(128), nullable=True),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("cost", sa.Float(), nullable=True),
        sa.Column("stock", sa.Float(), nullable=False),
        sa.Column("low_stock_threshold", sa.Float(), nullable=True),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("products")
    with op.batch_alter_table("products", schema=None) as batch_op:
        batch_op.create_index("ix_products_barcode", ["barcode"], unique=False)

    op.create_table(
        "services",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("services")

    op.create_table(
        "customers",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("balance", sa.Float(), nullable=False),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("customers")
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_phone", ["phone"], unique=False)

    op.create_table(
        "discount_rules",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("scope", sa.String(16), nullable=False),
        sa.Column("threshold", sa.Float(), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("discount_rules")

    op.create_table(
        "coupons",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), nullable=True),
        sa.Column("scope", sa.String(16), nullable=False),
        sa.Column("threshold", sa.Float(), nullable=True),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("enabled", sa.Boolean(), nullable=False),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("used_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("coupons")

    op.create_table(
        "store_settings",
        sa.Column("id", sa.String(96), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("member_discount_rate", sa.Float(), nullable=False),
        sa.Column("payment_methods", sa.JSON(), nullable=False),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("account_id"),
    )

    op.create_table(
        "suppliers",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("contact", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("suppliers")

    op.create_table(
        "inventory_batches",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("supplier_id", sa.String(64), nullable=True),
        sa.Column("batch_no", sa.String(128), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("cost", sa.Float(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("stock_in_id", sa.String(64), nullable=True),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("inventory_batches")
    with op.batch_alter_table("inventory_batches", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_batches_product_id", ["product_id"], unique=False)

    # Records with child items
    op.create_table(
        "stock_in_records",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("supplier_id", sa.String(64), nullable=True),
        sa.Column("batch_no", sa.String(128), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("total_quantity", sa.Float(), nullable=False),
        sa.Column("total_cost", sa.Float(), nullable=True),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("stock_in_records")

    op.create_table(
        "stock_in_items",
        sa.Column("id", sa.String(96), nullable=False),
        sa.Column("stock_in_id", sa.String(64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("cost", sa.Float(), nullable=True),
        sa.ForeignKeyConstraint(["stock_in_id"], ["stock_in_records.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("stock_in_items", schema=None) as batch_op:
        batch_op.create_index("ix_stock_in_items_stock_in_id", ["stock_in_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("order_no", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=True),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total", sa.Float(), nullable=False),
        sa.Column("payment_method", sa.String(64), nullable=True),
        sa.Column("payment_amount", sa.Float(), nullable=True),
        sa.Column("discount_amount", sa.Float(), nullable=False),
        sa.Column("discount_type", sa.String(32), nullable=True),
        sa.Column("discount_name", sa.String(255), nullable=True),
        sa.Column("discount_rule_id", sa.String(64), nullable=True),
        sa.Column("discount_rate", sa.Float(), nullable=True),
        sa.Column("payable_total", sa.Float(), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        *_timestamps(),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("orders")
    with op.batch_alter_table("orders", schema=None) as batch_op:
        batch_op.create_index("ix_orders_order_no", ["order_no"], unique=False)
        batch_op.create_index(
            "ix_orders_account_discount",
            ["account_id", "discount_type", "discount_rule_id", "status"],
            unique=False,
        )

    op.create_table(
        "order_items",
        sa.Column("id", sa.String(96), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=True),
        sa.Column("service_id", sa.String(64), nullable=True),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("price", sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("order_items", schema=None) as batch_op:
        batch_op.create_index("ix_order_items_order_id", ["order_id"], unique=False)

    # Append-only categories
    op.create_table(
        "receipts",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        *_timestamps(updated=False),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("receipts")
    with op.batch_alter_table("receipts", schema=None) as batch_op:
        batch_op.create_index("ix_receipts_order_id", ["order_id"], unique=False)

    op.create_table(
        "stock_ledger",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("product_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("related_id", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("stock_ledger")
    with op.batch_alter_table("stock_ledger", schema=None) as batch_op:
        batch_op.create_index("ix_stock_ledger_account_product", ["account_id", "product_id"], unique=False)

    op.create_table(
        "customer_ledger",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("customer_id", sa.String(64), nullable=False),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("balance_after", sa.Float(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("related_id", sa.String(64), nullable=True),
        *_timestamps(updated=False),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("customer_ledger")
    with op.batch_alter_table("customer_ledger", schema=None) as batch_op:
        batch_op.create_index("ix_customer_ledger_account_customer", ["account_id", "customer_id"], unique=False)

    op.create_table(
        "refunds",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("order_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        *_timestamps(updated=False),
        _account_fk(),
        sa.PrimaryKeyConstraint("id"),
    )
    _index_account("refunds")
    with op.batch_alter_table("refunds", schema=None) as batch_op:
        batch_op.create_index("ix_refunds_order_id", ["order_id"], unique=False)

    # Tombstones
    op.create_table(
        "deletions",
        sa.Column("account_id", sa.String(64), nullable=False),
        sa.Column("id", sa.String(255), nullable=False),
        sa.Column("collection", sa.String(64), nullable=False),
        sa.Column("record_id", sa.String(128), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=False),
        _account_fk(),
        sa.PrimaryKeyConstraint("account_id", "id"),
        sa.UniqueConstraint("account_id", "collection", "record_id", name="uq_deletions_account_record"),
    )


def downgrade():
    for table in (
        "deletions",
        "refunds",
        "customer_ledger",
        "stock_ledger",
        "receipts",
        "order_items",
        "orders",
        "stock_in_items",
        "stock_in_records",
        "inventory_batches",
        "suppliers",
        "store_settings",
        "coupons",
        "discount_rules",
        "customers",
        "services",
        "products",
        "sync_tokens",
        "accounts",
    ):
        op.drop_table(table)
