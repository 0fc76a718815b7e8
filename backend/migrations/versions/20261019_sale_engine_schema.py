"""Sale engine schema: shops, inventory, customers, ledger, sales, payments

Revision ID: 20261019_sale_engine
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_sale_engine"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated_nullable=True):
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=updated_nullable),
    ]


def upgrade():
    op.create_table(
        "shops",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="USD"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("shops", schema=None) as batch_op:
        batch_op.create_index("ix_shops_is_active", ["is_active"], unique=False)

    op.create_table(
        "shop_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("invoice_prefix", sa.String(16), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_id", name="uq_shop_settings_shop"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("shop_settings", schema=None) as batch_op:
        batch_op.create_index("ix_shop_settings_shop_id", ["shop_id"], unique=False)

    op.create_table(
        "sale_number_sequences",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("sequence_date", sa.Date(), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_id", "sequence_date", name="uq_sale_number_seq_shop_date"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_number_sequences", schema=None) as batch_op:
        batch_op.create_index("ix_sale_number_sequences_shop_id", ["shop_id"], unique=False)

    op.create_table(
        "inventory_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("barcode", sa.String(64), nullable=True),
        sa.Column("weight_grams", sa.Numeric(10, 3), nullable=True),
        sa.Column("metal_type", sa.String(64), nullable=True),
        sa.Column("metal_purity", sa.String(64), nullable=True),
        sa.Column("status", sa.String(16), nullable=False, server_default="available"),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint(
            "status IN ('available','reserved','sold','workshop','transferred','damaged','returned')",
            name="ck_inventory_items_status",
        ),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("inventory_items", schema=None) as batch_op:
        batch_op.create_index("ix_inventory_items_shop_id", ["shop_id"], unique=False)
        batch_op.create_index("ix_inventory_items_barcode", ["barcode"], unique=False)
        batch_op.create_index("ix_inventory_items_shop_status", ["shop_id", "status"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("current_balance_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_purchases_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_payments_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("financial_status", sa.String(16), nullable=False, server_default="paid"),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"]),
        sa.PrimaryKeyConstraint("id"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customers", schema=None) as batch_op:
        batch_op.create_index("ix_customers_shop_id", ["shop_id"], unique=False)

    op.create_table(
        "customer_transactions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("sequence_number", sa.Integer(), nullable=False),
        sa.Column("transaction_type", sa.String(16), nullable=False),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("reference_id", sa.Integer(), nullable=True),
        sa.Column("debit_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("credit_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("balance_after_cents", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("customer_id", "sequence_number", name="uq_customer_txns_customer_seq"),
        sa.CheckConstraint("debit_cents >= 0 AND credit_cents >= 0", name="ck_customer_txns_non_negative"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("customer_transactions", schema=None) as batch_op:
        batch_op.create_index("ix_customer_transactions_shop_id", ["shop_id"], unique=False)
        batch_op.create_index("ix_customer_transactions_transaction_type", ["transaction_type"], unique=False)
        batch_op.create_index("ix_customer_txns_customer_created", ["customer_id", "created_at"], unique=False)

    op.create_table(
        "sales",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("sale_number", sa.String(64), nullable=False),
        sa.Column("sale_date", sa.Date(), nullable=False),
        sa.Column("sale_type", sa.String(16), nullable=False, server_default="sale"),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("subtotal_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("discount_type", sa.String(16), nullable=True),
        sa.Column("discount_value", sa.Integer(), nullable=True),
        sa.Column("discount_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("tax_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("total_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("paid_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default="unpaid"),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.Column("updated_by", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.Integer(), nullable=True),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shop_id", "sale_number", name="uq_sales_shop_sale_number"),
        sa.CheckConstraint("status IN ('pending','completed','returned')", name="ck_sales_status"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.create_index("ix_sales_shop_id", ["shop_id"], unique=False)
        batch_op.create_index("ix_sales_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sales_payment_status", ["payment_status"], unique=False)
        batch_op.create_index("ix_sales_status", ["status"], unique=False)
        batch_op.create_index("ix_sales_shop_status_created", ["shop_id", "status", "created_at"], unique=False)

    op.create_table(
        "sale_items",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("inventory_item_id", sa.Integer(), nullable=False),
        sa.Column("unit_price_cents", sa.Integer(), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("line_total_cents", sa.Integer(), nullable=False),
        sa.Column("item_name", sa.String(255), nullable=False),
        sa.Column("item_barcode", sa.String(64), nullable=True),
        sa.Column("weight_grams", sa.Numeric(10, 3), nullable=True),
        sa.Column("metal_type", sa.String(64), nullable=True),
        sa.Column("metal_purity", sa.String(64), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["inventory_item_id"], ["inventory_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("sale_id", "inventory_item_id", name="uq_sale_items_sale_item"),
        sa.CheckConstraint("quantity >= 1", name="ck_sale_items_quantity"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_items", schema=None) as batch_op:
        batch_op.create_index("ix_sale_items_shop_id", ["shop_id"], unique=False)
        batch_op.create_index("ix_sale_items_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_items_inventory_item_id", ["inventory_item_id"], unique=False)

    op.create_table(
        "sale_payments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("shop_id", sa.Integer(), nullable=False),
        sa.Column("sale_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("payment_method", sa.String(16), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("cash_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("card_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("transfer_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cheque_amount_cents", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("cheque_number", sa.String(50), nullable=True),
        sa.Column("cheque_date", sa.Date(), nullable=True),
        sa.Column("cheque_bank", sa.String(100), nullable=True),
        sa.Column("cheque_status", sa.String(16), nullable=True),
        sa.Column("cheque_cleared_date", sa.Date(), nullable=True),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("(CURRENT_TIMESTAMP)"), nullable=False),
        sa.ForeignKeyConstraint(["shop_id"], ["shops.id"]),
        sa.ForeignKeyConstraint(["sale_id"], ["sales.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("amount_cents > 0", name="ck_sale_payments_positive"),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table("sale_payments", schema=None) as batch_op:
        batch_op.create_index("ix_sale_payments_shop_id", ["shop_id"], unique=False)
        batch_op.create_index("ix_sale_payments_sale_id", ["sale_id"], unique=False)
        batch_op.create_index("ix_sale_payments_customer_id", ["customer_id"], unique=False)
        batch_op.create_index("ix_sale_payments_payment_method", ["payment_method"], unique=False)
        batch_op.create_index("ix_sale_payments_sale_created", ["sale_id", "created_at"], unique=False)


def downgrade():
    for table in (
        "sale_payments",
        "sale_items",
        "sales",
        "customer_transactions",
        "customers",
        "inventory_items",
        "sale_number_sequences",
        "shop_settings",
        "shops",
    ):
        op.drop_table(table)
