"""s1_settlement_core_schema

Revision ID: 3b8e1f0c7a21
Revises:
Create Date: 2026-10-19 09:00:00.000000
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3b8e1f0c7a21"
down_revision: str | None = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

MONEY = sa.Numeric(12, 2)


def _uuid(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, postgresql.UUID(as_uuid=True), **kwargs)


def _timestamp(name: str, *, nullable: bool = False, **kwargs) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable, **kwargs)


def upgrade() -> None:
    op.create_table(
        "users",
        _uuid("id", primary_key=True),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("role", sa.String(16), nullable=False, server_default=sa.text("'customer'")),
        sa.Column("balance", MONEY, nullable=False, server_default=sa.text("0")),
        sa.Column("cashback", MONEY, nullable=False, server_default=sa.text("0")),
        sa.Column("stripe_connect_account_id", sa.String(64), nullable=True),
        sa.Column("onboarding_complete", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("charges_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("payouts_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        _timestamp("created_at", server_default=sa.text("now()")),
        _timestamp("updated_at", nullable=True),
        sa.CheckConstraint("role IN ('customer','booster','admin')", name="ck_users_role"),
        sa.CheckConstraint("balance >= 0", name="ck_users_balance_non_negative"),
        sa.CheckConstraint("cashback >= 0", name="ck_users_cashback_non_negative"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("idx_users_role", "users", ["role"])

    op.create_table(
        "orders",
        _uuid("id", primary_key=True),
        _uuid("user_id", nullable=False),
        _uuid("booster_id", nullable=True),
        sa.Column("payment_intent_id", sa.String(128), nullable=True),
        sa.Column("payment_method", sa.String(16), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False, server_default=sa.text("'captured'")),
        sa.Column("balance_used", MONEY, nullable=False, server_default=sa.text("0")),
        sa.Column("game", sa.String(64), nullable=False),
        sa.Column("service_category", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("game_account", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("current_level", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("target_level", sa.String(64), nullable=False, server_default=sa.text("''")),
        sa.Column("estimated_time", sa.String(64), nullable=True),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default=sa.text("'usd'")),
        sa.Column("status", sa.String(16), nullable=False),
        sa.Column("coupon_code", sa.String(64), nullable=True),
        sa.Column("discount_amount", MONEY, nullable=False, server_default=sa.text("0")),
        sa.Column("addons", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
        _timestamp("claimed_at", nullable=True),
        _timestamp("customer_approved_at", nullable=True),
        _timestamp("customer_rejected_at", nullable=True),
        sa.CheckConstraint(
            "status IN ('pending','processing','awaiting_review','completed','refunded')",
            name="ck_orders_status",
        ),
        sa.CheckConstraint("payment_method IN ('card','balance','hybrid')", name="ck_orders_payment_method"),
        sa.CheckConstraint("amount >= 0", name="ck_orders_amount_non_negative"),
        sa.CheckConstraint("balance_used >= 0", name="ck_orders_balance_used_non_negative"),
        sa.CheckConstraint("balance_used <= amount", name="ck_orders_balance_used_le_amount"),
        sa.CheckConstraint("discount_amount >= 0", name="ck_orders_discount_non_negative"),
        sa.CheckConstraint(
            "(status = 'pending') = (booster_id IS NULL)",
            name="ck_orders_booster_only_after_pending",
        ),
        sa.CheckConstraint("booster_id IS NULL OR claimed_at IS NOT NULL", name="ck_orders_claimed_at_set"),
        sa.CheckConstraint(
            "rejection_reason IS NULL OR status = 'refunded'",
            name="ck_orders_rejection_reason_only_refunded",
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["booster_id"], ["users.id"]),
        sa.UniqueConstraint("payment_intent_id", name="uq_orders_payment_intent_id"),
    )
    op.create_index("idx_orders_user_created", "orders", ["user_id", "created_at"])
    op.create_index("idx_orders_booster_claimed", "orders", ["booster_id", "claimed_at"])
    op.create_index(
        "idx_orders_available",
        "orders",
        ["created_at"],
        postgresql_where=sa.text("status = 'pending' AND booster_id IS NULL"),
    )

    op.create_table(
        "payment_transactions",
        _uuid("id", primary_key=True),
        _uuid("order_id", nullable=False),
        _uuid("customer_id", nullable=False),
        _uuid("booster_id", nullable=False),
        sa.Column("total_amount", MONEY, nullable=False),
        sa.Column("platform_fee", MONEY, nullable=False),
        sa.Column("booster_amount", MONEY, nullable=False),
        sa.Column("processor_amount", MONEY, nullable=False),
        sa.Column("balance_amount", MONEY, nullable=False, server_default=sa.text("0")),
        sa.Column("currency", sa.String(3), nullable=False),
        sa.Column("payment_status", sa.String(16), nullable=False),
        sa.Column("stripe_payment_intent_id", sa.String(128), nullable=True),
        sa.Column("refund_id", sa.String(128), nullable=True),
        sa.Column("refund_status", sa.String(16), nullable=True),
        sa.Column("refund_attempts", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("refund_error", sa.Text(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at", nullable=True),
        _timestamp("transferred_at", nullable=True),
        _timestamp("refunded_at", nullable=True),
        sa.CheckConstraint(
            "payment_status IN ('captured','transferred','refunded')",
            name="ck_payment_transactions_status",
        ),
        sa.CheckConstraint(
            "refund_status IS NULL OR refund_status IN ('succeeded','failed','not_required')",
            name="ck_payment_transactions_refund_status",
        ),
        sa.CheckConstraint("total_amount >= 0", name="ck_payment_transactions_total_non_negative"),
        sa.CheckConstraint(
            "platform_fee + booster_amount = total_amount",
            name="ck_payment_transactions_split_sums_to_total",
        ),
        sa.CheckConstraint(
            "processor_amount + balance_amount = total_amount",
            name="ck_payment_transactions_funding_sums_to_total",
        ),
        sa.CheckConstraint(
            "NOT (transferred_at IS NOT NULL AND refunded_at IS NOT NULL)",
            name="ck_payment_transactions_single_settlement",
        ),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["booster_id"], ["users.id"]),
        sa.UniqueConstraint("order_id", name="uq_payment_transactions_order_id"),
    )
    op.create_index("idx_payment_transactions_booster", "payment_transactions", ["booster_id"])
    op.create_index(
        "idx_payment_transactions_refund_failed",
        "payment_transactions",
        ["refunded_at"],
        postgresql_where=sa.text("refund_status = 'failed'"),
    )

    op.create_table(
        "balance_transactions",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        _uuid("user_id", nullable=False),
        sa.Column("transaction_type", sa.String(16), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("balance_before", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("cashback_amount", MONEY, nullable=True),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("reference_id", sa.String(128), nullable=True),
        sa.Column("reference_type", sa.String(32), nullable=True),
        sa.Column("metadata", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
        _timestamp("created_at"),
        sa.CheckConstraint(
            "transaction_type IN ('deposit','withdrawal','payment','cashback','refund')",
            name="ck_balance_transactions_type",
        ),
        sa.CheckConstraint(
            "balance_after = balance_before + amount",
            name="ck_balance_transactions_running_balance",
        ),
        sa.CheckConstraint("balance_after >= 0", name="ck_balance_transactions_balance_non_negative"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
    )
    op.create_index(
        "idx_balance_transactions_user_created",
        "balance_transactions",
        ["user_id", "created_at", "id"],
    )
    op.create_index(
        "idx_balance_transactions_reference",
        "balance_transactions",
        ["reference_id", "reference_type"],
    )
    op.create_index(
        "uq_balance_transactions_deposit_reference",
        "balance_transactions",
        ["reference_id"],
        unique=True,
        postgresql_where=sa.text("transaction_type = 'deposit' AND reference_type = 'payment_intent'"),
    )
    op.create_index(
        "uq_balance_transactions_payment_intent_payment",
        "balance_transactions",
        ["reference_id"],
        unique=True,
        postgresql_where=sa.text("transaction_type = 'payment' AND reference_type = 'payment_intent'"),
    )

    op.create_table(
        "coupons",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("code", sa.String(64), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("discount_type", sa.String(16), nullable=False),
        sa.Column("discount_value", MONEY, nullable=False),
        sa.Column("max_discount", MONEY, nullable=True),
        sa.Column("min_amount", MONEY, nullable=True),
        _timestamp("valid_from"),
        _timestamp("valid_until"),
        sa.Column("usage_limit", sa.Integer(), nullable=True),
        sa.Column("usage_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        _timestamp("created_at", server_default=sa.text("now()")),
        sa.CheckConstraint("discount_type IN ('percentage','fixed')", name="ck_coupons_discount_type"),
        sa.CheckConstraint("discount_value > 0", name="ck_coupons_discount_value_positive"),
        sa.CheckConstraint(
            "discount_type <> 'percentage' OR discount_value <= 100",
            name="ck_coupons_percentage_le_100",
        ),
        sa.CheckConstraint("max_discount IS NULL OR max_discount > 0", name="ck_coupons_max_discount_positive"),
        sa.CheckConstraint("usage_limit IS NULL OR usage_limit > 0", name="ck_coupons_usage_limit_positive"),
        sa.CheckConstraint("usage_count >= 0", name="ck_coupons_usage_count_non_negative"),
        sa.CheckConstraint("valid_from < valid_until", name="ck_coupons_validity_window"),
        sa.UniqueConstraint("code", name="uq_coupons_code"),
    )
    op.create_index("idx_coupons_valid_until", "coupons", ["valid_until"])

    op.create_table(
        "coupon_usages",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("coupon_id", sa.BigInteger(), nullable=False),
        _uuid("user_id", nullable=False),
        _uuid("order_id", nullable=False),
        sa.Column("discount_amount", MONEY, nullable=False),
        sa.Column("original_amount", MONEY, nullable=False),
        sa.Column("final_amount", MONEY, nullable=False),
        _timestamp("created_at"),
        sa.ForeignKeyConstraint(["coupon_id"], ["coupons.id"]),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.UniqueConstraint("order_id", name="uq_coupon_usages_order_id"),
    )
    op.create_index("idx_coupon_usages_coupon", "coupon_usages", ["coupon_id"])
    op.create_index("idx_coupon_usages_user", "coupon_usages", ["user_id"])

    op.create_table(
        "chats",
        _uuid("id", primary_key=True),
        _uuid("order_id", nullable=True),
        _uuid("customer_id", nullable=False),
        _uuid("booster_id", nullable=False),
        sa.Column("status", sa.String(16), nullable=False),
        _timestamp("created_at"),
        _timestamp("updated_at"),
        sa.CheckConstraint("status IN ('active','closed')", name="ck_chats_status"),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.ForeignKeyConstraint(["customer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["booster_id"], ["users.id"]),
    )
    op.create_index("idx_chats_participants", "chats", ["customer_id", "booster_id", "status", "updated_at"])
    op.create_index("idx_chats_order", "chats", ["order_id"])

    op.create_table(
        "messages",
        _uuid("id", primary_key=True),
        _uuid("chat_id", nullable=False),
        _uuid("sender_id", nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("message_type", sa.String(16), nullable=False),
        _timestamp("created_at"),
        sa.CheckConstraint("message_type IN ('text','system')", name="ck_messages_type"),
        sa.ForeignKeyConstraint(["chat_id"], ["chats.id"]),
        sa.ForeignKeyConstraint(["sender_id"], ["users.id"]),
    )
    op.create_index("idx_messages_chat_created", "messages", ["chat_id", "created_at"])

    op.create_table(
        "reconciliation_runs",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("run_type", sa.String(32), nullable=False),
        _timestamp("started_at"),
        _timestamp("finished_at", nullable=True),
        sa.Column("status", sa.String(32), nullable=False),
        sa.Column("diff_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("summary", postgresql.JSONB(), nullable=False, server_default=sa.text("'{}'::jsonb")),
    )
    op.create_index("idx_reconciliation_runs_type_started", "reconciliation_runs", ["run_type", "started_at"])

    op.execute(
        """
        CREATE OR REPLACE FUNCTION fn_balance_transactions_append_only()
        RETURNS trigger
        LANGUAGE plpgsql
        AS $$
        BEGIN
            RAISE EXCEPTION 'balance_transactions is append-only';
        END;
        $$;
        """
    )
    op.execute(
        """
        CREATE TRIGGER trg_balance_transactions_append_only
        BEFORE UPDATE OR DELETE ON balance_transactions
        FOR EACH ROW
        EXECUTE FUNCTION fn_balance_transactions_append_only();
        """
    )


def downgrade() -> None:
    op.execute("DROP TRIGGER IF EXISTS trg_balance_transactions_append_only ON balance_transactions;")
    op.execute("DROP FUNCTION IF EXISTS fn_balance_transactions_append_only();")

    op.drop_index("idx_reconciliation_runs_type_started", table_name="reconciliation_runs")
    op.drop_table("reconciliation_runs")
    op.drop_index("idx_messages_chat_created", table_name="messages")
    op.drop_table("messages")
    op.drop_index("idx_chats_order", table_name="chats")
    op.drop_index("idx_chats_participants", table_name="chats")
    op.drop_table("chats")
    op.drop_index("idx_coupon_usages_user", table_name="coupon_usages")
    op.drop_index("idx_coupon_usages_coupon", table_name="coupon_usages")
    op.drop_table("coupon_usages")
    op.drop_index("idx_coupons_valid_until", table_name="coupons")
    op.drop_table("coupons")
    op.drop_index("uq_balance_transactions_payment_intent_payment", table_name="balance_transactions")
    op.drop_index("uq_balance_transactions_deposit_reference", table_name="balance_transactions")
    op.drop_index("idx_balance_transactions_reference", table_name="balance_transactions")
    op.drop_index("idx_balance_transactions_user_created", table_name="balance_transactions")
    op.drop_table("balance_transactions")
    op.drop_index("idx_payment_transactions_refund_failed", table_name="payment_transactions")
    op.drop_index("idx_payment_transactions_booster", table_name="payment_transactions")
    op.drop_table("payment_transactions")
    op.drop_index("idx_orders_available", table_name="orders")
    op.drop_index("idx_orders_booster_claimed", table_name="orders")
    op.drop_index("idx_orders_user_created", table_name="orders")
    op.drop_table("orders")
    op.drop_index("idx_users_role", table_name="users")
    op.drop_table("users")
