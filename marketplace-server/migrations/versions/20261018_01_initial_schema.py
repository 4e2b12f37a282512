"""initial marketplace payment schema

Revision ID: 20261018_01
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261018_01"
down_revision = None
branch_labels = None
depends_on = None

MONEY = sa.Numeric(14, 2)


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("username", sa.String(length=50), nullable=False, unique=True),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="client"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("email", sa.String(length=100), unique=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.Column("last_login_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_accounts_username", "accounts", ["username"])

    op.create_table(
        "services",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("freelance_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text()),
        sa.Column("price", MONEY, nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="XOF"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_services_freelance_id", "services", ["freelance_id"])

    op.create_table(
        "orders",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_number", sa.String(length=32), nullable=False, unique=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("freelance_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("service_id", sa.String(length=36), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("price", MONEY, nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="XOF"),
        sa.Column("status", sa.String(length=30), nullable=False, server_default="pending"),
        sa.Column("requirements", sa.Text()),
        sa.Column("cancellation_reason", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
        sa.Column("delivered_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_orders_client_id", "orders", ["client_id"])
    op.create_index("ix_orders_freelance_id", "orders", ["freelance_id"])
    op.create_index("ix_orders_service_id", "orders", ["service_id"])

    op.create_table(
        "wallets",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False, unique=True),
        sa.Column("balance", MONEY, nullable=False, server_default="0"),
        sa.Column("pending_balance", MONEY, nullable=False, server_default="0"),
        sa.Column("total_earnings", MONEY, nullable=False, server_default="0"),
        sa.Column("total_withdrawals", MONEY, nullable=False, server_default="0"),
        sa.Column("min_withdrawal_amount", MONEY, nullable=False),
        sa.Column("withdrawal_fee_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="XOF"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("wallet_id", sa.String(length=36), sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id")),
        sa.Column("service_id", sa.String(length=36), sa.ForeignKey("services.id")),
        sa.Column("client_id", sa.String(length=36)),
        sa.Column("freelance_id", sa.String(length=36)),
        sa.Column("reference_id", sa.String(length=100)),
        sa.Column("description", sa.String(length=255)),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="XOF"),
        sa.Column("held_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_transactions_wallet_id", "transactions", ["wallet_id"])
    op.create_index("ix_transactions_order_id", "transactions", ["order_id"])
    op.create_index("ix_transactions_reference_id", "transactions", ["reference_id"])

    op.create_table(
        "withdrawal_requests",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("wallet_id", sa.String(length=36), sa.ForeignKey("wallets.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("fee_amount", MONEY, nullable=False),
        sa.Column("net_amount", MONEY, nullable=False),
        sa.Column("payment_method", sa.String(length=50), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("processed_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_withdrawal_requests_user_id", "withdrawal_requests", ["user_id"])

    op.create_table(
        "payment_intents",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("provider", sa.String(length=20), nullable=False),
        sa.Column("provider_id", sa.String(length=100), nullable=False, unique=True),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("freelance_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("service_id", sa.String(length=36), sa.ForeignKey("services.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False, server_default="XOF"),
        sa.Column("provider_amount", MONEY, nullable=False),
        sa.Column("provider_currency", sa.String(length=10), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="created"),
        sa.Column("idempotency_key", sa.String(length=100)),
        sa.Column("client_secret", sa.String(length=255)),
        sa.Column("capture_id", sa.String(length=100)),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id")),
        sa.Column("transaction_id", sa.String(length=36)),
        sa.Column("meta", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("captured_at", sa.DateTime(timezone=True)),
        sa.UniqueConstraint("client_id", "idempotency_key", name="uq_payment_intents_client_key"),
    )
    op.create_index("ix_payment_intents_client_id", "payment_intents", ["client_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("freelance_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="paid"),
        sa.Column("payment_method", sa.String(length=20), nullable=False),
        sa.Column("payment_intent_id", sa.String(length=100)),
        sa.Column("capture_id", sa.String(length=100)),
        sa.Column("details", sa.Text()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_payments_order_id", "payments", ["order_id"])

    op.create_table(
        "disputes",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("order_id", sa.String(length=36), sa.ForeignKey("orders.id"), nullable=False),
        sa.Column("client_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("freelance_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("reason", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="open"),
        sa.Column("resolution", sa.Text()),
        sa.Column("resolved_by", sa.String(length=36)),
        sa.Column("resolved_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_disputes_order_id", "disputes", ["order_id"])
    op.create_index("ix_disputes_client_id", "disputes", ["client_id"])
    op.create_index("ix_disputes_freelance_id", "disputes", ["freelance_id"])

    op.create_table(
        "dispute_messages",
        sa.Column("id", sa.String(length=36), primary_key=True),
        sa.Column("dispute_id", sa.String(length=36), sa.ForeignKey("disputes.id"), nullable=False),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("attachment_url", sa.String(length=500)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_dispute_messages_dispute_id", "dispute_messages", ["dispute_id"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(length=36), sa.ForeignKey("accounts.id"), nullable=False),
        sa.Column("type", sa.String(length=50), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("link", sa.String(length=255)),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("type", sa.String(length=60), nullable=False),
        sa.Column("user_id", sa.String(length=36)),
        sa.Column("severity", sa.String(length=20), nullable=False, server_default="info"),
        sa.Column("ip_address", sa.String(length=64)),
        sa.Column("user_agent", sa.String(length=255)),
        sa.Column("details", sa.Text()),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("dispatched_at", sa.DateTime(timezone=True)),
    )
    op.create_index("ix_audit_events_type", "audit_events", ["type"])

    op.create_table(
        "system_settings",
        sa.Column("key", sa.String(length=100), primary_key=True),
        sa.Column("value", sa.String(length=255), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    for table in (
        "system_settings",
        "audit_events",
        "notifications",
        "dispute_messages",
        "disputes",
        "payments",
        "payment_intents",
        "withdrawal_requests",
        "transactions",
        "wallets",
        "orders",
        "services",
        "accounts",
    ):
        op.drop_table(table)
