"""distribution schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18 10:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("email", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=True),
        sa.Column("role", sa.String(), server_default="user", nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "distributors",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("status", sa.String(), server_default="pending", nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("contact_name", sa.String(), nullable=True),
        sa.Column("contact_phone", sa.String(), nullable=True),
        sa.Column("contact_email", sa.String(), nullable=True),
        sa.Column("bank_name", sa.String(), nullable=True),
        sa.Column("bank_account", sa.String(), nullable=True),
        sa.Column("bank_account_name", sa.String(), nullable=True),
        sa.Column("total_earnings", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("pending_commission", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("available_balance", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("withdrawn_amount", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("risk_level", sa.String(), server_default="low", nullable=False),
        sa.Column("is_frozen", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("frozen_reason", sa.String(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_bank_info_update", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_withdrawal_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_test_account", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("cooldown_override_days", sa.Integer(), nullable=True),
        sa.Column("applied_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_reason", sa.String(), nullable=True),
        sa.Column("suspended_reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_distributors_id", "distributors", ["id"])
    op.create_index("ix_distributors_code", "distributors", ["code"], unique=True)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(), server_default="pending", nullable=False),
        sa.Column("distributor_id", sa.Integer(), sa.ForeignKey("distributors.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_reason", sa.String(), nullable=True),
    )
    op.create_index("ix_orders_id", "orders", ["id"])
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_distributor_id", "orders", ["distributor_id"])

    op.create_table(
        "distribution_orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), sa.ForeignKey("orders.id"), nullable=False, unique=True),
        sa.Column("distributor_id", sa.Integer(), sa.ForeignKey("distributors.id"), nullable=False),
        sa.Column("order_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("settled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancel_reason", sa.Text(), nullable=True),
    )
    op.create_index("ix_distribution_orders_id", "distribution_orders", ["id"])
    op.create_index("ix_distribution_orders_distributor_id", "distribution_orders", ["distributor_id"])
    op.create_index("ix_distribution_orders_status", "distribution_orders", ["status"])
    op.create_index("ix_distribution_orders_confirmed_at", "distribution_orders", ["confirmed_at"])

    op.create_table(
        "commission_withdrawals",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("distributor_id", sa.Integer(), sa.ForeignKey("distributors.id"), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("actual_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("bank_name", sa.String(), nullable=False),
        sa.Column("bank_account", sa.String(), nullable=False),
        sa.Column("bank_account_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("risk_score", sa.Integer(), nullable=False),
        sa.Column("risk_check_result", sa.Text(), nullable=True),
        sa.Column("is_auto_approved", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("auto_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("processed_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("transaction_id", sa.String(), nullable=True),
        sa.Column("rejected_reason", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_commission_withdrawals_id", "commission_withdrawals", ["id"])
    op.create_index("ix_commission_withdrawals_distributor_id", "commission_withdrawals", ["distributor_id"])
    op.create_index("ix_commission_withdrawals_status", "commission_withdrawals", ["status"])
    op.create_index("ix_commission_withdrawals_created_at", "commission_withdrawals", ["created_at"])
    # At most one pending/processing withdrawal per distributor
    op.create_index(
        "uq_commission_withdrawals_one_active",
        "commission_withdrawals",
        ["distributor_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('pending', 'processing')"),
    )

    op.create_table(
        "security_alerts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("severity", sa.String(), nullable=False),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("resolved_by", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_security_alerts_id", "security_alerts", ["id"])
    op.create_index("ix_security_alerts_type", "security_alerts", ["type"])
    op.create_index("ix_security_alerts_status", "security_alerts", ["status"])

    op.create_table(
        "system_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("value", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column("category", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
    )
    op.create_index("ix_system_configs_id", "system_configs", ["id"])
    op.create_index("ix_system_configs_key", "system_configs", ["key"], unique=True)
    op.create_index("ix_system_configs_category", "system_configs", ["category"])


def downgrade() -> None:
    op.drop_table("system_configs")
    op.drop_table("security_alerts")
    op.drop_index("uq_commission_withdrawals_one_active", table_name="commission_withdrawals")
    op.drop_table("commission_withdrawals")
    op.drop_table("distribution_orders")
    op.drop_table("orders")
    op.drop_table("distributors")
    op.drop_table("users")
