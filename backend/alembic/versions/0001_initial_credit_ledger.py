"""Initial credit ledger schema: stores, users, customers, credit
transactions, activity logs and ledger audit alerts.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    op.create_table(
        "stores",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(50), nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_stores_code", "stores", ["code"], unique=True)

    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column(
            "role",
            sa.Enum("PLATFORM_ADMIN", "STORE_OWNER", "STORE_MANAGER", "STAFF", name="userrole"),
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("stores.id")),
        sa.Column("custom_permissions", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_store_id", "users", ["store_id"])

    op.create_table(
        "customers",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("email", sa.String(255)),
        # Credit position
        sa.Column("credit_limit", sa.Float(), nullable=False, server_default="0"),
        sa.Column("credit_balance", sa.Float(), nullable=False, server_default="0"),
        sa.Column("credit_status", sa.String(20), nullable=False, server_default="good"),
        sa.Column("notes", sa.Text()),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("credit_balance >= 0", name="ck_customers_credit_balance_non_negative"),
        sa.CheckConstraint("credit_limit >= 0", name="ck_customers_credit_limit_non_negative"),
    )
    op.create_index("ix_customers_store_id", "customers", ["store_id"])
    op.create_index("ix_customers_store_balance", "customers", ["store_id", "credit_balance"])

    op.create_table(
        "credit_transactions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("transaction_type", sa.String(30), nullable=False),
        # Amounts
        sa.Column("amount", sa.Float(), nullable=False),
        sa.Column("balance_change", sa.Float(), nullable=False),
        sa.Column("previous_balance", sa.Float(), nullable=False),
        sa.Column("new_balance", sa.Float(), nullable=False),
        # Originating document
        sa.Column("reference_type", sa.String(20), nullable=False),
        sa.Column("reference_id", sa.String(36), nullable=False),
        sa.Column("reference_number", sa.String(100)),
        sa.Column("details", sa.JSON()),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("notes", sa.Text()),
        sa.Column("processed_by", sa.String(36), sa.ForeignKey("users.id"), nullable=False),
        # Approval
        sa.Column("status", sa.String(20), server_default="completed"),
        sa.Column("approved_by", sa.String(36), sa.ForeignKey("users.id")),
        sa.Column("approval_date", sa.DateTime()),
        sa.Column("rejection_reason", sa.Text()),
        # Fiscal bucketing
        sa.Column("fiscal_year", sa.String(9), nullable=False),
        sa.Column("quarter", sa.String(2), nullable=False),
        sa.Column("month", sa.String(12), nullable=False),
        sa.Column("transaction_date", sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.CheckConstraint("amount >= 0", name="ck_credit_tx_amount_non_negative"),
        sa.CheckConstraint("previous_balance >= 0", name="ck_credit_tx_previous_non_negative"),
        sa.CheckConstraint("new_balance >= 0", name="ck_credit_tx_new_non_negative"),
    )
    op.create_index("ix_credit_transactions_store_id", "credit_transactions", ["store_id"])
    op.create_index("ix_credit_transactions_customer_id", "credit_transactions", ["customer_id"])
    op.create_index("ix_credit_transactions_status", "credit_transactions", ["status"])
    op.create_index(
        "ix_credit_tx_store_customer_date", "credit_transactions",
        ["store_id", "customer_id", "transaction_date"],
    )
    op.create_index(
        "ix_credit_tx_store_type_date", "credit_transactions",
        ["store_id", "transaction_type", "transaction_date"],
    )
    op.create_index("ix_credit_tx_reference", "credit_transactions", ["reference_type", "reference_id"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), nullable=False),
        sa.Column("user_name", sa.String(200), nullable=False),
        sa.Column("store_id", sa.String(36)),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36)),
        sa.Column("entity_code", sa.String(100)),
        sa.Column("summary", sa.Text()),
        sa.Column("details", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_activity_logs_user_id", "activity_logs", ["user_id"])
    op.create_index("ix_activity_logs_store_id", "activity_logs", ["store_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_entity_type", "activity_logs", ["entity_type"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])

    op.create_table(
        "ledger_audit_alerts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("store_id", sa.String(36), sa.ForeignKey("stores.id"), nullable=False),
        sa.Column("customer_id", sa.String(36), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("expected_balance", sa.Float(), nullable=False),
        sa.Column("actual_balance", sa.Float(), nullable=False),
        sa.Column("variance", sa.Float(), nullable=False),
        sa.Column("status", sa.String(20), server_default="open"),
        sa.Column("resolved_at", sa.DateTime()),
        sa.Column("run_id", sa.String(36), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_ledger_audit_alerts_store_id", "ledger_audit_alerts", ["store_id"])
    op.create_index("ix_ledger_audit_alerts_customer_id", "ledger_audit_alerts", ["customer_id"])
    op.create_index("ix_ledger_audit_alerts_status", "ledger_audit_alerts", ["status"])
    op.create_index("ix_ledger_audit_alerts_run_id", "ledger_audit_alerts", ["run_id"])


def downgrade() -> None:
    op.drop_table("ledger_audit_alerts")
    op.drop_table("activity_logs")
    op.drop_table("credit_transactions")
    op.drop_table("customers")
    op.drop_table("users")
    op.drop_table("stores")
    sa.Enum(name="userrole").drop(op.get_bind(), checkfirst=True)
