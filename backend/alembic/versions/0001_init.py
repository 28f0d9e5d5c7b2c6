"""loans, payments, ledger records, balances

Revision ID: 0001_init
Revises:
Create Date: 2026-02-02
"""

from alembic import op
import sqlalchemy as sa

revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "business_units",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
    )
    op.create_index("ix_business_units_name", "business_units", ["name"], unique=True)

    op.create_table(
        "categories",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
    )

    op.create_table(
        "legal_entities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("business_unit_id", sa.Integer(), sa.ForeignKey("business_units.id", ondelete="SET NULL"), nullable=True),
        sa.Column("initial_balance", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
    )
    op.create_index("ix_legal_entities_business_unit_id", "legal_entities", ["business_unit_id"])

    op.create_table(
        "safe_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("initial_balance", sa.Numeric(14, 2), nullable=False),
        sa.Column("effective_date", sa.Date(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.text("now()")),
        sa.CheckConstraint("id = 1", name="ck_safe_settings_singleton"),
    )

    op.create_table(
        "loans",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("loan_type", sa.String(length=32), nullable=False, server_default="CREDIT"),
        sa.Column("creditor", sa.String(length=128), nullable=True),
        sa.Column("schedule_type", sa.String(length=16), nullable=False, server_default="MANUAL"),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("remaining_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("monthly_payment", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("interest_rate", sa.Numeric(8, 4), nullable=True),
        sa.Column("total_months", sa.Integer(), nullable=True),
        sa.Column("payment_day", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
    )
    op.create_index("ix_loans_is_active", "loans", ["is_active"])

    op.create_table(
        "loan_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("loan_id", sa.Integer(), sa.ForeignKey("loans.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("principal_part", sa.Numeric(14, 2), nullable=True),
        sa.Column("interest_part", sa.Numeric(14, 2), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("comment", sa.String(length=512), nullable=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
    )
    op.create_index("ix_loan_payments_loan_id", "loan_payments", ["loan_id"])
    op.create_index("ix_loan_payments_date", "loan_payments", ["date"])
    op.create_index("ix_loan_payments_loan_paid", "loan_payments", ["loan_id", "is_paid"])

    op.create_table(
        "finance_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("type", sa.String(length=16), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=True),
        sa.Column("is_paid", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("description", sa.String(length=512), nullable=True),
        sa.Column("category_id", sa.Integer(), sa.ForeignKey("categories.id"), nullable=False),
        sa.Column("legal_entity_id", sa.Integer(), sa.ForeignKey("legal_entities.id", ondelete="SET NULL"), nullable=True),
        sa.Column("business_unit_id", sa.Integer(), sa.ForeignKey("business_units.id", ondelete="SET NULL"), nullable=True),
        sa.Column("loan_id", sa.Integer(), sa.ForeignKey("loans.id", ondelete="SET NULL"), nullable=True),
        sa.Column("from_safe", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("paid_by_founder", sa.String(length=64), nullable=True),
        sa.Column("source", sa.String(length=16), nullable=False, server_default="MANUAL"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()")),
    )
    op.create_index("ix_finance_records_type", "finance_records", ["type"])
    op.create_index("ix_finance_records_date", "finance_records", ["date"])
    op.create_index("ix_finance_records_category_id", "finance_records", ["category_id"])
    op.create_index("ix_finance_records_legal_entity_id", "finance_records", ["legal_entity_id"])
    op.create_index("ix_finance_records_business_unit_id", "finance_records", ["business_unit_id"])
    op.create_index("ix_finance_records_loan_id", "finance_records", ["loan_id"])
    op.create_index("ix_finance_records_loan_key", "finance_records", ["loan_id", "amount", "date"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("created_at", sa.DateTime(), server_default=sa.text("now()"), nullable=True),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("action", sa.String(length=64), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=True),
        sa.Column("details", sa.JSON(), nullable=True),
    )
    op.create_index("ix_audit_logs_created_at", "audit_logs", ["created_at"])
    op.create_index("ix_audit_logs_username", "audit_logs", ["username"])
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"])
    op.create_index("ix_audit_logs_entity_type", "audit_logs", ["entity_type"])
    op.create_index("ix_audit_logs_entity_id", "audit_logs", ["entity_id"])
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"])


def downgrade():
    op.drop_table("audit_logs")
    op.drop_table("finance_records")
    op.drop_table("loan_payments")
    op.drop_table("loans")
    op.drop_table("safe_settings")
    op.drop_table("legal_entities")
    op.drop_table("categories")
    op.drop_table("business_units")
