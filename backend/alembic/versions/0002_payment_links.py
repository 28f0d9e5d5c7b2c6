"""explicit ledger record -> loan payment link

Revision ID: 0002_payment_links
Revises: 0001_init
Create Date: 2026-03-09
"""

from alembic import op
import sqlalchemy as sa

revision = "0002_payment_links"
down_revision = "0001_init"
branch_labels = None
depends_on = None


def upgrade():
    op.add_column("finance_records", sa.Column("loan_payment_id", sa.Integer(), nullable=True))
    op.create_unique_constraint("uq_finance_records_loan_payment_id", "finance_records", ["loan_payment_id"])
    op.create_foreign_key(
        "fk_finance_records_loan_payment_id",
        "finance_records",
        "loan_payments",
        ["loan_payment_id"],
        ["id"],
        ondelete="SET NULL",
    )

    # One-time backfill from the old natural key (loan, amount, date). Each
    # payment takes the lowest-id unlinked record that matches it.
    op.execute(
        sa.text(
            """
            WITH candidates AS (
              SELECT DISTINCT ON (lp.id)
                lp.id AS payment_id,
                fr.id AS record_id
              FROM loan_payments lp
              JOIN finance_records fr
                ON fr.loan_id = lp.loan_id
               AND fr.amount = lp.amount
               AND fr.date = lp.date
              ORDER BY lp.id, fr.id
            ),
            unique_records AS (
              SELECT DISTINCT ON (record_id) record_id, payment_id
              FROM candidates
              ORDER BY record_id, payment_id
            )
            UPDATE finance_records fr
            SET loan_payment_id = u.payment_id
            FROM unique_records u
            WHERE fr.id = u.record_id
              AND fr.loan_payment_id IS NULL;
            """
        )
    )


def downgrade():
    op.drop_constraint("fk_finance_records_loan_payment_id", "finance_records", type_="foreignkey")
    op.drop_constraint("uq_finance_records_loan_payment_id", "finance_records", type_="unique")
    op.drop_column("finance_records", "loan_payment_id")
