from sqlalchemy import Integer, Boolean, Date, DateTime, func, ForeignKey, Numeric, String, Index
from sqlalchemy.orm import Mapped, mapped_column
from pnl.db.base import Base

RECORD_TYPES = ("INCOME", "EXPENSE")
RECORD_SOURCES = ("MANUAL", "LOAN", "PAYROLL", "IMPORT")


class FinanceRecord(Base):
    __tablename__ = "finance_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    type: Mapped[str] = mapped_column(String(16), index=True)
    amount: Mapped[float] = mapped_column(Numeric(14, 2))
    date: Mapped[Date] = mapped_column(Date, index=True)
    due_date: Mapped[Date | None] = mapped_column(Date, nullable=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=True)
    description: Mapped[str | None] = mapped_column(String(512), nullable=True)

    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True)
    legal_entity_id: Mapped[int | None] = mapped_column(
        ForeignKey("legal_entities.id", ondelete="SET NULL"), nullable=True, index=True
    )
    business_unit_id: Mapped[int | None] = mapped_column(
        ForeignKey("business_units.id", ondelete="SET NULL"), nullable=True, index=True
    )
    loan_id: Mapped[int | None] = mapped_column(ForeignKey("loans.id", ondelete="SET NULL"), nullable=True, index=True)
    loan_payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("loan_payments.id", ondelete="SET NULL"), nullable=True, unique=True
    )

    from_safe: Mapped[bool] = mapped_column(Boolean, default=False)
    paid_by_founder: Mapped[str | None] = mapped_column(String(64), nullable=True)
    source: Mapped[str] = mapped_column(String(16), default="MANUAL")

    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())


Index("ix_finance_records_loan_key", FinanceRecord.loan_id, FinanceRecord.amount, FinanceRecord.date)
