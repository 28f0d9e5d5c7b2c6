from sqlalchemy import Integer, Boolean, Date, DateTime, func, ForeignKey, Numeric, String, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pnl.db.base import Base


class LoanPayment(Base):
    __tablename__ = "loan_payments"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    loan_id: Mapped[int] = mapped_column(ForeignKey("loans.id", ondelete="CASCADE"), index=True)

    amount: Mapped[float] = mapped_column(Numeric(14, 2))
    principal_part: Mapped[float | None] = mapped_column(Numeric(14, 2), nullable=True)
    interest_part: Mapped[float | None] = mapped_column(Numeric(14, 2), nullable=True)
    date: Mapped[Date] = mapped_column(Date, index=True)

    is_paid: Mapped[bool] = mapped_column(Boolean, default=False)
    paid_at: Mapped[DateTime | None] = mapped_column(DateTime, nullable=True)
    comment: Mapped[str | None] = mapped_column(String(512), nullable=True)

    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

    loan = relationship("Loan", back_populates="payments")


Index("ix_loan_payments_loan_paid", LoanPayment.loan_id, LoanPayment.is_paid)
