from sqlalchemy import Integer, Boolean, Date, DateTime, func, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship
from pnl.db.base import Base

SCHEDULE_TYPES = ("ANNUITY", "DIFFERENTIATED", "INTEREST_ONLY", "MANUAL")


class Loan(Base):
    __tablename__ = "loans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)

    name: Mapped[str] = mapped_column(String(128))
    loan_type: Mapped[str] = mapped_column(String(32), default="CREDIT")
    creditor: Mapped[str | None] = mapped_column(String(128), nullable=True)

    schedule_type: Mapped[str] = mapped_column(String(16), default="MANUAL")
    total_amount: Mapped[float] = mapped_column(Numeric(14, 2))
    remaining_amount: Mapped[float] = mapped_column(Numeric(14, 2))
    monthly_payment: Mapped[float] = mapped_column(Numeric(14, 2), server_default="0")
    interest_rate: Mapped[float | None] = mapped_column(Numeric(8, 4), nullable=True)
    total_months: Mapped[int | None] = mapped_column(Integer, nullable=True)

    payment_day: Mapped[int] = mapped_column(Integer, default=1)
    start_date: Mapped[Date] = mapped_column(Date)
    end_date: Mapped[Date | None] = mapped_column(Date, nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

    payments = relationship(
        "LoanPayment",
        back_populates="loan",
        cascade="all, delete-orphan",
        order_by="LoanPayment.date",
    )
