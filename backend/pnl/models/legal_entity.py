from sqlalchemy import Integer, Date, DateTime, func, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column
from pnl.db.base import Base


class LegalEntity(Base):
    __tablename__ = "legal_entities"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128))
    business_unit_id: Mapped[int | None] = mapped_column(
        ForeignKey("business_units.id", ondelete="SET NULL"), nullable=True, index=True
    )

    initial_balance: Mapped[float] = mapped_column(Numeric(14, 2), server_default="0")
    effective_date: Mapped[Date] = mapped_column(Date)

    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())
