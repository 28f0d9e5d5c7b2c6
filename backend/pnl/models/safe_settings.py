from sqlalchemy import Integer, Date, DateTime, func, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from pnl.db.base import Base

SAFE_SETTINGS_ID = 1


class SafeSettings(Base):
    __tablename__ = "safe_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, default=SAFE_SETTINGS_ID)

    initial_balance: Mapped[float] = mapped_column(Numeric(14, 2))
    effective_date: Mapped[Date] = mapped_column(Date)

    updated_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(f"id = {SAFE_SETTINGS_ID}", name="ck_safe_settings_singleton"),
    )
