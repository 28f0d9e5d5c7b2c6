from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Literal

ScheduleType = Literal["ANNUITY", "DIFFERENTIATED", "INTEREST_ONLY", "MANUAL"]


class LoanCreate(BaseModel):
    name: str
    loan_type: str = "CREDIT"
    creditor: str | None = None
    schedule_type: ScheduleType = "MANUAL"
    total_amount: Decimal = Field(gt=0)
    remaining_amount: Decimal | None = None
    monthly_payment: Decimal | None = None
    interest_rate: Decimal | None = Field(default=None, ge=0)
    total_months: int | None = Field(default=None, ge=1)
    payment_day: int = Field(default=1, ge=1, le=31)
    start_date: date
    end_date: date | None = None

    @field_validator("name")
    @classmethod
    def name_trim(cls, v: str):
        v = v.strip()
        if not v:
            raise ValueError("name is required")
        return v


class LoanUpdate(BaseModel):
    name: str | None = None
    loan_type: str | None = None
    creditor: str | None = None
    schedule_type: ScheduleType | None = None
    total_amount: Decimal | None = Field(default=None, gt=0)
    remaining_amount: Decimal | None = None
    monthly_payment: Decimal | None = None
    interest_rate: Decimal | None = Field(default=None, ge=0)
    total_months: int | None = Field(default=None, ge=1)
    payment_day: int | None = Field(default=None, ge=1, le=31)
    start_date: date | None = None
    end_date: date | None = None
    is_active: bool | None = None


class PaymentOut(BaseModel):
    id: int
    loan_id: int
    amount: Decimal
    principal_part: Decimal | None
    interest_part: Decimal | None
    date: date
    is_paid: bool
    paid_at: datetime | None
    comment: str | None

    class Config:
        from_attributes = True


class LoanOut(BaseModel):
    id: int
    name: str
    loan_type: str
    creditor: str | None
    schedule_type: ScheduleType
    total_amount: Decimal
    remaining_amount: Decimal
    monthly_payment: Decimal
    interest_rate: Decimal | None
    total_months: int | None
    payment_day: int
    start_date: date
    end_date: date | None
    is_active: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class LoanWithPaymentsOut(LoanOut):
    payments: list[PaymentOut] = []


class PortfolioSummaryOut(BaseModel):
    total_monthly: Decimal
    total_remaining: Decimal
    total_debt: Decimal
    active_count: int
    overdue_count: int
    overdue_amount: Decimal
    next_payment_date: date | None = None

    class Config:
        from_attributes = True


class LoanListOut(BaseModel):
    loans: list[LoanWithPaymentsOut]
    summary: PortfolioSummaryOut


class ScheduleOut(BaseModel):
    count: int
    payments: list[PaymentOut]
