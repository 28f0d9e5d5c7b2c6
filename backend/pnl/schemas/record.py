from pydantic import BaseModel, Field
import datetime as dt
from decimal import Decimal
from typing import Literal

RecordType = Literal["INCOME", "EXPENSE"]
RecordSource = Literal["MANUAL", "LOAN", "PAYROLL", "IMPORT"]


class RecordCreate(BaseModel):
    type: RecordType
    amount: Decimal = Field(gt=0)
    date: dt.date
    due_date: dt.date | None = None
    is_paid: bool = True
    description: str | None = None
    category_id: int
    legal_entity_id: int | None = None
    business_unit_id: int | None = None
    loan_id: int | None = None
    from_safe: bool = False
    paid_by_founder: str | None = None
    source: RecordSource = "MANUAL"


class RecordUpdate(BaseModel):
    type: RecordType | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    due_date: dt.date | None = None
    date: dt.date | None = None
    is_paid: bool | None = None
    description: str | None = None
    category_id: int | None = None
    legal_entity_id: int | None = None
    business_unit_id: int | None = None
    from_safe: bool | None = None
    paid_by_founder: str | None = None


class RecordOut(BaseModel):
    id: int
    type: RecordType
    amount: Decimal
    date: dt.date
    due_date: dt.date | None
    is_paid: bool
    description: str | None
    category_id: int
    legal_entity_id: int | None
    business_unit_id: int | None
    loan_id: int | None
    loan_payment_id: int | None
    from_safe: bool
    paid_by_founder: str | None
    source: RecordSource
    created_at: dt.datetime | None = None

    class Config:
        from_attributes = True
