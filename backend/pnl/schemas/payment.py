from pydantic import BaseModel, Field, field_validator
import datetime as dt
from decimal import Decimal


def _trim(v: str | None):
    if v is None:
        return None
    v = v.strip()
    return v or None


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    date: dt.date
    principal_part: Decimal | None = None
    interest_part: Decimal | None = None
    is_paid: bool = False
    comment: str | None = None

    @field_validator("comment")
    @classmethod
    def comment_trim(cls, v: str | None):
        return _trim(v)


class PaymentUpdate(BaseModel):
    amount: Decimal | None = Field(default=None, gt=0)
    principal_part: Decimal | None = None
    interest_part: Decimal | None = None
    date: dt.date | None = None
    is_paid: bool | None = None
    paid_at: dt.datetime | None = None
    comment: str | None = None

    @field_validator("comment")
    @classmethod
    def comment_trim(cls, v: str | None):
        return _trim(v)


class LedgerRecordCreate(BaseModel):
    category_id: int
    legal_entity_id: int | None = None
    business_unit_id: int | None = None
    description: str | None = None


class ReconcileOut(BaseModel):
    synced: int
    reverted: int
    linked: int = 0

    class Config:
        from_attributes = True
