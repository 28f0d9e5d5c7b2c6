from pydantic import BaseModel
from datetime import date, datetime
from decimal import Decimal
from typing import Literal


class CategoryCreate(BaseModel):
    name: str
    type: Literal["INCOME", "EXPENSE"]


class CategoryOut(BaseModel):
    id: int
    name: str
    type: str

    class Config:
        from_attributes = True


class BusinessUnitCreate(BaseModel):
    name: str


class BusinessUnitOut(BaseModel):
    id: int
    name: str

    class Config:
        from_attributes = True


class LegalEntityCreate(BaseModel):
    name: str
    business_unit_id: int | None = None
    initial_balance: Decimal = Decimal("0")
    effective_date: date | None = None


class LegalEntityUpdate(BaseModel):
    name: str | None = None
    initial_balance: Decimal | None = None
    effective_date: date | None = None


class LegalEntityOut(BaseModel):
    id: int
    name: str
    business_unit_id: int | None
    initial_balance: Decimal
    effective_date: date
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class LegalEntityBalanceOut(LegalEntityOut):
    balance: Decimal


class BalanceOut(BaseModel):
    legal_entity_id: int
    balance: Decimal


class SafeSettingsIn(BaseModel):
    initial_balance: Decimal
    effective_date: date


class SafeSettingsOut(BaseModel):
    initial_balance: Decimal
    effective_date: date

    class Config:
        from_attributes = True


class SafeOut(BaseModel):
    settings: SafeSettingsOut | None = None
    safe_balance: Decimal
    total_safe_expenses: Decimal
