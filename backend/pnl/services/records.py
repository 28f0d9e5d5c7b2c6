from __future__ import annotations

from datetime import date

from sqlalchemy import select
from sqlalchemy.orm import Session

from pnl.core.errors import NotFoundError, ValidationError
from pnl.models.catalog import Category
from pnl.models.finance_record import FinanceRecord, RECORD_SOURCES, RECORD_TYPES
from pnl.models.legal_entity import LegalEntity
from pnl.models.loan import Loan
from pnl.services.audit import log_event
from pnl.services.money import d2, money_str, to_dec
from pnl.services.sync import propagate_record

EDITABLE_FIELDS = (
    "type",
    "amount",
    "date",
    "due_date",
    "is_paid",
    "description",
    "category_id",
    "legal_entity_id",
    "business_unit_id",
    "from_safe",
    "paid_by_founder",
)


def _record_details(r: FinanceRecord) -> dict:
    return {
        "type": r.type,
        "amount": money_str(r.amount),
        "date": str(r.date),
        "is_paid": bool(r.is_paid),
        "loan_id": r.loan_id,
        "loan_payment_id": r.loan_payment_id,
    }


def _check_refs(s: Session, values: dict) -> None:
    if values.get("type") is not None and values["type"] not in RECORD_TYPES:
        raise ValidationError("record_type_invalid")
    if values.get("source") is not None and values["source"] not in RECORD_SOURCES:
        raise ValidationError("record_source_invalid")
    if values.get("amount") is not None and to_dec(values["amount"]) <= 0:
        raise ValidationError("amount_must_be_positive")
    if values.get("category_id") is not None and s.get(Category, values["category_id"]) is None:
        raise NotFoundError("category_not_found")
    if values.get("legal_entity_id") is not None and s.get(LegalEntity, values["legal_entity_id"]) is None:
        raise NotFoundError("legal_entity_not_found")
    if values.get("loan_id") is not None and s.get(Loan, values["loan_id"]) is None:
        raise NotFoundError("loan_not_found")


def require_record(s: Session, record_id: int) -> FinanceRecord:
    r = s.get(FinanceRecord, record_id)
    if r is None:
        raise NotFoundError("record_not_found")
    return r


def list_records(
    s: Session,
    start: date | None = None,
    end: date | None = None,
    type: str | None = None,
    category_id: int | None = None,
    business_unit_id: int | None = None,
    legal_entity_id: int | None = None,
    loan_id: int | None = None,
    paid_by_founder: str | None = None,
    is_paid: bool | None = None,
) -> list[FinanceRecord]:
    q = select(FinanceRecord)
    if start is not None:
        q = q.where(FinanceRecord.date >= start)
    if end is not None:
        q = q.where(FinanceRecord.date <= end)
    if type:
        q = q.where(FinanceRecord.type == type)
    if category_id is not None:
        q = q.where(FinanceRecord.category_id == category_id)
    if business_unit_id is not None:
        q = q.where(FinanceRecord.business_unit_id == business_unit_id)
    if legal_entity_id is not None:
        q = q.where(FinanceRecord.legal_entity_id == legal_entity_id)
    if loan_id is not None:
        q = q.where(FinanceRecord.loan_id == loan_id)
    if paid_by_founder:
        q = q.where(FinanceRecord.paid_by_founder == paid_by_founder)
    if is_paid is not None:
        q = q.where(FinanceRecord.is_paid.is_(is_paid))
    q = q.order_by(FinanceRecord.date.desc(), FinanceRecord.id.desc())
    return s.execute(q).scalars().all()


def create_record(s: Session, values: dict, username: str | None = None) -> FinanceRecord:
    for k in ("type", "amount", "date", "category_id"):
        if values.get(k) is None:
            raise ValidationError(f"{k}_required")
    _check_refs(s, values)

    kind = values["type"]
    r = FinanceRecord(
        type=kind,
        amount=d2(to_dec(values["amount"])),
        date=values["date"],
        due_date=values.get("due_date"),
        is_paid=values.get("is_paid") is not False,
        description=values.get("description"),
        category_id=values["category_id"],
        legal_entity_id=values.get("legal_entity_id"),
        business_unit_id=values.get("business_unit_id"),
        loan_id=values.get("loan_id"),
        # only expenses can come out of the safe
        from_safe=kind == "EXPENSE" and values.get("from_safe") is True,
        paid_by_founder=values.get("paid_by_founder"),
        source=values.get("source") or "MANUAL",
    )
    s.add(r)
    s.commit()
    s.refresh(r)

    log_event(s, username=username, action="record.create", entity_type="finance_record", entity_id=r.id, details=_record_details(r))
    return r


def update_record(s: Session, record_id: int, values: dict, username: str | None = None) -> FinanceRecord:
    """Edit a ledger record. A changed paid flag on a linked record is pushed to its payment."""
    r = require_record(s, record_id)
    _check_refs(s, values)

    was_paid = bool(r.is_paid)
    for k in EDITABLE_FIELDS:
        if k not in values:
            continue
        v = values[k]
        if k in ("type", "amount", "date", "category_id", "is_paid", "from_safe") and v is None:
            continue
        if k == "amount":
            v = d2(to_dec(v))
        setattr(r, k, v)
    if r.type != "EXPENSE":
        r.from_safe = False

    s.add(r)
    s.commit()
    s.refresh(r)

    if bool(r.is_paid) != was_paid:
        propagate_record(s, r)

    log_event(s, username=username, action="record.update", entity_type="finance_record", entity_id=r.id, details=_record_details(r))
    return r


def delete_record(s: Session, record_id: int, username: str | None = None) -> None:
    r = require_record(s, record_id)
    details = _record_details(r)
    s.delete(r)
    s.commit()
    log_event(s, username=username, action="record.delete", entity_type="finance_record", entity_id=record_id, details=details)
