from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from pnl.core.errors import NotFoundError, ValidationError
from pnl.models.catalog import Category
from pnl.models.finance_record import FinanceRecord
from pnl.models.loan import Loan
from pnl.models.loan_payment import LoanPayment
from pnl.services.audit import log_event
from pnl.services.money import d2, money_str, to_dec
from pnl.services.sync import find_counterpart, propagate_payment, set_paid_state

UPDATABLE_FIELDS = ("amount", "principal_part", "interest_part", "date", "comment")


def _require_loan(s: Session, loan_id: int) -> Loan:
    loan = s.get(Loan, loan_id)
    if loan is None:
        raise NotFoundError("loan_not_found")
    return loan


def require_payment(s: Session, payment_id: int, loan_id: int | None = None) -> LoanPayment:
    q = select(LoanPayment).where(LoanPayment.id == payment_id)
    if loan_id is not None:
        q = q.where(LoanPayment.loan_id == loan_id)
    p = s.execute(q).scalar_one_or_none()
    if p is None:
        raise NotFoundError("payment_not_found")
    return p


def _payment_details(p: LoanPayment) -> dict:
    return {
        "loan_id": p.loan_id,
        "amount": money_str(p.amount),
        "date": str(p.date),
        "is_paid": bool(p.is_paid),
    }


def list_payments(s: Session, loan_id: int) -> list[LoanPayment]:
    _require_loan(s, loan_id)
    return (
        s.execute(
            select(LoanPayment)
            .where(LoanPayment.loan_id == loan_id)
            .order_by(LoanPayment.date.asc(), LoanPayment.id.asc())
        )
        .scalars()
        .all()
    )


def create_manual_payment(
    s: Session,
    loan_id: int,
    amount: Decimal,
    on: date,
    principal_part: Decimal | None = None,
    interest_part: Decimal | None = None,
    paid: bool = False,
    comment: str | None = None,
    username: str | None = None,
) -> LoanPayment:
    _require_loan(s, loan_id)
    amt = to_dec(amount)
    if amt <= 0:
        raise ValidationError("amount_must_be_positive")

    p = LoanPayment(
        loan_id=loan_id,
        amount=d2(amt),
        principal_part=d2(to_dec(principal_part)) if principal_part is not None else None,
        interest_part=d2(to_dec(interest_part)) if interest_part is not None else None,
        date=on,
        is_paid=False,
        comment=comment,
    )
    set_paid_state(p, bool(paid))
    s.add(p)
    s.commit()
    s.refresh(p)

    log_event(
        s,
        username=username,
        action="payment.create",
        entity_type="loan_payment",
        entity_id=p.id,
        details=_payment_details(p),
    )
    return p


def update_payment(
    s: Session,
    payment_id: int,
    fields: dict,
    loan_id: int | None = None,
    username: str | None = None,
) -> LoanPayment:
    """Apply ``fields`` to a payment; a changed paid flag is pushed to the ledger.

    ``fields`` may hold any of ``UPDATABLE_FIELDS`` plus ``is_paid`` and
    ``paid_at``. Keys that are absent are left alone.
    """
    p = require_payment(s, payment_id, loan_id)

    if "amount" in fields and fields["amount"] is not None and to_dec(fields["amount"]) <= 0:
        raise ValidationError("amount_must_be_positive")

    for k in UPDATABLE_FIELDS:
        if k not in fields:
            continue
        v = fields[k]
        if k in ("amount", "principal_part", "interest_part") and v is not None:
            v = d2(to_dec(v))
        if k in ("amount", "date") and v is None:
            continue
        setattr(p, k, v)

    paid_changed = False
    if fields.get("is_paid") is not None:
        paid_changed = set_paid_state(p, bool(fields["is_paid"]), fields.get("paid_at"))

    s.add(p)
    s.commit()
    s.refresh(p)

    if paid_changed:
        propagate_payment(s, p)

    details = _payment_details(p)
    details["fields"] = sorted(k for k in fields if k in UPDATABLE_FIELDS or k in ("is_paid", "paid_at"))
    log_event(
        s,
        username=username,
        action="payment.update",
        entity_type="loan_payment",
        entity_id=p.id,
        details=details,
    )
    return p


def delete_payment(s: Session, payment_id: int, loan_id: int | None = None, username: str | None = None) -> None:
    p = require_payment(s, payment_id, loan_id)
    details = _payment_details(p)

    s.execute(
        update(FinanceRecord)
        .where(FinanceRecord.loan_payment_id == payment_id)
        .values(loan_payment_id=None)
        .execution_options(synchronize_session=False)
    )
    s.delete(p)
    s.commit()

    log_event(
        s,
        username=username,
        action="payment.delete",
        entity_type="loan_payment",
        entity_id=payment_id,
        details=details,
    )


def create_ledger_record(
    s: Session,
    payment_id: int,
    category_id: int,
    legal_entity_id: int | None = None,
    business_unit_id: int | None = None,
    description: str | None = None,
    loan_id: int | None = None,
    username: str | None = None,
) -> FinanceRecord:
    """Create the EXPENSE ledger record for a payment, linked from the start."""
    p = require_payment(s, payment_id, loan_id)
    if s.get(Category, category_id) is None:
        raise NotFoundError("category_not_found")

    existing = find_counterpart(s, p)
    if existing is not None:
        s.commit()
        raise ValidationError("ledger_record_exists")

    loan = s.get(Loan, p.loan_id)
    rec = FinanceRecord(
        type="EXPENSE",
        amount=p.amount,
        date=p.date,
        due_date=p.date,
        is_paid=bool(p.is_paid),
        description=description or loan.name,
        category_id=category_id,
        legal_entity_id=legal_entity_id,
        business_unit_id=business_unit_id,
        loan_id=p.loan_id,
        loan_payment_id=p.id,
        source="LOAN",
    )
    s.add(rec)
    s.commit()
    s.refresh(rec)

    log_event(
        s,
        username=username,
        action="record.create",
        entity_type="finance_record",
        entity_id=rec.id,
        details={"loan_payment_id": p.id, "loan_id": p.loan_id, "amount": money_str(rec.amount), "date": str(rec.date)},
    )
    return rec


def overdue(payments: list[LoanPayment], today: date) -> list[LoanPayment]:
    return [p for p in payments if not p.is_paid and p.date < today]