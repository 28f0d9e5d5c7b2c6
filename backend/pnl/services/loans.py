from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session, selectinload

from pnl.core.errors import NotFoundError, ValidationError
from pnl.models.finance_record import FinanceRecord
from pnl.models.loan import Loan, SCHEDULE_TYPES
from pnl.services.audit import log_event
from pnl.services.money import ZERO, d2, money_str, to_dec
from pnl.services.payments import overdue

EDITABLE_FIELDS = (
    "name",
    "loan_type",
    "creditor",
    "schedule_type",
    "total_amount",
    "remaining_amount",
    "monthly_payment",
    "interest_rate",
    "total_months",
    "payment_day",
    "start_date",
    "end_date",
    "is_active",
)
MONEY_FIELDS = ("total_amount", "remaining_amount", "monthly_payment")


@dataclass
class PortfolioSummary:
    total_monthly: Decimal
    total_remaining: Decimal
    total_debt: Decimal
    active_count: int
    overdue_count: int
    overdue_amount: Decimal
    next_payment_date: date | None


def _check(values: dict) -> None:
    if values.get("schedule_type") is not None and values["schedule_type"] not in SCHEDULE_TYPES:
        raise ValidationError("schedule_type_invalid")
    if values.get("total_amount") is not None and to_dec(values["total_amount"]) <= 0:
        raise ValidationError("principal_must_be_positive")
    if values.get("payment_day") is not None and not 1 <= int(values["payment_day"]) <= 31:
        raise ValidationError("payment_day_invalid")
    if values.get("total_months") is not None and int(values["total_months"]) < 1:
        raise ValidationError("term_must_be_positive")


def _loan_details(ln: Loan) -> dict:
    return {
        "name": ln.name,
        "schedule_type": ln.schedule_type,
        "total_amount": money_str(ln.total_amount),
        "interest_rate": str(ln.interest_rate) if ln.interest_rate is not None else None,
        "total_months": ln.total_months,
        "payment_day": ln.payment_day,
        "start_date": str(ln.start_date),
    }


def require_loan(s: Session, loan_id: int) -> Loan:
    ln = s.get(Loan, loan_id)
    if ln is None:
        raise NotFoundError("loan_not_found")
    return ln


def create_loan(s: Session, values: dict, username: str | None = None) -> Loan:
    _check(values)
    nm = (values.get("name") or "").strip()
    if not nm:
        raise ValidationError("loan_name_required")

    total = d2(to_dec(values["total_amount"]))
    remaining = values.get("remaining_amount")
    ln = Loan(
        name=nm,
        loan_type=values.get("loan_type") or "CREDIT",
        creditor=values.get("creditor"),
        schedule_type=values.get("schedule_type") or "MANUAL",
        total_amount=total,
        remaining_amount=d2(to_dec(remaining)) if remaining is not None else total,
        monthly_payment=d2(to_dec(values.get("monthly_payment"))),
        interest_rate=values.get("interest_rate"),
        total_months=values.get("total_months"),
        payment_day=int(values.get("payment_day") or 1),
        start_date=values["start_date"],
        end_date=values.get("end_date"),
        is_active=True,
    )
    s.add(ln)
    s.commit()
    s.refresh(ln)

    log_event(s, username=username, action="loan.create", entity_type="loan", entity_id=ln.id, details=_loan_details(ln))
    return ln


def update_loan(s: Session, loan_id: int, values: dict, username: str | None = None) -> Loan:
    ln = require_loan(s, loan_id)
    _check(values)

    changed = []
    for k in EDITABLE_FIELDS:
        if k not in values:
            continue
        v = values[k]
        if k in MONEY_FIELDS and v is not None:
            v = d2(to_dec(v))
        if k == "name":
            v = (v or "").strip()
            if not v:
                raise ValidationError("loan_name_required")
        setattr(ln, k, v)
        changed.append(k)

    s.add(ln)
    s.commit()
    s.refresh(ln)

    details = _loan_details(ln)
    details["fields"] = changed
    log_event(s, username=username, action="loan.update", entity_type="loan", entity_id=ln.id, details=details)
    return ln


def delete_loan(s: Session, loan_id: int, username: str | None = None) -> None:
    ln = require_loan(s, loan_id)
    details = _loan_details(ln)

    # orphaned repayments keep their LOAN source so entity balances do not move
    s.execute(
        update(FinanceRecord)
        .where(FinanceRecord.loan_id == loan_id)
        .values(loan_id=None, loan_payment_id=None, source="LOAN")
        .execution_options(synchronize_session=False)
    )
    s.delete(ln)
    s.commit()

    log_event(s, username=username, action="loan.delete", entity_type="loan", entity_id=loan_id, details=details)


def list_loans(s: Session, active_only: bool = True) -> list[Loan]:
    q = select(Loan).options(selectinload(Loan.payments))
    if active_only:
        q = q.where(Loan.is_active.is_(True))
    q = q.order_by(Loan.payment_day.asc(), Loan.id.asc())
    return s.execute(q).scalars().all()


def portfolio_summary(loans: list[Loan], today: date) -> PortfolioSummary:
    active = [ln for ln in loans if ln.is_active]

    overdue_count = 0
    overdue_amount = ZERO
    next_due: date | None = None
    for ln in active:
        late = overdue(ln.payments, today)
        overdue_count += len(late)
        overdue_amount += sum((to_dec(p.amount) for p in late), ZERO)
        for p in ln.payments:
            if not p.is_paid and p.date >= today and (next_due is None or p.date < next_due):
                next_due = p.date

    return PortfolioSummary(
        total_monthly=sum((to_dec(ln.monthly_payment) for ln in active), ZERO),
        total_remaining=sum((to_dec(ln.remaining_amount) for ln in active), ZERO),
        total_debt=sum((to_dec(ln.total_amount) for ln in active), ZERO),
        active_count=len(active),
        overdue_count=overdue_count,
        overdue_amount=overdue_amount,
        next_payment_date=next_due,
    )
