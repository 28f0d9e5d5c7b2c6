"""Amortization schedules for automatically scheduled loans.

``build_schedule`` is pure: it turns loan terms into installments.
``generate_schedule`` persists one for a stored loan, replacing the loan's
unpaid rows in a single transaction. Paid rows are left alone and the
periods they settle are not recreated.
"""

from __future__ import annotations

import calendar
import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pnl.core.errors import NotFoundError, StorageError, ValidationError
from pnl.models.finance_record import FinanceRecord
from pnl.models.loan import Loan
from pnl.models.loan_payment import LoanPayment
from pnl.services.audit import log_event
from pnl.services.money import ZERO, d2, money_str, to_dec

log = logging.getLogger(__name__)

AUTO_SCHEDULE_TYPES = ("ANNUITY", "DIFFERENTIATED", "INTEREST_ONLY")


@dataclass(frozen=True)
class ScheduleTerms:
    principal: Decimal
    annual_rate_percent: Decimal
    term_months: int
    schedule_type: str
    start_date: date
    payment_day: int


@dataclass(frozen=True)
class Installment:
    number: int
    date: date
    amount: Decimal
    principal_part: Decimal
    interest_part: Decimal


def add_months(start: date, months: int, day: int) -> date:
    """``start`` shifted by ``months`` landing on ``day``, clamped to the month end."""
    y, m = divmod(start.month - 1 + months, 12)
    year = start.year + y
    month = m + 1
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def validate_terms(
    schedule_type: str,
    principal,
    annual_rate_percent,
    term_months: int | None,
    payment_day: int | None,
    start_date: date | None,
) -> ScheduleTerms:
    if schedule_type == "MANUAL":
        raise ValidationError("manual_schedule_not_generated", "manual loans take individually created payments")
    if schedule_type not in AUTO_SCHEDULE_TYPES:
        raise ValidationError("schedule_type_invalid")
    if annual_rate_percent is None or term_months is None:
        raise ValidationError("rate_and_term_required")

    p = to_dec(principal)
    if p <= 0:
        raise ValidationError("principal_must_be_positive")
    rate = to_dec(annual_rate_percent)
    if rate < 0:
        raise ValidationError("rate_must_not_be_negative")
    if int(term_months) < 1:
        raise ValidationError("term_must_be_positive")
    if payment_day is None or not 1 <= int(payment_day) <= 31:
        raise ValidationError("payment_day_invalid")
    if start_date is None:
        raise ValidationError("start_date_required")

    return ScheduleTerms(
        principal=p,
        annual_rate_percent=rate,
        term_months=int(term_months),
        schedule_type=schedule_type,
        start_date=start_date,
        payment_day=int(payment_day),
    )


def terms_for_loan(loan: Loan) -> ScheduleTerms:
    return validate_terms(
        loan.schedule_type,
        loan.total_amount,
        loan.interest_rate,
        loan.total_months,
        loan.payment_day,
        loan.start_date,
    )


def _annuity(t: ScheduleTerms, r: Decimal) -> list[tuple[Decimal, Decimal, Decimal]]:
    n = t.term_months
    if r == 0:
        installment = d2(t.principal / n)
    else:
        f = (1 + r) ** n
        installment = d2(t.principal * r * f / (f - 1))

    rows = []
    remaining = t.principal
    for i in range(1, n + 1):
        amount = installment
        if i < n:
            interest = d2(remaining * r)
            principal_part = min(amount - interest, remaining)
            amount = principal_part + interest
        else:
            # last period clears the balance; rounding residue lands in its interest
            principal_part = remaining
            interest = amount - principal_part
            if interest < 0 or r == 0 or principal_part == 0:
                interest = ZERO
                amount = principal_part
        remaining -= principal_part
        rows.append((amount, principal_part, interest))
    return rows


def _differentiated(t: ScheduleTerms, r: Decimal) -> list[tuple[Decimal, Decimal, Decimal]]:
    n = t.term_months
    per_month = d2(t.principal / n)

    rows = []
    remaining = t.principal
    for i in range(1, n + 1):
        # a rounded-up share must not overshoot the balance
        principal_part = min(per_month, remaining) if i < n else remaining
        interest = d2(remaining * r)
        remaining -= principal_part
        rows.append((principal_part + interest, principal_part, interest))
    return rows


def _interest_only(t: ScheduleTerms, r: Decimal) -> list[tuple[Decimal, Decimal, Decimal]]:
    n = t.term_months
    interest = d2(t.principal * r)

    rows = []
    for i in range(1, n + 1):
        if i < n:
            rows.append((interest, ZERO, interest))
        else:
            rows.append((interest + t.principal, t.principal, interest))
    return rows


_BUILDERS = {
    "ANNUITY": _annuity,
    "DIFFERENTIATED": _differentiated,
    "INTEREST_ONLY": _interest_only,
}


def build_schedule(t: ScheduleTerms) -> list[Installment]:
    monthly_rate = t.annual_rate_percent / Decimal("100") / Decimal("12")
    parts = _BUILDERS[t.schedule_type](t, monthly_rate)
    return [
        Installment(
            number=i,
            date=add_months(t.start_date, i, t.payment_day),
            amount=d2(amount),
            principal_part=d2(principal_part),
            interest_part=d2(interest),
        )
        for i, (amount, principal_part, interest) in enumerate(parts, start=1)
    ]


def generate_schedule(s: Session, loan_id: int, username: str | None = None) -> list[LoanPayment]:
    loan = s.get(Loan, loan_id)
    if loan is None:
        raise NotFoundError("loan_not_found")

    terms = terms_for_loan(loan)
    installments = build_schedule(terms)

    paid_dates = set(
        s.execute(
            select(LoanPayment.date).where(LoanPayment.loan_id == loan_id, LoanPayment.is_paid.is_(True))
        ).scalars()
    )
    paid_count = len(paid_dates)
    if paid_count:
        # TODO: check new terms against paid history once the expected behaviour is agreed with finance
        log.warning("loan %s: regenerating schedule over %s paid period(s)", loan_id, paid_count)

    try:
        unpaid_ids = select(LoanPayment.id).where(LoanPayment.loan_id == loan_id, LoanPayment.is_paid.is_(False))
        s.execute(
            update(FinanceRecord)
            .where(FinanceRecord.loan_payment_id.in_(unpaid_ids))
            .values(loan_payment_id=None)
            .execution_options(synchronize_session=False)
        )
        s.execute(
            delete(LoanPayment)
            .where(LoanPayment.loan_id == loan_id, LoanPayment.is_paid.is_(False))
            .execution_options(synchronize_session=False)
        )

        rows = [
            LoanPayment(
                loan_id=loan_id,
                amount=inst.amount,
                principal_part=inst.principal_part,
                interest_part=inst.interest_part,
                date=inst.date,
                is_paid=False,
            )
            for inst in installments
            # periods already settled keep their paid row
            if inst.date not in paid_dates
        ]
        s.add_all(rows)

        loan.monthly_payment = installments[0].amount
        loan.end_date = installments[-1].date
        s.add(loan)
        s.commit()
        created_ids = [r.id for r in rows]
    except SQLAlchemyError as e:
        s.rollback()
        log.exception("loan %s: schedule generation rolled back", loan_id)
        raise StorageError("schedule_write_failed") from e

    log.info("loan %s: generated %s %s installments", loan_id, len(rows), terms.schedule_type)

    log_event(
        s,
        username=username,
        action="schedule.generate",
        entity_type="loan",
        entity_id=loan_id,
        details={
            "schedule_type": terms.schedule_type,
            "count": len(rows),
            "kept_paid": paid_count,
            "monthly_payment": money_str(installments[0].amount),
            "end_date": str(installments[-1].date),
        },
    )
    return (
        s.execute(
            select(LoanPayment)
            .where(LoanPayment.loan_id == loan_id, LoanPayment.id.in_(created_ids))
            .order_by(LoanPayment.date.asc(), LoanPayment.id.asc())
        )
        .scalars()
        .all()
    )
