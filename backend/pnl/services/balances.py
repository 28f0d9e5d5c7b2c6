"""Point-in-time running balances.

A legal entity's balance is its opening balance plus income minus the
expenses it actually paid itself. Expenses fronted by a founder are tracked
by the reimbursement ledger and loan repayments by the loan subledger, so
both are left out here. A repayment is recognised by its loan reference or
by a LOAN source, which outlives the loan itself.

The shared reserve ("safe") has no income side: its balance is the opening
balance minus expenses taken from it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.orm import Session

from pnl.core.errors import NotFoundError
from pnl.models.finance_record import FinanceRecord
from pnl.models.legal_entity import LegalEntity
from pnl.services.money import ZERO, d2, to_dec
from pnl.services.safe import SafeBaseline, get_baseline


@dataclass
class SafeSummary:
    baseline: SafeBaseline | None
    balance: Decimal
    total_expenses: Decimal


def _sum(s: Session, *where) -> Decimal:
    v = s.execute(select(func.coalesce(func.sum(FinanceRecord.amount), 0)).where(*where)).scalar_one()
    return d2(to_dec(v))


def _entity_balance(s: Session, le: LegalEntity) -> Decimal:
    income = _sum(
        s,
        FinanceRecord.legal_entity_id == le.id,
        FinanceRecord.type == "INCOME",
        FinanceRecord.date >= le.effective_date,
    )
    expense = _sum(
        s,
        FinanceRecord.legal_entity_id == le.id,
        FinanceRecord.type == "EXPENSE",
        FinanceRecord.date >= le.effective_date,
        FinanceRecord.paid_by_founder.is_(None),
        FinanceRecord.loan_id.is_(None),
        FinanceRecord.source != "LOAN",
    )
    return to_dec(le.initial_balance) + income - expense


def legal_entity_balance(s: Session, entity_id: int) -> Decimal:
    le = s.get(LegalEntity, entity_id)
    if le is None:
        raise NotFoundError("legal_entity_not_found")
    return _entity_balance(s, le)


def legal_entity_balances(s: Session) -> list[tuple[LegalEntity, Decimal]]:
    entities = (
        s.execute(select(LegalEntity).order_by(LegalEntity.business_unit_id.asc(), LegalEntity.id.asc()))
        .scalars()
        .all()
    )
    return [(le, _entity_balance(s, le)) for le in entities]


def safe_expenses(s: Session, since: date) -> Decimal:
    return _sum(
        s,
        FinanceRecord.from_safe.is_(True),
        FinanceRecord.type == "EXPENSE",
        FinanceRecord.date >= since,
    )


def safe_summary(s: Session) -> SafeSummary:
    baseline = get_baseline(s)
    if baseline is None:
        return SafeSummary(baseline=None, balance=ZERO, total_expenses=ZERO)

    spent = safe_expenses(s, baseline.effective_date)
    return SafeSummary(baseline=baseline, balance=baseline.initial_balance - spent, total_expenses=spent)


def safe_balance(s: Session) -> Decimal:
    return safe_summary(s).balance
