from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pnl.core.errors import NotFoundError, StorageError, ValidationError
from pnl.db.base import Base
import pnl.models  # noqa: F401
from pnl.models.audit_log import AuditLog
from pnl.models.catalog import Category
from pnl.models.finance_record import FinanceRecord
from pnl.models.loan import Loan
from pnl.models.loan_payment import LoanPayment
from pnl.services import loans as loan_svc
from pnl.services.payments import create_ledger_record
from pnl.services.schedule import ScheduleTerms, add_months, build_schedule, generate_schedule, validate_terms
from pnl.services.sync import toggle_payment


@pytest.fixture()
def session():
    eng = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    Session = sessionmaker(bind=eng, autoflush=False, autocommit=False, future=True)
    s = Session()
    try:
        yield s
    finally:
        s.close()
        eng.dispose()


def _terms(schedule_type: str, principal="120000", rate="12", months=12, start=date(2025, 1, 5), day=5):
    return ScheduleTerms(
        principal=Decimal(principal),
        annual_rate_percent=Decimal(rate),
        term_months=months,
        schedule_type=schedule_type,
        start_date=start,
        payment_day=day,
    )


def _mk_loan(session, schedule_type="ANNUITY", **kw) -> Loan:
    values = {
        "name": "Equipment loan",
        "schedule_type": schedule_type,
        "total_amount": Decimal("120000"),
        "interest_rate": Decimal("12"),
        "total_months": 12,
        "payment_day": 5,
        "start_date": date(2025, 1, 5),
    }
    values.update(kw)
    return loan_svc.create_loan(session, values, username="tester")


def _payments(session, loan_id: int) -> list[LoanPayment]:
    return (
        session.execute(
            select(LoanPayment).where(LoanPayment.loan_id == loan_id).order_by(LoanPayment.date, LoanPayment.id)
        )
        .scalars()
        .all()
    )


def test_add_months_clamps_to_month_end():
    assert add_months(date(2025, 1, 31), 1, 31) == date(2025, 2, 28)
    assert add_months(date(2024, 1, 31), 1, 31) == date(2024, 2, 29)
    assert add_months(date(2025, 3, 31), 1, 31) == date(2025, 4, 30)
    assert add_months(date(2025, 11, 15), 3, 15) == date(2026, 2, 15)


def test_annuity_constant_installment_and_principal_sums_to_loan():
    rows = build_schedule(_terms("ANNUITY"))

    assert len(rows) == 12
    assert all(r.amount == Decimal("10661.85") for r in rows)
    assert rows[0].interest_part == Decimal("1200.00")
    assert rows[0].principal_part == Decimal("9461.85")
    assert sum(r.principal_part for r in rows) == Decimal("120000.00")
    assert all(r.amount == r.principal_part + r.interest_part for r in rows)
    assert all(r.interest_part >= 0 for r in rows)


def test_annuity_interest_declines_over_time():
    rows = build_schedule(_terms("ANNUITY"))
    interest = [r.interest_part for r in rows]
    assert interest == sorted(interest, reverse=True)


def test_annuity_zero_rate_splits_principal_evenly():
    rows = build_schedule(_terms("ANNUITY", principal="1000", rate="0", months=3))

    assert [r.amount for r in rows] == [Decimal("333.33"), Decimal("333.33"), Decimal("333.34")]
    assert all(r.interest_part == Decimal("0.00") for r in rows)
    assert sum(r.principal_part for r in rows) == Decimal("1000.00")


def test_differentiated_equal_principal_and_declining_amount():
    rows = build_schedule(_terms("DIFFERENTIATED"))

    assert all(r.principal_part == Decimal("10000.00") for r in rows)
    assert rows[0].interest_part == Decimal("1200.00")
    assert rows[0].amount == Decimal("11200.00")
    assert rows[-1].interest_part == Decimal("100.00")
    assert rows[-1].amount == Decimal("10100.00")
    amounts = [r.amount for r in rows]
    assert amounts == sorted(amounts, reverse=True)


def test_interest_only_repays_principal_in_last_period():
    rows = build_schedule(_terms("INTEREST_ONLY"))

    assert all(r.amount == Decimal("1200.00") and r.principal_part == 0 for r in rows[:-1])
    assert rows[-1].amount == Decimal("121200.00")
    assert rows[-1].principal_part == Decimal("120000.00")


def test_installment_dates_follow_payment_day():
    rows = build_schedule(_terms("ANNUITY"))

    assert rows[0].date == date(2025, 2, 5)
    assert rows[-1].date == date(2026, 1, 5)
    assert [r.number for r in rows] == list(range(1, 13))


def test_validate_terms_rejects_manual_and_missing_inputs():
    with pytest.raises(ValidationError) as e:
        validate_terms("MANUAL", 1000, 10, 12, 5, date(2025, 1, 1))
    assert e.value.code == "manual_schedule_not_generated"

    with pytest.raises(ValidationError) as e:
        validate_terms("ANNUITY", 1000, None, 12, 5, date(2025, 1, 1))
    assert e.value.code == "rate_and_term_required"

    with pytest.raises(ValidationError) as e:
        validate_terms("ANNUITY", 0, 10, 12, 5, date(2025, 1, 1))
    assert e.value.code == "principal_must_be_positive"

    with pytest.raises(ValidationError) as e:
        validate_terms("ANNUITY", 1000, 10, 12, 32, date(2025, 1, 1))
    assert e.value.code == "payment_day_invalid"


def test_generate_schedule_persists_rows_and_updates_loan(session):
    loan = _mk_loan(session)

    rows = generate_schedule(session, loan.id, username="tester")

    assert len(rows) == 12
    assert all(not r.is_paid for r in rows)
    loan = session.get(Loan, loan.id)
    assert Decimal(loan.monthly_payment) == Decimal("10661.85")
    assert loan.end_date == date(2026, 1, 5)

    audit = session.execute(select(AuditLog).where(AuditLog.action == "schedule.generate")).scalars().all()
    assert len(audit) == 1
    assert audit[0].entity_id == loan.id
    assert audit[0].details["count"] == 12


def test_generate_schedule_unknown_loan(session):
    with pytest.raises(NotFoundError) as e:
        generate_schedule(session, 999)
    assert e.value.code == "loan_not_found"


def test_generate_schedule_rejects_manual_loan(session):
    loan = _mk_loan(session, schedule_type="MANUAL")

    with pytest.raises(ValidationError):
        generate_schedule(session, loan.id)
    assert _payments(session, loan.id) == []


def test_regeneration_keeps_paid_period_and_recreates_the_rest(session):
    loan = _mk_loan(session)
    first = generate_schedule(session, loan.id)
    paid = first[0]
    paid_id, paid_amount, paid_date = paid.id, paid.amount, paid.date
    toggle_payment(session, paid_id, True)

    second = generate_schedule(session, loan.id)

    assert len(second) == 11
    assert all(not r.is_paid for r in second)
    assert second[0].date == date(2025, 3, 5)
    rows = _payments(session, loan.id)
    assert len(rows) == 12
    kept = session.get(LoanPayment, paid_id)
    assert kept.is_paid is True
    assert (kept.amount, kept.date) == (paid_amount, paid_date)


def test_regeneration_with_new_term_unlinks_replaced_rows(session):
    loan = _mk_loan(session)
    first = generate_schedule(session, loan.id)
    paid_ids = [first[0].id, first[1].id]
    for pid in paid_ids:
        toggle_payment(session, pid, True)

    cat = Category(name="Loan repayments", type="EXPENSE")
    session.add(cat)
    session.commit()
    rec = create_ledger_record(session, first[2].id, category_id=cat.id)

    loan_svc.update_loan(session, loan.id, {"total_months": 6})
    second = generate_schedule(session, loan.id)

    assert len(second) == 4
    rows = _payments(session, loan.id)
    assert len(rows) == 6
    assert sorted(r.id for r in rows if r.is_paid) == sorted(paid_ids)
    assert session.get(Loan, loan.id).end_date == date(2025, 7, 5)
    assert session.get(FinanceRecord, rec.id).loan_payment_id is None


def test_failed_write_rolls_back_whole_regeneration(session, monkeypatch):
    loan = _mk_loan(session)
    generate_schedule(session, loan.id)
    before = [r.id for r in _payments(session, loan.id)]

    def boom(*args, **kwargs):
        raise SQLAlchemyError("disk full")

    monkeypatch.setattr(session, "add_all", boom)
    with pytest.raises(StorageError) as e:
        generate_schedule(session, loan.id)
    assert e.value.code == "schedule_write_failed"

    monkeypatch.undo()
    assert [r.id for r in _payments(session, loan.id)] == before
