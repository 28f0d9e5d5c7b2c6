from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pnl.core.errors import NotFoundError, ValidationError
from pnl.db.base import Base
import pnl.models  # noqa: F401
from pnl.models.audit_log import AuditLog
from pnl.models.catalog import Category
from pnl.models.finance_record import FinanceRecord
from pnl.models.loan_payment import LoanPayment
from pnl.services import loans as loan_svc
from pnl.services import sync
from pnl.services.payments import create_ledger_record, create_manual_payment, delete_payment, update_payment
from pnl.services.records import update_record
from pnl.services.schedule import generate_schedule


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


@pytest.fixture()
def category(session):
    c = Category(name="Loan repayments", type="EXPENSE")
    session.add(c)
    session.commit()
    return c


def _scheduled_loan(session):
    loan = loan_svc.create_loan(
        session,
        {
            "name": "Van lease",
            "schedule_type": "ANNUITY",
            "total_amount": Decimal("120000"),
            "interest_rate": Decimal("12"),
            "total_months": 12,
            "payment_day": 5,
            "start_date": date(2025, 1, 5),
        },
    )
    return loan, generate_schedule(session, loan.id)


def _legacy_record(session, category, payment: LoanPayment, paid=False) -> FinanceRecord:
    """A loan record written before explicit links existed."""
    r = FinanceRecord(
        type="EXPENSE",
        amount=payment.amount,
        date=payment.date,
        is_paid=paid,
        category_id=category.id,
        loan_id=payment.loan_id,
        source="LOAN",
    )
    session.add(r)
    session.commit()
    return r


def test_toggle_propagates_to_linked_record(session, category):
    _, rows = _scheduled_loan(session)
    rec = create_ledger_record(session, rows[0].id, category_id=category.id)
    assert rec.is_paid is False
    assert rec.loan_payment_id == rows[0].id

    p = sync.toggle_payment(session, rows[0].id, True, username="alice")

    assert p.is_paid is True
    assert p.paid_at is not None
    assert session.get(FinanceRecord, rec.id).is_paid is True

    sync.toggle_payment(session, rows[0].id, False)
    assert session.get(LoanPayment, rows[0].id).paid_at is None
    assert session.get(FinanceRecord, rec.id).is_paid is False


def test_toggle_is_idempotent_and_audited_once(session, category):
    _, rows = _scheduled_loan(session)

    sync.toggle_payment(session, rows[0].id, True, username="alice")
    sync.toggle_payment(session, rows[0].id, True, username="alice")

    audit = session.execute(select(AuditLog).where(AuditLog.action == "payment.toggle")).scalars().all()
    assert len(audit) == 1
    assert audit[0].username == "alice"
    assert audit[0].details == {"loan_id": rows[0].loan_id, "is_paid": True}


def test_toggle_unknown_payment(session):
    with pytest.raises(NotFoundError):
        sync.toggle_payment(session, 12345, True)


def test_toggle_links_legacy_record_by_natural_key(session, category):
    _, rows = _scheduled_loan(session)
    rec = _legacy_record(session, category, rows[3])

    sync.toggle_payment(session, rows[3].id, True)

    rec = session.get(FinanceRecord, rec.id)
    assert rec.loan_payment_id == rows[3].id
    assert rec.is_paid is True


def test_propagation_failure_keeps_payment_committed(session, category, monkeypatch):
    _, rows = _scheduled_loan(session)
    rec = create_ledger_record(session, rows[0].id, category_id=category.id)

    def boom(*args, **kwargs):
        raise SQLAlchemyError("ledger unavailable")

    monkeypatch.setattr(sync, "find_counterpart", boom)
    sync.toggle_payment(session, rows[0].id, True)
    monkeypatch.undo()

    assert session.get(LoanPayment, rows[0].id).is_paid is True
    assert session.get(FinanceRecord, rec.id).is_paid is False

    result = sync.reconcile_all(session)
    assert (result.synced, result.reverted) == (1, 0)
    assert session.get(FinanceRecord, rec.id).is_paid is True


def test_record_edit_propagates_back_to_payment(session, category):
    _, rows = _scheduled_loan(session)
    rec = create_ledger_record(session, rows[1].id, category_id=category.id)

    update_record(session, rec.id, {"is_paid": True})

    p = session.get(LoanPayment, rows[1].id)
    assert p.is_paid is True
    assert p.paid_at is not None


def test_update_payment_paid_flag_reaches_ledger(session, category):
    _, rows = _scheduled_loan(session)
    rec = create_ledger_record(session, rows[2].id, category_id=category.id)

    update_payment(session, rows[2].id, {"is_paid": True, "comment": "bank transfer"})

    assert session.get(FinanceRecord, rec.id).is_paid is True
    assert session.get(LoanPayment, rows[2].id).comment == "bank transfer"


def test_ledger_record_created_once_per_payment(session, category):
    _, rows = _scheduled_loan(session)
    create_ledger_record(session, rows[0].id, category_id=category.id)

    with pytest.raises(ValidationError) as e:
        create_ledger_record(session, rows[0].id, category_id=category.id)
    assert e.value.code == "ledger_record_exists"


def test_delete_payment_unlinks_record(session, category):
    _, rows = _scheduled_loan(session)
    rec = create_ledger_record(session, rows[0].id, category_id=category.id)

    delete_payment(session, rows[0].id)

    rec = session.get(FinanceRecord, rec.id)
    assert rec is not None
    assert rec.loan_payment_id is None


def test_backfill_links_each_record_once(session, category):
    _, rows = _scheduled_loan(session)
    first = _legacy_record(session, category, rows[0])
    duplicate = _legacy_record(session, category, rows[0])

    assert sync.backfill_links(session) == 1
    assert session.get(FinanceRecord, first.id).loan_payment_id == rows[0].id
    assert session.get(FinanceRecord, duplicate.id).loan_payment_id is None

    assert sync.backfill_links(session) == 0


def test_reconcile_reverts_and_is_idempotent(session, category):
    _, rows = _scheduled_loan(session)
    stale_paid = _legacy_record(session, category, rows[0], paid=True)
    missed = _legacy_record(session, category, rows[1], paid=False)
    sync.toggle_payment(session, rows[1].id, True)
    # the toggle above already linked and synced the second record
    assert session.get(FinanceRecord, missed.id).is_paid is True

    result = sync.reconcile_all(session, username="ops")

    assert (result.synced, result.reverted, result.linked) == (0, 1, 1)
    assert session.get(FinanceRecord, stale_paid.id).is_paid is False

    again = sync.reconcile_all(session)
    assert (again.synced, again.reverted, again.linked) == (0, 0, 0)

    audit = session.execute(select(AuditLog).where(AuditLog.action == "ledger.reconcile")).scalars().all()
    assert len(audit) == 1
    assert audit[0].username == "ops"


def test_manual_payment_on_manual_loan(session):
    loan = loan_svc.create_loan(
        session,
        {"name": "Family loan", "total_amount": Decimal("5000"), "start_date": date(2025, 1, 1)},
    )
    p = create_manual_payment(session, loan.id, Decimal("1250"), date(2025, 2, 1), paid=True)

    assert p.is_paid is True
    assert p.paid_at is not None
    assert Decimal(p.amount) == Decimal("1250.00")

    with pytest.raises(ValidationError):
        create_manual_payment(session, loan.id, Decimal("0"), date(2025, 3, 1))


def test_portfolio_summary_counts_overdue(session):
    loan, rows = _scheduled_loan(session)
    sync.toggle_payment(session, rows[0].id, True)

    loans = loan_svc.list_loans(session)
    summary = loan_svc.portfolio_summary(loans, today=date(2025, 4, 1))

    assert summary.active_count == 1
    assert summary.overdue_count == 1
    assert summary.overdue_amount == Decimal("10661.85")
    assert summary.next_payment_date == date(2025, 4, 5)
    assert summary.total_debt == Decimal("120000.00")


def _fail_audit_commits(session, monkeypatch):
    real_commit = session.commit

    def commit():
        if any(isinstance(o, AuditLog) for o in session.new):
            raise SQLAlchemyError("audit table locked")
        real_commit()

    monkeypatch.setattr(session, "commit", commit)


def test_audit_failure_does_not_fail_toggle(session, category, monkeypatch, caplog):
    _, rows = _scheduled_loan(session)
    rec = create_ledger_record(session, rows[0].id, category_id=category.id)

    _fail_audit_commits(session, monkeypatch)
    p = sync.toggle_payment(session, rows[0].id, True, username="alice")
    monkeypatch.undo()

    assert p.is_paid is True
    assert session.get(LoanPayment, rows[0].id).is_paid is True
    assert session.get(FinanceRecord, rec.id).is_paid is True
    toggles = session.execute(select(AuditLog).where(AuditLog.action == "payment.toggle")).scalars().all()
    assert toggles == []
    assert "audit append failed" in caplog.text


def test_audit_failure_does_not_fail_schedule_generation(session, monkeypatch):
    loan = loan_svc.create_loan(
        session,
        {
            "name": "Forklift",
            "schedule_type": "DIFFERENTIATED",
            "total_amount": Decimal("12000"),
            "interest_rate": Decimal("6"),
            "total_months": 12,
            "payment_day": 10,
            "start_date": date(2025, 1, 10),
        },
    )
    _fail_audit_commits(session, monkeypatch)

    rows = generate_schedule(session, loan.id)
    monkeypatch.undo()

    assert len(rows) == 12
    stored = session.execute(select(LoanPayment).where(LoanPayment.loan_id == loan.id)).scalars().all()
    assert len(stored) == 12
    generated = session.execute(select(AuditLog).where(AuditLog.action == "schedule.generate")).scalars().all()
    assert generated == []
