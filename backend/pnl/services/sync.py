"""Keeps loan payments and their ledger records agreeing on ``is_paid``.

A ledger record points at its payment through ``loan_payment_id``. Records
created before that column existed are matched once by the natural key
(loan, amount, date) and linked; after that only the stored link is used.

Propagation is best effort. The payment-side write always commits first and
a failure on the ledger side is logged and left for ``reconcile_all``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pnl.core.errors import NotFoundError
from pnl.models.finance_record import FinanceRecord
from pnl.models.loan_payment import LoanPayment
from pnl.services.audit import log_event

log = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    synced: int = 0
    reverted: int = 0
    linked: int = 0


def set_paid_state(payment: LoanPayment, paid: bool, paid_at: datetime | None = None) -> bool:
    """Apply ``paid`` to the payment. Returns True when the flag changed."""
    if bool(payment.is_paid) == paid:
        if paid and paid_at is not None:
            payment.paid_at = paid_at
        return False
    payment.is_paid = paid
    payment.paid_at = (paid_at or datetime.now(timezone.utc)) if paid else None
    return True


def match_by_natural_key(s: Session, payment: LoanPayment) -> FinanceRecord | None:
    """First unlinked ledger record with the payment's loan, amount and date."""
    return (
        s.execute(
            select(FinanceRecord)
            .where(
                FinanceRecord.loan_id == payment.loan_id,
                FinanceRecord.amount == payment.amount,
                FinanceRecord.date == payment.date,
                FinanceRecord.loan_payment_id.is_(None),
            )
            .order_by(FinanceRecord.id.asc())
            .limit(1)
        )
        .scalars()
        .first()
    )


def find_counterpart(s: Session, payment: LoanPayment, backfill: bool = True) -> FinanceRecord | None:
    rec = s.execute(select(FinanceRecord).where(FinanceRecord.loan_payment_id == payment.id)).scalar_one_or_none()
    if rec is not None or not backfill:
        return rec

    rec = match_by_natural_key(s, payment)
    if rec is not None:
        rec.loan_payment_id = payment.id
        s.add(rec)
        log.info("linked ledger record %s to loan payment %s by natural key", rec.id, payment.id)
    return rec


def propagate_payment(s: Session, payment: LoanPayment) -> FinanceRecord | None:
    """Copy the payment's paid flag onto its ledger record. Never raises."""
    try:
        rec = find_counterpart(s, payment)
        if rec is None:
            return None
        if bool(rec.is_paid) != bool(payment.is_paid):
            rec.is_paid = bool(payment.is_paid)
            s.add(rec)
        s.commit()
        return rec
    except SQLAlchemyError:
        s.rollback()
        log.exception("ledger propagation failed for loan payment %s", payment.id)
        return None


def propagate_record(s: Session, rec: FinanceRecord) -> LoanPayment | None:
    """Copy a linked ledger record's paid flag back onto its payment. Never raises."""
    if rec.loan_payment_id is None:
        return None
    try:
        payment = s.get(LoanPayment, rec.loan_payment_id)
        if payment is None:
            return None
        if set_paid_state(payment, bool(rec.is_paid)):
            s.add(payment)
        s.commit()
        return payment
    except SQLAlchemyError:
        s.rollback()
        log.exception("payment propagation failed for ledger record %s", rec.id)
        return None


def toggle_payment(s: Session, payment_id: int, paid: bool, username: str | None = None) -> LoanPayment:
    payment = s.get(LoanPayment, payment_id)
    if payment is None:
        raise NotFoundError("payment_not_found")

    changed = set_paid_state(payment, paid)
    s.add(payment)
    s.commit()

    propagate_payment(s, payment)

    if changed:
        log_event(
            s,
            username=username,
            action="payment.toggle",
            entity_type="loan_payment",
            entity_id=payment_id,
            details={"loan_id": payment.loan_id, "is_paid": paid},
        )
    return payment


def backfill_links(s: Session) -> int:
    """Link unlinked loan records to unlinked payments by natural key."""
    linked_payment_ids = select(FinanceRecord.loan_payment_id).where(FinanceRecord.loan_payment_id.is_not(None))
    payments = (
        s.execute(
            select(LoanPayment)
            .where(LoanPayment.id.not_in(linked_payment_ids))
            .order_by(LoanPayment.loan_id.asc(), LoanPayment.date.asc(), LoanPayment.id.asc())
        )
        .scalars()
        .all()
    )

    linked = 0
    for p in payments:
        rec = match_by_natural_key(s, p)
        if rec is None:
            continue
        rec.loan_payment_id = p.id
        s.add(rec)
        s.flush()
        linked += 1

    s.commit()
    return linked


def reconcile_all(s: Session, username: str | None = None) -> ReconcileResult:
    """Bring every linked ledger record in line with its payment.

    Payments are authoritative. Running it twice in a row changes nothing
    the second time.
    """
    result = ReconcileResult(linked=backfill_links(s))

    pairs = s.execute(
        select(LoanPayment, FinanceRecord)
        .join(FinanceRecord, FinanceRecord.loan_payment_id == LoanPayment.id)
        .where(FinanceRecord.is_paid != LoanPayment.is_paid)
        .order_by(LoanPayment.id.asc())
    ).all()

    for payment, rec in pairs:
        rec.is_paid = bool(payment.is_paid)
        s.add(rec)
        if payment.is_paid:
            result.synced += 1
        else:
            result.reverted += 1
    s.commit()

    log.info(
        "reconcile: %s synced to paid, %s reverted to unpaid, %s newly linked",
        result.synced,
        result.reverted,
        result.linked,
    )
    if result.synced or result.reverted or result.linked:
        log_event(
            s,
            username=username,
            action="ledger.reconcile",
            entity_type="finance_record",
            details={"synced": result.synced, "reverted": result.reverted, "linked": result.linked},
        )
    return result
