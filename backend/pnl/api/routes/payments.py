from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pnl.api.deps import db, current_user, require_admin
from pnl.schemas.loan import PaymentOut
from pnl.schemas.payment import PaymentCreate, PaymentUpdate, LedgerRecordCreate
from pnl.schemas.record import RecordOut
from pnl.services import payments as payment_svc

router = APIRouter(prefix="/loans/{loan_id}/payments", tags=["payments"])


@router.get("", response_model=list[PaymentOut])
def list_payments(loan_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return payment_svc.list_payments(s, loan_id)


@router.post("", response_model=PaymentOut, status_code=201)
def create_payment(loan_id: int, body: PaymentCreate, s: Session = Depends(db), u=Depends(require_admin)):
    return payment_svc.create_manual_payment(
        s,
        loan_id,
        amount=body.amount,
        on=body.date,
        principal_part=body.principal_part,
        interest_part=body.interest_part,
        paid=body.is_paid,
        comment=body.comment,
        username=u.get("sub"),
    )


@router.patch("/{payment_id}", response_model=PaymentOut)
def update_payment(loan_id: int, payment_id: int, body: PaymentUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    return payment_svc.update_payment(
        s,
        payment_id,
        body.model_dump(exclude_unset=True),
        loan_id=loan_id,
        username=u.get("sub"),
    )


@router.delete("/{payment_id}")
def delete_payment(loan_id: int, payment_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    payment_svc.delete_payment(s, payment_id, loan_id=loan_id, username=u.get("sub"))
    return {"ok": True}


@router.post("/{payment_id}/ledger-record", response_model=RecordOut, status_code=201)
def create_ledger_record(
    loan_id: int,
    payment_id: int,
    body: LedgerRecordCreate,
    s: Session = Depends(db),
    u=Depends(require_admin),
):
    return payment_svc.create_ledger_record(
        s,
        payment_id,
        category_id=body.category_id,
        legal_entity_id=body.legal_entity_id,
        business_unit_id=body.business_unit_id,
        description=body.description,
        loan_id=loan_id,
        username=u.get("sub"),
    )
