from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pnl.api.deps import db, current_user, require_admin
from pnl.schemas.loan import LoanCreate, LoanUpdate, LoanOut, LoanWithPaymentsOut, LoanListOut, ScheduleOut
from pnl.services import loans as loan_svc
from pnl.services.schedule import generate_schedule

router = APIRouter(prefix="/loans", tags=["loans"])


@router.get("", response_model=LoanListOut)
def list_loans(active: bool = Query(default=True), s: Session = Depends(db), u=Depends(current_user)):
    loans = loan_svc.list_loans(s, active_only=active)
    return {"loans": loans, "summary": loan_svc.portfolio_summary(loans, date.today())}


@router.post("", response_model=LoanOut, status_code=201)
def create_loan(body: LoanCreate, s: Session = Depends(db), u=Depends(require_admin)):
    return loan_svc.create_loan(s, body.model_dump(), username=u.get("sub"))


@router.get("/{loan_id}", response_model=LoanWithPaymentsOut)
def get_loan(loan_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return loan_svc.require_loan(s, loan_id)


@router.patch("/{loan_id}", response_model=LoanOut)
def update_loan(loan_id: int, body: LoanUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    return loan_svc.update_loan(s, loan_id, body.model_dump(exclude_unset=True), username=u.get("sub"))


@router.delete("/{loan_id}")
def delete_loan(loan_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    loan_svc.delete_loan(s, loan_id, username=u.get("sub"))
    return {"ok": True}


@router.post("/{loan_id}/generate-schedule", response_model=ScheduleOut)
def generate(loan_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    rows = generate_schedule(s, loan_id, username=u.get("sub"))
    return {"count": len(rows), "payments": rows}
