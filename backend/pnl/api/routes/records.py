from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from pnl.api.deps import db, current_user, require_admin
from pnl.schemas.record import RecordCreate, RecordUpdate, RecordOut
from pnl.services import records as record_svc

router = APIRouter(prefix="/records", tags=["records"])


@router.get("", response_model=list[RecordOut])
def list_records(
    start: date | None = Query(None),
    end: date | None = Query(None),
    type: Literal["INCOME", "EXPENSE"] | None = Query(None),
    category_id: int | None = Query(None),
    business_unit_id: int | None = Query(None),
    legal_entity_id: int | None = Query(None),
    loan_id: int | None = Query(None),
    paid_by_founder: str | None = Query(None),
    is_paid: bool | None = Query(None),
    s: Session = Depends(db),
    u=Depends(current_user),
):
    return record_svc.list_records(
        s,
        start=start,
        end=end,
        type=type,
        category_id=category_id,
        business_unit_id=business_unit_id,
        legal_entity_id=legal_entity_id,
        loan_id=loan_id,
        paid_by_founder=paid_by_founder,
        is_paid=is_paid,
    )


@router.post("", response_model=RecordOut, status_code=201)
def create_record(body: RecordCreate, s: Session = Depends(db), u=Depends(require_admin)):
    return record_svc.create_record(s, body.model_dump(), username=u.get("sub"))


@router.patch("/{record_id}", response_model=RecordOut)
def update_record(record_id: int, body: RecordUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    return record_svc.update_record(s, record_id, body.model_dump(exclude_unset=True), username=u.get("sub"))


@router.delete("/{record_id}")
def delete_record(record_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    record_svc.delete_record(s, record_id, username=u.get("sub"))
    return {"ok": True}
