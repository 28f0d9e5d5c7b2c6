from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pnl.api.deps import db, require_admin
from pnl.schemas.payment import ReconcileOut
from pnl.services.sync import reconcile_all

router = APIRouter(prefix="/reconcile", tags=["reconcile"])


@router.post("", response_model=ReconcileOut)
def reconcile(s: Session = Depends(db), u=Depends(require_admin)):
    return reconcile_all(s, username=u.get("sub"))
