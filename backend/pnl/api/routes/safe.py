from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pnl.api.deps import db, current_user, require_admin
from pnl.schemas.entity import SafeOut, SafeSettingsIn, SafeSettingsOut
from pnl.services.balances import safe_summary
from pnl.services.safe import put_baseline

router = APIRouter(prefix="/safe", tags=["safe"])


def _safe_out(s: Session) -> SafeOut:
    summary = safe_summary(s)
    settings = None
    if summary.baseline is not None:
        settings = SafeSettingsOut(
            initial_balance=summary.baseline.initial_balance,
            effective_date=summary.baseline.effective_date,
        )
    return SafeOut(settings=settings, safe_balance=summary.balance, total_safe_expenses=summary.total_expenses)


@router.get("", response_model=SafeOut)
def get_safe(s: Session = Depends(db), u=Depends(current_user)):
    return _safe_out(s)


@router.put("", response_model=SafeOut)
def put_safe(body: SafeSettingsIn, s: Session = Depends(db), u=Depends(require_admin)):
    put_baseline(s, body.initial_balance, body.effective_date, username=u.get("sub"))
    return _safe_out(s)
