from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy.orm import Session

from pnl.models.safe_settings import SafeSettings, SAFE_SETTINGS_ID
from pnl.services.audit import log_event
from pnl.services.money import d2, money_str, to_dec


@dataclass(frozen=True)
class SafeBaseline:
    initial_balance: Decimal
    effective_date: date


def get_baseline(s: Session) -> SafeBaseline | None:
    """The reserve's baseline, or None when it was never configured."""
    row = s.get(SafeSettings, SAFE_SETTINGS_ID)
    if row is None:
        return None
    return SafeBaseline(initial_balance=to_dec(row.initial_balance), effective_date=row.effective_date)


def put_baseline(s: Session, initial_balance: Decimal, effective_date: date, username: str | None = None) -> SafeBaseline:
    row = s.get(SafeSettings, SAFE_SETTINGS_ID)
    if row is None:
        row = SafeSettings(id=SAFE_SETTINGS_ID)
    row.initial_balance = d2(to_dec(initial_balance))
    row.effective_date = effective_date
    s.add(row)
    s.commit()

    log_event(
        s,
        username=username,
        action="safe.update",
        entity_type="safe_settings",
        entity_id=SAFE_SETTINGS_ID,
        details={"initial_balance": money_str(row.initial_balance), "effective_date": str(effective_date)},
    )
    return get_baseline(s)
