from __future__ import annotations

from datetime import date

from sqlalchemy import update
from sqlalchemy.orm import Session

from pnl.core.errors import NotFoundError, ValidationError
from pnl.models.catalog import BusinessUnit
from pnl.models.finance_record import FinanceRecord
from pnl.models.legal_entity import LegalEntity
from pnl.services.audit import log_event
from pnl.services.money import d2, money_str, to_dec


def _details(le: LegalEntity) -> dict:
    return {
        "name": le.name,
        "business_unit_id": le.business_unit_id,
        "initial_balance": money_str(le.initial_balance),
        "effective_date": str(le.effective_date),
    }


def require_entity(s: Session, entity_id: int) -> LegalEntity:
    le = s.get(LegalEntity, entity_id)
    if le is None:
        raise NotFoundError("legal_entity_not_found")
    return le


def create_entity(s: Session, values: dict, username: str | None = None, today: date | None = None) -> LegalEntity:
    nm = (values.get("name") or "").strip()
    if not nm:
        raise ValidationError("name_required")
    bu = values.get("business_unit_id")
    if bu is not None and s.get(BusinessUnit, bu) is None:
        raise NotFoundError("business_unit_not_found")

    # without an explicit date, activity counts from January 1st of the current year
    eff = values.get("effective_date") or date((today or date.today()).year, 1, 1)
    le = LegalEntity(
        name=nm,
        business_unit_id=bu,
        initial_balance=d2(to_dec(values.get("initial_balance"))),
        effective_date=eff,
    )
    s.add(le)
    s.commit()
    s.refresh(le)

    log_event(s, username=username, action="legal_entity.create", entity_type="legal_entity", entity_id=le.id, details=_details(le))
    return le


def update_entity(s: Session, entity_id: int, values: dict, username: str | None = None) -> LegalEntity:
    le = require_entity(s, entity_id)
    if values.get("name") is not None:
        nm = values["name"].strip()
        if not nm:
            raise ValidationError("name_required")
        le.name = nm
    if values.get("initial_balance") is not None:
        le.initial_balance = d2(to_dec(values["initial_balance"]))
    if values.get("effective_date") is not None:
        le.effective_date = values["effective_date"]
    s.add(le)
    s.commit()
    s.refresh(le)

    log_event(s, username=username, action="legal_entity.update", entity_type="legal_entity", entity_id=le.id, details=_details(le))
    return le


def delete_entity(s: Session, entity_id: int, username: str | None = None) -> None:
    le = require_entity(s, entity_id)
    details = _details(le)

    s.execute(
        update(FinanceRecord)
        .where(FinanceRecord.legal_entity_id == entity_id)
        .values(legal_entity_id=None)
        .execution_options(synchronize_session=False)
    )
    s.delete(le)
    s.commit()

    log_event(s, username=username, action="legal_entity.delete", entity_type="legal_entity", entity_id=entity_id, details=details)
