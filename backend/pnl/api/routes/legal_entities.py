from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pnl.api.deps import db, current_user, require_admin
from pnl.schemas.entity import (
    BalanceOut,
    LegalEntityBalanceOut,
    LegalEntityCreate,
    LegalEntityOut,
    LegalEntityUpdate,
)
from pnl.services import legal_entities as entity_svc
from pnl.services.balances import legal_entity_balance, legal_entity_balances

router = APIRouter(prefix="/legal-entities", tags=["legal-entities"])


@router.get("", response_model=list[LegalEntityBalanceOut])
def list_entities(s: Session = Depends(db), u=Depends(current_user)):
    return [
        LegalEntityBalanceOut(**LegalEntityOut.model_validate(le).model_dump(), balance=bal)
        for le, bal in legal_entity_balances(s)
    ]


@router.post("", response_model=LegalEntityOut, status_code=201)
def create_entity(body: LegalEntityCreate, s: Session = Depends(db), u=Depends(require_admin)):
    return entity_svc.create_entity(s, body.model_dump(), username=u.get("sub"))


@router.patch("/{entity_id}", response_model=LegalEntityOut)
def update_entity(entity_id: int, body: LegalEntityUpdate, s: Session = Depends(db), u=Depends(require_admin)):
    return entity_svc.update_entity(s, entity_id, body.model_dump(exclude_unset=True), username=u.get("sub"))


@router.delete("/{entity_id}")
def delete_entity(entity_id: int, s: Session = Depends(db), u=Depends(require_admin)):
    entity_svc.delete_entity(s, entity_id, username=u.get("sub"))
    return {"ok": True}


@router.get("/{entity_id}/balance", response_model=BalanceOut)
def entity_balance(entity_id: int, s: Session = Depends(db), u=Depends(current_user)):
    return BalanceOut(legal_entity_id=entity_id, balance=legal_entity_balance(s, entity_id))
