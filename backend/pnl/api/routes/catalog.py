from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import select

from pnl.api.deps import db, current_user, require_admin
from pnl.models.catalog import BusinessUnit, Category
from pnl.schemas.entity import BusinessUnitCreate, BusinessUnitOut, CategoryCreate, CategoryOut

router = APIRouter(tags=["catalog"])


@router.get("/categories", response_model=list[CategoryOut])
def list_categories(s: Session = Depends(db), u=Depends(current_user)):
    return s.execute(select(Category).order_by(Category.type.asc(), Category.name.asc())).scalars().all()


@router.post("/categories", response_model=CategoryOut, status_code=201)
def create_category(body: CategoryCreate, s: Session = Depends(db), u=Depends(require_admin)):
    nm = body.name.strip()
    if not nm:
        raise HTTPException(status_code=400, detail="name_required")
    c = Category(name=nm, type=body.type)
    s.add(c)
    s.commit()
    s.refresh(c)
    return c


@router.get("/business-units", response_model=list[BusinessUnitOut])
def list_business_units(s: Session = Depends(db), u=Depends(current_user)):
    return s.execute(select(BusinessUnit).order_by(BusinessUnit.name.asc())).scalars().all()


@router.post("/business-units", response_model=BusinessUnitOut, status_code=201)
def create_business_unit(body: BusinessUnitCreate, s: Session = Depends(db), u=Depends(require_admin)):
    nm = body.name.strip()
    if not nm:
        raise HTTPException(status_code=400, detail="name_required")
    exists = s.execute(select(BusinessUnit).where(BusinessUnit.name == nm)).scalar_one_or_none()
    if exists:
        raise HTTPException(status_code=409, detail="business_unit_exists")
    bu = BusinessUnit(name=nm)
    s.add(bu)
    s.commit()
    s.refresh(bu)
    return bu
