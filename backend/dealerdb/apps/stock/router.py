from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from dealerdb.database import get_read_db
from dealerdb.security import get_current_active_user
from dealerdb.apps.accounts import models as account_models

from . import schemas, services

router = APIRouter(prefix="/stock", tags=["stock"])


@router.get("", response_model=schemas.StockPage)
def list_stock(
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    items, total = services.list_stock(
        db, user_id=current_user.id, search=search, skip=max(skip, 0), limit=min(max(limit, 1), 500)
    )
    return schemas.StockPage(items=items, total=total)


@router.get("/search", response_model=List[schemas.StockUnitRead])
def search_stock(
    q: str = Query(..., min_length=1),
    limit: int = 20,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.search_stock(db, user_id=current_user.id, term=q, limit=min(max(limit, 1), 100))


@router.get("/check", response_model=schemas.StockCheck)
def check_stock(
    chassis_no: Optional[str] = None,
    engine_no: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    if not chassis_no and not engine_no:
        raise HTTPException(status_code=400, detail="Provide chassis_no or engine_no.")
    return services.check_existence(
        db, user_id=current_user.id, chassis_no=chassis_no, engine_no=engine_no
    )


@router.get("/{chassis_no}", response_model=schemas.StockUnitRead)
def get_stock_unit(
    chassis_no: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    unit = services.get_unit(db, user_id=current_user.id, chassis_no=chassis_no)
    if not unit:
        raise HTTPException(status_code=404, detail="Vehicle not in stock.")
    return unit
