from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Query, status
from sqlalchemy.orm import Session

from dealerdb.database import get_db, get_read_db
from dealerdb.security import get_current_active_user
from dealerdb.apps.accounts import models as account_models

from . import schemas, services

router = APIRouter(prefix="", tags=["purchases"])


def _page(skip: int, limit: int):
    return max(skip, 0), min(max(limit, 1), 500)


@router.get("/purchases", response_model=schemas.PurchasePage)
def list_purchases(
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    skip, limit = _page(skip, limit)
    items, total = services.list_purchases(
        db,
        user_id=current_user.id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return schemas.PurchasePage(items=items, total=total)


@router.get("/purchases/search-for-return", response_model=List[schemas.PurchaseForReturn])
def search_purchases_for_return(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.search_purchases_for_return(db, user_id=current_user.id, term=q)


@router.get("/purchases/{purchase_id}", response_model=schemas.PurchaseRead)
def get_purchase(
    purchase_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_purchase(db, user_id=current_user.id, purchase_id=purchase_id)


@router.post("/purchases", response_model=schemas.PurchaseRead, status_code=status.HTTP_201_CREATED)
def create_purchase(
    payload: schemas.PurchaseCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    if not payload.idempotency_key and idempotency_key:
        payload.idempotency_key = idempotency_key
    purchase = services.create_purchase(db, user_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(purchase)
    return purchase


@router.put("/purchases/{purchase_id}", response_model=schemas.PurchaseRead)
def update_purchase(
    purchase_id: int,
    payload: schemas.PurchaseUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    purchase = services.update_purchase(db, user_id=current_user.id, purchase_id=purchase_id, payload=payload)
    db.commit()
    db.refresh(purchase)
    return purchase


@router.delete("/purchases/{purchase_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_purchase(
    purchase_id: int,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    services.delete_purchase(db, user_id=current_user.id, purchase_id=purchase_id)
    db.commit()


@router.get("/purchase-returns", response_model=schemas.PurchaseReturnPage)
def list_purchase_returns(
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    skip, limit = _page(skip, limit)
    items, total = services.list_purchase_returns(
        db,
        user_id=current_user.id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return schemas.PurchaseReturnPage(items=items, total=total)


@router.get("/purchase-returns/{return_id}", response_model=schemas.PurchaseReturnRead)
def get_purchase_return(
    return_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_purchase_return(db, user_id=current_user.id, return_id=return_id)


@router.post("/purchase-returns", response_model=schemas.PurchaseReturnRead, status_code=status.HTTP_201_CREATED)
def create_purchase_return(
    payload: schemas.PurchaseReturnCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    if not payload.idempotency_key and idempotency_key:
        payload.idempotency_key = idempotency_key
    purchase_return = services.create_purchase_return(db, user_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(purchase_return)
    return purchase_return


@router.delete("/purchase-returns/{return_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_purchase_return(
    return_id: int,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    services.delete_purchase_return(db, user_id=current_user.id, return_id=return_id)
    db.commit()
