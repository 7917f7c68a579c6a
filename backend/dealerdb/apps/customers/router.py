from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dealerdb.database import get_db, get_read_db
from dealerdb.security import get_current_active_user
from dealerdb.apps.accounts import models as account_models

from . import schemas, services

router = APIRouter(prefix="/customers", tags=["customers"])


@router.get("", response_model=schemas.CustomerPage)
def list_customers(
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    items, total = services.list_customers(
        db, user_id=current_user.id, search=search, skip=max(skip, 0), limit=min(max(limit, 1), 500)
    )
    return schemas.CustomerPage(items=items, total=total)


@router.get("/{customer_id}", response_model=schemas.CustomerRead)
def get_customer(
    customer_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_customer(db, user_id=current_user.id, customer_id=customer_id)


@router.post("", response_model=schemas.CustomerRead, status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: schemas.CustomerCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    customer = services.create_customer(db, user_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(customer)
    return customer


@router.put("/{customer_id}", response_model=schemas.CustomerRead)
def update_customer(
    customer_id: int,
    payload: schemas.CustomerUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    customer = services.update_customer(
        db, user_id=current_user.id, customer_id=customer_id, payload=payload
    )
    db.commit()
    db.refresh(customer)
    return customer


@router.delete("/{customer_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_customer(
    customer_id: int,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    services.delete_customer(db, user_id=current_user.id, customer_id=customer_id)
    db.commit()
