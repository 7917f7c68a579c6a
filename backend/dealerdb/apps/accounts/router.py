from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from dealerdb.database import get_db
from dealerdb.security import get_current_active_user, require_admin

from . import models, schemas, services

router = APIRouter(prefix="/accounts", tags=["accounts"])


@router.get("/me", response_model=schemas.UserRead)
def read_me(current_user: models.User = Depends(get_current_active_user)):
    return current_user


@router.post("/users", response_model=schemas.UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: schemas.UserCreate,
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    user = services.create_user(db, payload=payload)
    db.commit()
    db.refresh(user)
    return user


@router.post("/users/{user_id}/deactivate", response_model=schemas.UserRead)
def deactivate_user(
    user_id: str,
    db: Session = Depends(get_db),
    _admin: models.User = Depends(require_admin),
):
    user = services.deactivate_user(db, user_id=user_id)
    db.commit()
    db.refresh(user)
    return user
