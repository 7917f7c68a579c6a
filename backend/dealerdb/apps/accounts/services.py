from __future__ import annotations

import logging
from typing import Optional, Union

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


def _normalise_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user(db: Session, user_id: Union[str, int, None]) -> Optional[models.User]:
    if user_id is None:
        return None
    return db.query(models.User).filter(models.User.id == str(user_id).strip()).first()


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == _normalise_email(email)).first()


def create_user(db: Session, *, payload: schemas.UserCreate) -> models.User:
    email = _normalise_email(payload.email)
    if get_user_by_email(db, email):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"A user with email {email} already exists.",
        )
    user = models.User(
        email=email,
        full_name=payload.full_name.strip(),
        is_admin=payload.is_admin,
        is_active=True,
    )
    db.add(user)
    db.flush()
    logger.info("Dealer user created", extra={"user_id": user.id, "email": email})
    return user


def deactivate_user(db: Session, *, user_id: str) -> models.User:
    user = get_user(db, user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found.")
    user.is_active = False
    db.add(user)
    db.flush()
    return user
