from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Header, status
from sqlalchemy.orm import Session

from dealerdb.database import get_db, get_read_db
from dealerdb.security import get_current_active_user
from dealerdb.apps.accounts import models as account_models
from dealerdb.apps.numbering import schemas as numbering_schemas

from . import schemas, services

router = APIRouter(prefix="", tags=["workshop"])


def _page(skip: int, limit: int):
    return max(skip, 0), min(max(limit, 1), 500)


@router.get("/workshop/parts", response_model=schemas.WorkshopPartPage)
def list_parts(
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    skip, limit = _page(skip, limit)
    items, total = services.list_parts(db, user_id=current_user.id, search=search, skip=skip, limit=limit)
    return schemas.WorkshopPartPage(items=items, total=total)


@router.put("/workshop/parts", response_model=List[schemas.WorkshopPartRead])
def upsert_parts(
    payload: List[schemas.WorkshopPartIn],
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    parts = services.upsert_parts(db, user_id=current_user.id, parts=payload)
    db.commit()
    for part in parts:
        db.refresh(part)
    return parts


@router.get("/workshop/parts/{part_no}", response_model=schemas.WorkshopPartRead)
def get_part(
    part_no: str,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_part(db, user_id=current_user.id, part_no=part_no)


@router.get("/job-cards", response_model=schemas.JobCardPage)
def list_job_cards(
    search: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    skip, limit = _page(skip, limit)
    items, total = services.list_job_cards(
        db,
        user_id=current_user.id,
        search=search,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return schemas.JobCardPage(items=items, total=total)


@router.get("/job-cards/preview-number", response_model=numbering_schemas.NumberPreview)
def preview_job_card_number(
    on_date: Optional[date] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.preview_job_card_number(db, user_id=current_user.id, on_date=on_date)


@router.get("/job-cards/{job_card_id}", response_model=schemas.JobCardRead)
def get_job_card(
    job_card_id: int,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.get_job_card(db, user_id=current_user.id, job_card_id=job_card_id)


@router.post("/job-cards", response_model=schemas.JobCardRead, status_code=status.HTTP_201_CREATED)
def create_job_card(
    payload: schemas.JobCardCreate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
):
    if not payload.idempotency_key and idempotency_key:
        payload.idempotency_key = idempotency_key
    card = services.create_job_card(db, user_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(card)
    return card


@router.put("/job-cards/{job_card_id}", response_model=schemas.JobCardRead)
def update_job_card(
    job_card_id: int,
    payload: schemas.JobCardUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    card = services.update_job_card(db, user_id=current_user.id, job_card_id=job_card_id, payload=payload)
    db.commit()
    db.refresh(card)
    return card


@router.delete("/job-cards/{job_card_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_job_card(
    job_card_id: int,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    services.delete_job_card(db, user_id=current_user.id, job_card_id=job_card_id)
    db.commit()
