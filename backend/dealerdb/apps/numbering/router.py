from __future__ import annotations

from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dealerdb.database import get_db, get_read_db
from dealerdb.security import get_current_active_user
from dealerdb.apps.accounts import models as account_models

from . import models, schemas, services

router = APIRouter(prefix="", tags=["settings", "numbering"])


@router.get("/settings", response_model=schemas.DealerSettingsRead)
def read_settings(
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    settings = services.get_settings(db, user_id=current_user.id)
    db.commit()
    return settings


@router.put("/settings", response_model=schemas.DealerSettingsRead)
def update_settings(
    payload: schemas.DealerSettingsUpdate,
    db: Session = Depends(get_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    settings = services.update_settings(db, user_id=current_user.id, payload=payload)
    db.commit()
    db.refresh(settings)
    return settings


@router.get("/numbering/preview", response_model=schemas.NumberPreview)
def preview_number(
    document_type: models.DocumentType,
    on_date: Optional[date] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.preview_number(
        db, user_id=current_user.id, document_type=document_type, on_date=on_date
    )


@router.get("/numbering/counters", response_model=List[schemas.CounterRead])
def list_counters(
    financial_year: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_counters(db, user_id=current_user.id, financial_year=financial_year)


@router.get("/numbering/financial-years", response_model=schemas.FinancialYearList)
def list_financial_years(
    start_year: Optional[int] = None,
    count: int = 5,
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.financial_years(start_year=start_year, count=min(max(count, 1), 20))
