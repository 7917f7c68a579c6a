from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from dealerdb.database import get_read_db
from dealerdb.security import get_current_active_user
from dealerdb.apps.accounts import models as account_models

from . import schemas, services

router = APIRouter(prefix="/reports", tags=["reports"])


@router.get("/stock-summary", response_model=schemas.StockSummary)
def stock_summary(
    model_name: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.stock_summary(db, user_id=current_user.id, model_name=model_name)


@router.get("/track-vehicle", response_model=List[schemas.VehicleTrack])
def track_vehicle(
    q: str = Query(..., min_length=1),
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.track_vehicle(db, user_id=current_user.id, term=q)


@router.get("/consistency", response_model=List[schemas.ConsistencyIssue])
def consistency(
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.consistency_report(db, user_id=current_user.id)


@router.get("/sales-register", response_model=schemas.SalesRegister)
def sales_register(
    financial_year: Optional[str] = None,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.sales_register(db, user_id=current_user.id, financial_year=financial_year)
