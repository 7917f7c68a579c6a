from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dealerdb.database import get_read_db
from dealerdb.security import get_current_active_user
from dealerdb.apps.accounts import models as account_models

from . import schemas, services

router = APIRouter(prefix="/audit", tags=["audit"])


@router.get("/events", response_model=List[schemas.AuditEventRead])
def list_events(
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 200,
    db: Session = Depends(get_read_db),
    current_user: account_models.User = Depends(get_current_active_user),
):
    return services.list_audit_events(
        db,
        user_id=current_user.id,
        entity_type=entity_type,
        entity_id=entity_id,
        start=start,
        end=end,
        limit=min(max(limit, 1), 1000),
    )
