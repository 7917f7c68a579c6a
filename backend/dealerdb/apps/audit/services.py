from __future__ import annotations

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from . import models, schemas

logger = logging.getLogger(__name__)


def create_audit_event(
    db: Session,
    *,
    user_id: str,
    data: schemas.AuditEventCreate,
) -> models.AuditEvent:
    event = models.AuditEvent(
        user_id=user_id,
        entity_type=data.entity_type,
        entity_id=data.entity_id,
        action=data.action,
        before=data.before,
        after=data.after,
        metadata_json=data.metadata,
    )
    if data.occurred_at is not None:
        event.occurred_at = data.occurred_at
    db.add(event)
    db.flush()
    return event


def log_event(
    db: Session,
    *,
    user_id: str,
    entity_type: str,
    entity_id: str,
    action: str,
    before: Optional[dict] = None,
    after: Optional[dict] = None,
    metadata: Optional[dict] = None,
    critical: bool = False,
) -> Optional[models.AuditEvent]:
    """
    Best-effort audit event logger.
    - For critical actions, raise on failure.
    - For non-critical actions, log warning and continue.
    """
    try:
        return create_audit_event(
            db,
            user_id=user_id,
            data=schemas.AuditEventCreate(
                entity_type=entity_type,
                entity_id=str(entity_id),
                action=action,
                before=before,
                after=after,
                metadata=metadata,
            ),
        )
    except Exception:
        logger.warning(
            "Failed to log audit event",
            exc_info=True,
            extra={
                "user_id": user_id,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "action": action,
                "critical": critical,
            },
        )
        if critical:
            raise
        return None


def list_audit_events(
    db: Session,
    *,
    user_id: str,
    entity_type: Optional[str] = None,
    entity_id: Optional[str] = None,
    start: Optional[datetime] = None,
    end: Optional[datetime] = None,
    limit: int = 200,
) -> List[models.AuditEvent]:
    query = db.query(models.AuditEvent).filter(models.AuditEvent.user_id == user_id)
    if entity_type:
        query = query.filter(models.AuditEvent.entity_type == entity_type)
    if entity_id:
        query = query.filter(models.AuditEvent.entity_id == entity_id)
    if start:
        query = query.filter(models.AuditEvent.occurred_at >= start)
    if end:
        query = query.filter(models.AuditEvent.occurred_at <= end)
    return query.order_by(models.AuditEvent.occurred_at.desc()).limit(limit).all()
