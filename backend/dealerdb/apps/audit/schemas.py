from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class AuditEventCreate(BaseModel):
    entity_type: str
    entity_id: str
    action: str
    occurred_at: Optional[datetime] = None
    before: Optional[dict] = None
    after: Optional[dict] = None
    metadata: Optional[dict] = None


class AuditEventRead(BaseModel):
    id: str
    user_id: str
    entity_type: str
    entity_id: str
    action: str
    occurred_at: datetime
    before: Optional[dict] = None
    after: Optional[dict] = None
    metadata: Optional[dict] = Field(default=None, validation_alias="metadata_json")

    class Config:
        from_attributes = True
        populate_by_name = True
