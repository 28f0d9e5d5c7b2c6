from pydantic import BaseModel
from datetime import datetime


class AuditOut(BaseModel):
    id: int
    created_at: datetime | None = None
    username: str
    action: str
    entity_type: str
    entity_id: int | None = None
    details: dict | None = None

    class Config:
        from_attributes = True
