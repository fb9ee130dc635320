from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict


class AuditLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    outcome: str
    actor_id: Optional[str] = None
    actor_role: Optional[str] = None
    approval_id: Optional[str] = None
    request_type: Optional[str] = None
    approval_level: Optional[int] = None
    payload_json: Optional[str] = None
    request_id: Optional[str] = None
    created_at: Optional[datetime] = None
