from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from hr_portal import models
from hr_portal.api.deps import get_db
from hr_portal.schemas.audit import AuditLogRead

router = APIRouter(prefix="/audit-logs", tags=["audit"])


@router.get("", response_model=list[AuditLogRead])
def list_audit_logs(
    approval_id: Optional[str] = Query(None),  # noqa: B008
    action: Optional[str] = Query(None),  # noqa: B008
    outcome: Optional[str] = Query(None),  # noqa: B008
    limit: int = Query(50, ge=1, le=500),  # noqa: B008
    db: Session = Depends(get_db),  # noqa: B008
):
    q = db.query(models.AuditLog)
    if approval_id:
        q = q.filter(models.AuditLog.approval_id == approval_id)
    if action:
        q = q.filter(models.AuditLog.action == action)
    if outcome:
        q = q.filter(models.AuditLog.outcome == outcome)
    return q.order_by(models.AuditLog.id.desc()).limit(limit).all()
