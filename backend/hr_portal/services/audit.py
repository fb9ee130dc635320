import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger("hr_portal.audit")


def audit_event(
    action: str,
    actor_id: Optional[str],
    payload: Dict[str, Any],
    *,
    db: Session | None = None,
    outcome: str = "succeeded",
    actor_role: str | None = None,
    approval_id: str | None = None,
    request_type: str | None = None,
    approval_level: int | None = None,
    idempotency_key: str | None = None,
    request_id: str | None = None,
    ip: str | None = None,
    user_agent: str | None = None,
) -> Optional[int]:
    """
    Persist an audit event; if the DB write fails, fall back to the log.

    Returns the created audit log id when available.
    """
    event = {
        "action": action,
        "actor_id": actor_id,
        "outcome": outcome,
        "payload": payload,
        "timestamp": datetime.utcnow().isoformat(),
    }

    created_session = False
    session: Session | None = db
    try:
        from hr_portal import models

        if session is None:
            from hr_portal.database import SessionLocal

            session = SessionLocal()
            created_session = True

        if idempotency_key:
            existing = (
                session.query(models.AuditLog)
                .filter(models.AuditLog.idempotency_key == idempotency_key)
                .first()
            )
            if existing is not None:
                return existing.id

        log = models.AuditLog(
            action=action,
            actor_id=actor_id,
            actor_role=actor_role,
            approval_id=approval_id,
            request_type=request_type,
            approval_level=approval_level,
            outcome=outcome,
            payload_json=json.dumps(payload or {}, default=str),
            idempotency_key=idempotency_key,
            request_id=request_id,
            ip=ip,
            user_agent=user_agent,
        )
        session.add(log)
        session.commit()
        session.refresh(log)
        return log.id
    except SQLAlchemyError:
        if session is not None:
            session.rollback()
        logger.exception("audit_write_failed", extra={"event": event})
        return None
    finally:
        if created_session and session is not None:
            session.close()
