import json

from hr_portal import models
from hr_portal.services.audit import audit_event


def test_audit_event_persists(db_session):
    log_id = audit_event(
        "approval.approve",
        "user-1",
        {"comments": "ok"},
        db=db_session,
        actor_role="Director",
        approval_id="apv-2",
        request_type="account_request",
        approval_level=2,
        request_id="rid-9",
    )

    log = db_session.get(models.AuditLog, log_id)
    assert log.outcome == "succeeded"
    assert log.actor_role == "Director"
    assert json.loads(log.payload_json) == {"comments": "ok"}


def test_audit_event_is_idempotent(db_session):
    first = audit_event("approval.reject", "user-1", {}, db=db_session, idempotency_key="k-1")
    second = audit_event("approval.reject", "user-1", {}, db=db_session, idempotency_key="k-1")

    assert first == second
    assert db_session.query(models.AuditLog).count() == 1


def test_audit_event_opens_its_own_session():
    log_id = audit_event("approval.approve", None, {"note": "no session"})
    assert log_id is not None
