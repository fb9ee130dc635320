from __future__ import annotations

# ruff: noqa: B008
from typing import Any, Optional

from fastapi import APIRouter, Depends, File, Form, Header, Request, UploadFile
from sqlalchemy.orm import Session

from hr_portal.api.deps import get_db, get_orchestrator
from hr_portal.config import settings
from hr_portal.core.observability import request_id_for
from hr_portal.schemas.approvals import (
    ApprovalDocumentsRead,
    ApprovalRecordRead,
    ApprovalRejectCreate,
    DecisionResultRead,
    InboxItemRead,
    InboxRead,
    RequestDetailRead,
)
from hr_portal.services.approval_api import ApprovalApiError, ApprovalApiUnavailable
from hr_portal.services.approval_orchestrator import (
    ApprovalInFlightError,
    ApprovalNotInInboxError,
    ApprovalOrchestrator,
    DecisionOutcome,
    DocumentUpload,
    InboxItem,
    PreconditionFailedError,
)
from hr_portal.services.audit import audit_event

router = APIRouter(prefix="/approvals", tags=["approvals"])

_DECISION_ERRORS = (
    ApprovalApiError,
    ApprovalApiUnavailable,
    PreconditionFailedError,
    ApprovalInFlightError,
    ApprovalNotInInboxError,
)


def _inbox_read(items: list[InboxItem]) -> InboxRead:
    return InboxRead(
        items=[InboxItemRead.model_validate(i) for i in items],
        count=len(items),
        poll_interval_seconds=settings.inbox_poll_interval_seconds,
    )


def _decision_read(outcome: DecisionOutcome) -> DecisionResultRead:
    return DecisionResultRead(
        decision=outcome.decision,
        approval=ApprovalRecordRead.model_validate(outcome.approval),
        message=outcome.message,
        inbox=_inbox_read(outcome.inbox) if outcome.inbox is not None else None,
    )


def _audit_decision(
    *,
    db: Session,
    request: Request,
    orchestrator: ApprovalOrchestrator,
    action: str,
    approval_id: str,
    outcome: str,
    payload: dict[str, Any],
    idempotency_key: str | None = None,
) -> None:
    actor = orchestrator.known_actor
    approval = orchestrator.cached_approval(approval_id)
    audit_event(
        action,
        actor.id if actor else None,
        payload,
        db=db,
        outcome=outcome,
        actor_role=actor.role_name if actor else None,
        approval_id=approval_id,
        request_type=approval.effective_request_type if approval else None,
        approval_level=approval.approval_level if approval else None,
        idempotency_key=idempotency_key,
        request_id=request_id_for(request),
        ip=(request.client.host if request.client else None),
        user_agent=request.headers.get("user-agent"),
    )


@router.get("/inbox", response_model=InboxRead)
def get_inbox(orchestrator: ApprovalOrchestrator = Depends(get_orchestrator)):
    """Approvals waiting on the caller, with projected steps and gating."""
    return _inbox_read(orchestrator.load_inbox())


@router.get("/requests/{request_id}", response_model=RequestDetailRead)
def get_request_detail(
    request_id: str,
    orchestrator: ApprovalOrchestrator = Depends(get_orchestrator),
):
    return RequestDetailRead.model_validate(orchestrator.load_detail(request_id))


@router.get("/{approval_id}/documents", response_model=ApprovalDocumentsRead)
def get_approval_documents(
    approval_id: str,
    orchestrator: ApprovalOrchestrator = Depends(get_orchestrator),
):
    """Supporting documents for an inbox entry, including earlier levels' uploads."""
    return ApprovalDocumentsRead.model_validate(orchestrator.load_documents(approval_id))


@router.post("/{approval_id}/approve", response_model=DecisionResultRead)
def approve(
    approval_id: str,
    request: Request,
    comments: str = Form("", max_length=4000),
    contract: Optional[UploadFile] = File(None),
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    orchestrator: ApprovalOrchestrator = Depends(get_orchestrator),
):
    upload = None
    if contract is not None and contract.filename:
        upload = DocumentUpload(
            filename=contract.filename,
            content=contract.file.read(),
            content_type=contract.content_type,
        )

    try:
        outcome = orchestrator.approve(approval_id, comments, upload)
    except _DECISION_ERRORS as exc:
        _audit_decision(
            db=db,
            request=request,
            orchestrator=orchestrator,
            action="approval.approve",
            approval_id=approval_id,
            outcome="failed",
            payload={"error": str(exc), "error_type": type(exc).__name__},
        )
        raise

    _audit_decision(
        db=db,
        request=request,
        orchestrator=orchestrator,
        action="approval.approve",
        approval_id=approval_id,
        outcome="succeeded",
        payload={
            "comments": comments,
            "contract_uploaded": upload is not None,
            "status": outcome.approval.status,
        },
        idempotency_key=idempotency_key,
    )
    return _decision_read(outcome)


@router.post("/{approval_id}/reject", response_model=DecisionResultRead)
def reject(
    approval_id: str,
    payload: ApprovalRejectCreate,
    request: Request,
    idempotency_key: Optional[str] = Header(None, alias="Idempotency-Key"),
    db: Session = Depends(get_db),
    orchestrator: ApprovalOrchestrator = Depends(get_orchestrator),
):
    try:
        outcome = orchestrator.reject(approval_id, payload.comments)
    except _DECISION_ERRORS as exc:
        _audit_decision(
            db=db,
            request=request,
            orchestrator=orchestrator,
            action="approval.reject",
            approval_id=approval_id,
            outcome="failed",
            payload={"error": str(exc), "error_type": type(exc).__name__},
        )
        raise

    _audit_decision(
        db=db,
        request=request,
        orchestrator=orchestrator,
        action="approval.reject",
        approval_id=approval_id,
        outcome="succeeded",
        payload={"comments": payload.comments, "status": outcome.approval.status},
        idempotency_key=idempotency_key,
    )
    return _decision_read(outcome)
