from __future__ import annotations

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Optional

from hr_portal.core.workflow_catalog import ApprovalPrecondition, RequestType, WorkflowCatalog
from hr_portal.schemas.approvals import (
    ApprovalRecord,
    CurrentUser,
    PendingApproval,
    RequestDocument,
)
from hr_portal.services.approval_api import (
    ApprovalApiClient,
    ApprovalApiError,
    ApprovalApiUnavailable,
)
from hr_portal.services.approval_progress import (
    ApprovalProgress,
    RoleChange,
    can_act_on_level,
    classify_role_change,
    derive_progress,
)
from hr_portal.services.step_projector import ProjectedStep, StepProjector

logger = logging.getLogger("hr_portal.orchestrator")


class ApprovalInFlightError(Exception):
    def __init__(self, approval_id: str) -> None:
        super().__init__(f"A decision for approval {approval_id} is already being processed")
        self.approval_id = approval_id


class PreconditionFailedError(Exception):
    def __init__(self, precondition: ApprovalPrecondition) -> None:
        super().__init__(precondition.message or precondition.code)
        self.precondition = precondition


class ApprovalNotInInboxError(Exception):
    def __init__(self, approval_id: str) -> None:
        super().__init__(f"Approval {approval_id} is not pending for the current user")
        self.approval_id = approval_id


class InFlightRegistry:
    """Approval ids with a decision currently being relayed to the backend."""

    def __init__(self) -> None:
        self._lock = Lock()
        self._ids: set[str] = set()

    def acquire(self, approval_id: str) -> bool:
        with self._lock:
            if approval_id in self._ids:
                return False
            self._ids.add(approval_id)
            return True

    def release(self, approval_id: str) -> None:
        with self._lock:
            self._ids.discard(approval_id)

    def __contains__(self, approval_id: object) -> bool:
        with self._lock:
            return approval_id in self._ids


@dataclass(frozen=True)
class DocumentUpload:
    filename: str
    content: bytes
    content_type: Optional[str] = None


@dataclass(frozen=True)
class InboxItem:
    approval_id: str
    approval_level: int
    status: str
    request_id: Optional[str]
    request_type: str
    workflow_name: str
    steps: list[ProjectedStep]
    progress: ApprovalProgress
    can_approve: bool
    can_reject: bool
    preconditions: list[ApprovalPrecondition] = field(default_factory=list)
    requester_name: Optional[str] = None
    requester_email: Optional[str] = None
    subject_name: Optional[str] = None
    target_role: Optional[str] = None
    target_division: Optional[str] = None
    role_change: Optional[RoleChange] = None


@dataclass(frozen=True)
class RequestDetail:
    request_id: str
    request_type: str
    workflow_name: str
    steps: list[ProjectedStep]
    progress: ApprovalProgress
    status: Optional[str] = None
    requester_name: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class WorkflowPreview:
    request_type: str
    name: str
    steps: list[ProjectedStep]


@dataclass(frozen=True)
class ApprovalDocuments:
    """Supporting documents an approver reviews before deciding."""

    approval_id: str
    request_type: str
    documents: list[RequestDocument]
    precondition_documents: list[RequestDocument]


@dataclass(frozen=True)
class DecisionOutcome:
    decision: str
    approval: ApprovalRecord
    inbox: Optional[list[InboxItem]]
    message: str


def preview_workflow(
    catalog: WorkflowCatalog, projector: StepProjector, request_type: str
) -> WorkflowPreview:
    return WorkflowPreview(
        request_type=request_type,
        name=catalog.name_for(request_type),
        steps=projector.project_preview(request_type),
    )


class ApprovalOrchestrator:
    """Drives the approver inbox: what is actionable, and relaying decisions.

    The HR backend is the source of truth. Decisions are never applied
    locally; after every successful command the inbox is fetched again.
    """

    def __init__(
        self,
        catalog: WorkflowCatalog,
        projector: StepProjector,
        client: ApprovalApiClient,
        inflight: InFlightRegistry,
        actor: CurrentUser | None = None,
    ) -> None:
        self.catalog = catalog
        self.projector = projector
        self.client = client
        self.inflight = inflight
        self._actor = actor
        self._pending: dict[str, PendingApproval] = {}
        self.inbox: list[InboxItem] = []

    @property
    def actor(self) -> CurrentUser:
        if self._actor is None:
            self._actor = self.client.fetch_current_user()
        return self._actor

    @property
    def known_actor(self) -> CurrentUser | None:
        """The acting user if already resolved; never calls the backend."""
        return self._actor

    def cached_approval(self, approval_id: str) -> PendingApproval | None:
        return self._pending.get(approval_id)

    def preview(self, request_type: str) -> WorkflowPreview:
        return preview_workflow(self.catalog, self.projector, request_type)

    def load_detail(self, request_id: str) -> RequestDetail:
        request = self.client.fetch_request_with_approvals(request_id)
        steps = self.projector.project_submitted(request.request_type, request.approvals)
        return RequestDetail(
            request_id=request.id,
            request_type=request.request_type,
            workflow_name=self.catalog.name_for(request.request_type),
            steps=steps,
            progress=derive_progress(steps),
            status=request.status,
            requester_name=request.requester_name,
            email=request.email,
            notes=request.notes,
        )

    def load_inbox(self) -> list[InboxItem]:
        pending = self.client.fetch_my_pending_approvals()
        role = self.actor.role_name
        self._pending = {p.id: p for p in pending}
        self.inbox = [self._inbox_item(p, role) for p in pending]
        return self.inbox

    def _inbox_item(self, approval: PendingApproval, actor_role: Optional[str]) -> InboxItem:
        request_type = approval.effective_request_type
        records = approval.timeline or [approval]
        steps = self.projector.project_submitted(request_type, records)
        progress = derive_progress(steps)
        actionable = approval.status == "pending" and can_act_on_level(steps, approval.approval_level)

        request = approval.request
        role_change = None
        target_role = None
        subject_name = None
        target_division = None
        if request is not None:
            target_role = request.requested_role.name if request.requested_role else None
            target_division = request.division.name if request.division else None
            subject_name = request.user.full_name if request.user else None
            if request_type == "promotion":
                current = request.user.role.hierarchy_level if request.user and request.user.role else None
                requested = request.requested_role.hierarchy_level if request.requested_role else None
                role_change = classify_role_change(current, requested)

        return InboxItem(
            approval_id=approval.id,
            approval_level=approval.approval_level,
            status=approval.status,
            request_id=approval.request_ref,
            request_type=request_type,
            workflow_name=self.catalog.name_for(request_type),
            steps=steps,
            progress=progress,
            can_approve=actionable,
            can_reject=actionable,
            preconditions=self._outstanding_preconditions(
                approval, self._document_preconditions(approval, actor_role)
            ),
            requester_name=request.requester_name if request else None,
            requester_email=request.email if request else None,
            subject_name=subject_name,
            target_role=target_role,
            target_division=target_division,
            role_change=role_change,
        )

    def _pending_approval(self, approval_id: str) -> PendingApproval:
        if approval_id not in self._pending:
            self.load_inbox()
        approval = self._pending.get(approval_id)
        if approval is None:
            raise ApprovalNotInInboxError(approval_id)
        return approval

    def _document_preconditions(
        self, approval: PendingApproval, actor_role: Optional[str]
    ) -> list[ApprovalPrecondition]:
        # Only document preconditions can be checked against the backend.
        return [
            p
            for p in self.catalog.preconditions_for(
                approval.effective_request_type, approval.approval_level, actor_role
            )
            if p.document_type
        ]

    def _outstanding_preconditions(
        self, approval: PendingApproval, required: list[ApprovalPrecondition]
    ) -> list[ApprovalPrecondition]:
        """Preconditions whose document is not attached to the request yet.

        Without a request id nothing can be looked up, so everything stays outstanding.
        """

        request_id = approval.request_ref
        if not request_id:
            return list(required)
        return [
            p
            for p in required
            if not self.client.list_request_documents(request_id, p.document_type)
        ]

    def _check_preconditions(
        self, approval: PendingApproval, contract: DocumentUpload | None
    ) -> list[tuple[ApprovalPrecondition, DocumentUpload]]:
        """Return uploads to perform before approving; raise if a precondition is unmet."""

        required = self._document_preconditions(approval, self.actor.role_name)
        if contract is not None and approval.request_ref:
            return [(p, contract) for p in required]

        outstanding = self._outstanding_preconditions(approval, required)
        if outstanding:
            precondition = outstanding[0]
            logger.info(
                "approval_precondition_failed",
                extra={
                    "approval_id": approval.id,
                    "precondition": precondition.code,
                    "request_type": approval.effective_request_type,
                    "approval_level": approval.approval_level,
                    "has_request_id": bool(approval.request_ref),
                },
            )
            raise PreconditionFailedError(precondition)
        return []

    def load_documents(self, approval_id: str) -> ApprovalDocuments:
        """Documents to show next to an inbox entry.

        Account requests show everything attached to the request; terminations
        show the termination documents of the departing employee. Later levels
        also see the documents earlier levels were required to attach.
        """

        approval = self._pending_approval(approval_id)
        request_type = approval.effective_request_type
        request_id = approval.request_ref

        documents: list[RequestDocument] = []
        if request_type == RequestType.account_request.value and request_id:
            documents = self.client.list_request_documents(request_id)
        elif request_type == RequestType.termination.value:
            subject = approval.request.user if approval.request is not None else None
            if subject is not None and subject.id:
                documents = self.client.list_request_documents(subject.id, "termination")

        precondition_documents: list[RequestDocument] = []
        if request_id:
            for rule in self.catalog.precondition_rules():
                if (
                    rule.request_type == request_type
                    and rule.level < approval.approval_level
                    and rule.precondition.document_type
                ):
                    precondition_documents.extend(
                        self.client.list_request_documents(
                            request_id, rule.precondition.document_type
                        )
                    )

        return ApprovalDocuments(
            approval_id=approval.id,
            request_type=request_type,
            documents=documents,
            precondition_documents=precondition_documents,
        )

    def approve(
        self, approval_id: str, comments: str = "", contract: DocumentUpload | None = None
    ) -> DecisionOutcome:
        return self._decide("approved", approval_id, comments, contract)

    def reject(self, approval_id: str, comments: str = "") -> DecisionOutcome:
        return self._decide("rejected", approval_id, comments, None)

    def _send(
        self,
        decision: str,
        approval: PendingApproval,
        comments: str,
        contract: DocumentUpload | None,
    ) -> tuple[ApprovalRecord, str]:
        if decision == "rejected":
            return self.client.reject(approval.id, comments), "Permintaan berhasil ditolak"

        for precondition, upload in self._check_preconditions(approval, contract):
            self.client.upload_document(
                request_id=approval.request_ref,
                document_type=str(precondition.document_type),
                filename=upload.filename,
                content=upload.content,
                content_type=upload.content_type,
                description=f"{precondition.document_type} for {approval.effective_request_type}",
            )
        return self.client.approve(approval.id, comments), "Permintaan berhasil disetujui"

    def _decide(
        self,
        decision: str,
        approval_id: str,
        comments: str,
        contract: DocumentUpload | None,
    ) -> DecisionOutcome:
        if not self.inflight.acquire(approval_id):
            raise ApprovalInFlightError(approval_id)
        try:
            approval = self._pending_approval(approval_id)
            try:
                record, message = self._send(decision, approval, comments, contract)
            except (ApprovalApiError, ApprovalApiUnavailable) as exc:
                logger.warning(
                    "approval_command_failed",
                    extra={"approval_id": approval_id, "decision": decision, "error": str(exc)},
                )
                raise

            logger.info(
                "approval_command_sent",
                extra={
                    "approval_id": approval_id,
                    "decision": decision,
                    "request_type": approval.effective_request_type,
                    "approval_level": approval.approval_level,
                },
            )

            # The command went through; a failed refresh must not read as a failed decision.
            inbox: Optional[list[InboxItem]]
            try:
                inbox = self.load_inbox()
            except (ApprovalApiError, ApprovalApiUnavailable) as exc:
                logger.warning(
                    "inbox_refresh_failed", extra={"approval_id": approval_id, "error": str(exc)}
                )
                inbox = None
            return DecisionOutcome(decision=decision, approval=record, inbox=inbox, message=message)
        finally:
            self.inflight.release(approval_id)
