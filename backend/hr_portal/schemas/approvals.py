"""Payloads exchanged with the HR backend.

The backend serialises Mongo documents, so ids arrive as `_id` and references
are either a bare id string or the populated document. Everything is
validated here so the projector only ever sees well-formed records.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

ApprovalStatus = Literal["pending", "approved", "rejected"]


def _ref_id(value: Any) -> Any:
    if isinstance(value, dict):
        return value.get("_id") or value.get("id")
    return value


class _BackendModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class RoleRef(_BackendModel):
    id: Optional[str] = Field(default=None, alias="_id")
    name: str
    hierarchy_level: Optional[int] = None


class DivisionRef(_BackendModel):
    id: Optional[str] = Field(default=None, alias="_id")
    name: Optional[str] = None


class PersonRef(_BackendModel):
    id: Optional[str] = Field(default=None, alias="_id")
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[RoleRef] = Field(default=None, alias="role_id")
    division: Optional[DivisionRef] = Field(default=None, alias="division_id")

    @model_validator(mode="before")
    @classmethod
    def _accept_bare_id(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"_id": data}
        return data

    @field_validator("role", "division", mode="before")
    @classmethod
    def _drop_unpopulated(cls, v: Any) -> Any:
        # An unpopulated reference carries no name; treat it as unknown.
        if isinstance(v, str):
            return None
        return v

    @property
    def role_name(self) -> Optional[str]:
        return self.role.name if self.role is not None else None


class ApprovalRecord(_BackendModel):
    id: str = Field(alias="_id")
    approval_level: int = Field(..., ge=1)
    status: ApprovalStatus
    approver: Optional[PersonRef] = Field(default=None, alias="approver_id")
    comments: str = ""
    processed_at: Optional[datetime] = None
    request_type: Optional[str] = None
    request_ref: Optional[str] = Field(default=None, alias="request_id")

    @field_validator("request_ref", mode="before")
    @classmethod
    def _request_ref_id(cls, v: Any) -> Any:
        v = _ref_id(v)
        return str(v) if v is not None else None

    @field_validator("comments", mode="before")
    @classmethod
    def _comments_default(cls, v: Any) -> Any:
        return "" if v is None else v


class RequestSummary(_BackendModel):
    id: str = Field(alias="_id")
    request_type: str = "account_request"
    status: Optional[str] = None
    requester_name: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    requested_role: Optional[RoleRef] = None
    division: Optional[DivisionRef] = Field(default=None, alias="division_id")
    user: Optional[PersonRef] = Field(default=None, alias="user_id")
    requested_by: Optional[PersonRef] = None

    @field_validator("request_type", mode="before")
    @classmethod
    def _default_request_type(cls, v: Any) -> Any:
        return v or "account_request"

    @field_validator("requested_role", "division", mode="before")
    @classmethod
    def _drop_unpopulated(cls, v: Any) -> Any:
        if isinstance(v, str):
            return None
        return v


class RequestWithApprovals(RequestSummary):
    approvals: list[ApprovalRecord] = Field(default_factory=list)

    @field_validator("approvals", mode="before")
    @classmethod
    def _approvals_default(cls, v: Any) -> Any:
        return v or []


class PendingApproval(ApprovalRecord):
    """One entry of the approver's inbox: the record, its request and siblings."""

    request: Optional[RequestSummary] = None
    timeline: list[ApprovalRecord] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _split_populated_request(cls, data: Any) -> Any:
        if isinstance(data, dict) and isinstance(data.get("request_id"), dict):
            data = dict(data)
            data.setdefault("request", data["request_id"])
        return data

    @field_validator("timeline", mode="before")
    @classmethod
    def _timeline_default(cls, v: Any) -> Any:
        return v or []

    @property
    def effective_request_type(self) -> str:
        if self.request is not None and self.request.request_type:
            return self.request.request_type
        return self.request_type or "account_request"


class CurrentUser(_BackendModel):
    id: str = Field(alias="_id")
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: Optional[RoleRef] = Field(default=None, alias="role_id")

    @field_validator("role", mode="before")
    @classmethod
    def _drop_unpopulated(cls, v: Any) -> Any:
        if isinstance(v, str):
            return None
        return v

    @property
    def role_name(self) -> Optional[str]:
        return self.role.name if self.role is not None else None


class RequestDocument(_BackendModel):
    id: str = Field(alias="_id")
    document_type: Optional[str] = None
    file_name: Optional[str] = None
    view_url: Optional[str] = None
    file_url: Optional[str] = None
    created_at: Optional[datetime] = None


# ---- portal-facing payloads ----


class ApprovalRejectCreate(BaseModel):
    comments: str = Field(default="", max_length=4000)


class ProjectedStepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level: int
    role: str
    description: str
    status: ApprovalStatus
    approval_id: Optional[str] = None
    approver_name: Optional[str] = None
    approver_email: Optional[str] = None
    comments: Optional[str] = None
    processed_at: Optional[datetime] = None


class ApprovalProgressRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    state: Literal["not_started", "in_progress", "approved", "rejected"]
    current_level: Optional[int] = None
    rejected_level: Optional[int] = None
    approved_count: int = 0
    total_steps: int = 0


class PreconditionRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    document_type: Optional[str] = None
    message: str = ""


class InboxItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    approval_id: str
    approval_level: int
    status: ApprovalStatus
    request_id: Optional[str] = None
    request_type: str
    workflow_name: str
    requester_name: Optional[str] = None
    requester_email: Optional[str] = None
    subject_name: Optional[str] = None
    target_role: Optional[str] = None
    target_division: Optional[str] = None
    role_change: Optional[Literal["promotion", "demotion", "role_change"]] = None
    steps: list[ProjectedStepRead]
    progress: ApprovalProgressRead
    can_approve: bool
    can_reject: bool
    preconditions: list[PreconditionRead] = Field(default_factory=list)


class InboxRead(BaseModel):
    items: list[InboxItemRead]
    count: int
    poll_interval_seconds: int


class RequestDetailRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_id: str
    request_type: str
    workflow_name: str
    status: Optional[str] = None
    requester_name: Optional[str] = None
    email: Optional[str] = None
    notes: Optional[str] = None
    steps: list[ProjectedStepRead]
    progress: ApprovalProgressRead


class ApprovalRecordRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    approval_level: int
    status: ApprovalStatus
    comments: str = ""
    processed_at: Optional[datetime] = None


class RequestDocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    document_type: Optional[str] = None
    file_name: Optional[str] = None
    view_url: Optional[str] = None
    file_url: Optional[str] = None
    created_at: Optional[datetime] = None


class ApprovalDocumentsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    approval_id: str
    request_type: str
    documents: list[RequestDocumentRead] = Field(default_factory=list)
    precondition_documents: list[RequestDocumentRead] = Field(default_factory=list)


class DecisionResultRead(BaseModel):
    decision: Literal["approved", "rejected"]
    approval: ApprovalRecordRead
    message: str
    inbox: Optional[InboxRead] = None
