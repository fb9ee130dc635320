from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict

from hr_portal.schemas.approvals import ProjectedStepRead


class WorkflowStepRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level: int
    approver_role: str
    description: str


class WorkflowPreconditionRead(BaseModel):
    level: int
    approver_role: str
    code: str
    document_type: Optional[str] = None
    message: str = ""


class WorkflowDefinitionRead(BaseModel):
    request_type: str
    name: str
    steps: list[WorkflowStepRead]
    preconditions: list[WorkflowPreconditionRead] = []


class WorkflowPreviewRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    request_type: str
    name: str
    steps: list[ProjectedStepRead]
