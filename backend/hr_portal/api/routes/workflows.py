from __future__ import annotations

# ruff: noqa: B008
from fastapi import APIRouter, Depends

from hr_portal.api.deps import get_catalog, get_projector
from hr_portal.core.workflow_catalog import WorkflowCatalog, WorkflowDefinition
from hr_portal.schemas.workflows import (
    WorkflowDefinitionRead,
    WorkflowPreconditionRead,
    WorkflowPreviewRead,
    WorkflowStepRead,
)
from hr_portal.services.approval_orchestrator import preview_workflow
from hr_portal.services.step_projector import StepProjector

router = APIRouter(prefix="/workflows", tags=["workflows"])


def _definition_read(catalog: WorkflowCatalog, definition: WorkflowDefinition) -> WorkflowDefinitionRead:
    preconditions = [
        WorkflowPreconditionRead(
            level=rule.level,
            approver_role=rule.approver_role,
            code=rule.precondition.code,
            document_type=rule.precondition.document_type,
            message=rule.precondition.message,
        )
        for rule in catalog.precondition_rules()
        if rule.request_type == definition.request_type
    ]
    return WorkflowDefinitionRead(
        request_type=definition.request_type,
        name=definition.name,
        steps=[WorkflowStepRead.model_validate(s) for s in definition.steps],
        preconditions=preconditions,
    )


@router.get("", response_model=list[WorkflowDefinitionRead])
def list_workflows(catalog: WorkflowCatalog = Depends(get_catalog)):
    return [_definition_read(catalog, d) for d in catalog.definitions()]


@router.get("/{request_type}", response_model=WorkflowDefinitionRead)
def get_workflow(request_type: str, catalog: WorkflowCatalog = Depends(get_catalog)):
    definition = catalog.definition_for(request_type)
    if definition is None:
        # Unknown types render as an empty chain, not an error.
        return WorkflowDefinitionRead(request_type=request_type, name=request_type, steps=[])
    return _definition_read(catalog, definition)


@router.get("/{request_type}/preview", response_model=WorkflowPreviewRead)
def get_workflow_preview(
    request_type: str,
    catalog: WorkflowCatalog = Depends(get_catalog),
    projector: StepProjector = Depends(get_projector),
):
    """Steps a new request of this type will go through, all pending."""
    return WorkflowPreviewRead.model_validate(preview_workflow(catalog, projector, request_type))
