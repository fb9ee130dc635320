from hr_portal.schemas.approvals import (
    ApprovalRecord,
    ApprovalRejectCreate,
    CurrentUser,
    DecisionResultRead,
    InboxItemRead,
    InboxRead,
    PendingApproval,
    ProjectedStepRead,
    RequestDetailRead,
    RequestWithApprovals,
)
from hr_portal.schemas.audit import AuditLogRead
from hr_portal.schemas.workflows import (
    WorkflowDefinitionRead,
    WorkflowPreviewRead,
    WorkflowStepRead,
)

__all__ = [
    "ApprovalRecord",
    "ApprovalRejectCreate",
    "AuditLogRead",
    "CurrentUser",
    "DecisionResultRead",
    "InboxItemRead",
    "InboxRead",
    "PendingApproval",
    "ProjectedStepRead",
    "RequestDetailRead",
    "RequestWithApprovals",
    "WorkflowDefinitionRead",
    "WorkflowPreviewRead",
    "WorkflowStepRead",
]
