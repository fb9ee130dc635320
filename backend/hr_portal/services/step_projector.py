from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from hr_portal.core.workflow_catalog import WorkflowCatalog
from hr_portal.schemas.approvals import ApprovalRecord

UNKNOWN_ROLE = "Unknown"
NO_APPROVER = "N/A"


@dataclass(frozen=True)
class ProjectedStep:
    level: int
    role: str
    description: str
    status: str
    approval_id: str | None = None
    approver_name: str | None = None
    approver_email: str | None = None
    comments: str | None = None
    processed_at: datetime | None = None


class StepProjector:
    """Turns a request type (and its approval records) into display steps.

    Pure and synchronous; the catalog is injected so alternate workflow tables
    can be projected in tests.
    """

    def __init__(self, catalog: WorkflowCatalog) -> None:
        self.catalog = catalog

    def project_submitted(
        self, request_type: str, records: Iterable[ApprovalRecord]
    ) -> list[ProjectedStep]:
        """One step per record, ordered by level.

        Records whose level is missing from the catalog still produce a step
        ("Unknown" / "Level n") so an approval action is never hidden.
        """

        ordered = sorted(records or [], key=lambda r: r.approval_level)
        steps: list[ProjectedStep] = []
        for record in ordered:
            definition = self.catalog.step_definition_at(request_type, record.approval_level)
            approver = record.approver
            steps.append(
                ProjectedStep(
                    level=record.approval_level,
                    role=definition.approver_role if definition else UNKNOWN_ROLE,
                    description=(
                        definition.description if definition else f"Level {record.approval_level}"
                    ),
                    status=record.status,
                    approval_id=record.id,
                    approver_name=(approver.full_name if approver and approver.full_name else NO_APPROVER),
                    approver_email=approver.email if approver else None,
                    comments=record.comments,
                    processed_at=record.processed_at,
                )
            )
        return steps

    def project_preview(self, request_type: str) -> list[ProjectedStep]:
        return [
            ProjectedStep(
                level=step.level,
                role=step.approver_role,
                description=step.description,
                status="pending",
            )
            for step in self.catalog.chain_for(request_type)
        ]
