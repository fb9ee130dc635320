from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional, Sequence

from hr_portal.services.step_projector import ProjectedStep

ProgressState = Literal["not_started", "in_progress", "approved", "rejected"]
RoleChange = Literal["promotion", "demotion", "role_change"]


@dataclass(frozen=True)
class ApprovalProgress:
    state: ProgressState
    current_level: Optional[int] = None
    rejected_level: Optional[int] = None
    approved_count: int = 0
    total_steps: int = 0

    @property
    def is_resolved(self) -> bool:
        return self.state in {"approved", "rejected"}


def derive_progress(steps: Sequence[ProjectedStep]) -> ApprovalProgress:
    """Scan steps by ascending level and stop at the first non-approved one.

    - first `pending` -> in progress, that level is current
    - first `rejected` (before any pending) -> terminally rejected, no current level
    - everything approved -> approved
    """

    ordered = sorted(steps, key=lambda s: s.level)
    total = len(ordered)
    if not ordered:
        return ApprovalProgress(state="not_started")

    approved = 0
    for step in ordered:
        if step.status == "approved":
            approved += 1
            continue
        if step.status == "pending":
            return ApprovalProgress(
                state="in_progress",
                current_level=step.level,
                approved_count=approved,
                total_steps=total,
            )
        if step.status == "rejected":
            return ApprovalProgress(
                state="rejected",
                rejected_level=step.level,
                approved_count=approved,
                total_steps=total,
            )

    return ApprovalProgress(state="approved", approved_count=approved, total_steps=total)


def current_level(steps: Sequence[ProjectedStep]) -> Optional[int]:
    return derive_progress(steps).current_level


def is_actionable(step: ProjectedStep) -> bool:
    # Approved / rejected records are final.
    return step.status == "pending"


def can_act_on_level(steps: Sequence[ProjectedStep], level: int) -> bool:
    """True when `level` is pending and is the level the request is waiting on."""

    progress = derive_progress(steps)
    if progress.state != "in_progress" or progress.current_level != level:
        return False
    return any(s.level == level and is_actionable(s) for s in steps)


def classify_role_change(
    current_hierarchy_level: Optional[int], requested_hierarchy_level: Optional[int]
) -> RoleChange:
    """Lower hierarchy numbers are more senior (1 = top of the organisation)."""

    if current_hierarchy_level is None or requested_hierarchy_level is None:
        return "role_change"
    if requested_hierarchy_level < current_hierarchy_level:
        return "promotion"
    if requested_hierarchy_level > current_hierarchy_level:
        return "demotion"
    return "role_change"
