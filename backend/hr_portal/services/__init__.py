from hr_portal.services.approval_progress import derive_progress
from hr_portal.services.audit import audit_event
from hr_portal.services.step_projector import StepProjector

__all__ = [
    "StepProjector",
    "audit_event",
    "derive_progress",
]
