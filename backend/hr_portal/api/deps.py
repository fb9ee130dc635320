from typing import Iterator

from fastapi import Depends, Request

from hr_portal.config import settings
from hr_portal.core.workflow_catalog import WorkflowCatalog, build_default_catalog
from hr_portal.database import get_db
from hr_portal.services.approval_api import ApprovalApiClient, ForwardedCredentials
from hr_portal.services.approval_orchestrator import ApprovalOrchestrator, InFlightRegistry
from hr_portal.services.step_projector import StepProjector

__all__ = [
    "get_approval_client",
    "get_catalog",
    "get_db",
    "get_inflight",
    "get_orchestrator",
    "get_projector",
]


def get_catalog(request: Request) -> WorkflowCatalog:
    catalog = getattr(request.app.state, "workflow_catalog", None)
    if catalog is None:
        # Startup did not run (e.g. app mounted without lifespan).
        catalog = build_default_catalog()
        request.app.state.workflow_catalog = catalog
    return catalog


def get_projector(catalog: WorkflowCatalog = Depends(get_catalog)) -> StepProjector:  # noqa: B008
    return StepProjector(catalog)


def get_inflight(request: Request) -> InFlightRegistry:
    registry = getattr(request.app.state, "approval_inflight", None)
    if registry is None:
        registry = InFlightRegistry()
        request.app.state.approval_inflight = registry
    return registry


def forwarded_credentials(request: Request) -> ForwardedCredentials:
    """Caller credentials for the HR backend, passed through as received."""

    cookie_name = settings.approval_api_session_cookie
    session_cookie = request.cookies.get(cookie_name) if cookie_name else None
    return ForwardedCredentials(
        authorization=request.headers.get("authorization"),
        cookies={cookie_name: session_cookie} if session_cookie else {},
    )


def get_approval_client(request: Request) -> Iterator[ApprovalApiClient]:
    client = ApprovalApiClient(
        settings.approval_api_base_url,
        timeout=settings.approval_api_timeout_seconds,
        credentials=forwarded_credentials(request),
    )
    try:
        yield client
    finally:
        client.close()


def get_orchestrator(
    catalog: WorkflowCatalog = Depends(get_catalog),  # noqa: B008
    projector: StepProjector = Depends(get_projector),  # noqa: B008
    client: ApprovalApiClient = Depends(get_approval_client),  # noqa: B008
    inflight: InFlightRegistry = Depends(get_inflight),  # noqa: B008
) -> ApprovalOrchestrator:
    return ApprovalOrchestrator(catalog, projector, client, inflight)
