from fastapi import APIRouter, Depends

from hr_portal.api.deps import get_catalog
from hr_portal.config import settings
from hr_portal.core.observability import uptime_seconds, utc_now_iso
from hr_portal.core.workflow_catalog import WorkflowCatalog

router = APIRouter(prefix="/health", tags=["health"])


@router.get("", summary="Healthcheck")
def healthcheck(catalog: WorkflowCatalog = Depends(get_catalog)):  # noqa: B008
    """Liveness plus the size of the active workflow table."""
    return {
        "status": "ok",
        "service": settings.app_name,
        "environment": settings.environment,
        "time": utc_now_iso(),
        "uptime_seconds": round(uptime_seconds(), 2),
        "version": settings.build_version,
        "workflows": len(catalog.request_types()),
    }
