from fastapi import APIRouter

from hr_portal.api.routes import approvals, audit_logs, health, workflows

api_router = APIRouter()
api_router.include_router(health.router)
api_router.include_router(workflows.router)
api_router.include_router(approvals.router)
api_router.include_router(audit_logs.router)
