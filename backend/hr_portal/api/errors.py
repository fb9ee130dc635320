"""Translate service-layer exceptions into JSON error responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hr_portal.core.observability import request_id_for
from hr_portal.services.approval_api import ApprovalApiError, ApprovalApiUnavailable
from hr_portal.services.approval_orchestrator import (
    ApprovalInFlightError,
    ApprovalNotInInboxError,
    PreconditionFailedError,
)


def _error(request: Request, status_code: int, detail: str, code: str, **extra) -> JSONResponse:
    request_id = request_id_for(request)
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": code, "request_id": request_id, **extra},
        headers={"X-Request-ID": request_id},
    )


async def approval_api_error_handler(request: Request, exc: ApprovalApiError) -> JSONResponse:
    # Backend 4xx pass through; a backend failure is a bad gateway from our side.
    status_code = exc.status_code if 400 <= exc.status_code < 500 else 502
    return _error(request, status_code, exc.message, "approval_api_error")


async def approval_api_unavailable_handler(
    request: Request, exc: ApprovalApiUnavailable
) -> JSONResponse:
    return _error(request, 502, str(exc), "approval_api_unavailable")


async def precondition_failed_handler(
    request: Request, exc: PreconditionFailedError
) -> JSONResponse:
    p = exc.precondition
    return _error(
        request,
        422,
        p.message or p.code,
        "precondition_failed",
        precondition=p.code,
        document_type=p.document_type,
    )


async def approval_in_flight_handler(request: Request, exc: ApprovalInFlightError) -> JSONResponse:
    return _error(request, 409, str(exc), "approval_in_flight")


async def approval_not_in_inbox_handler(
    request: Request, exc: ApprovalNotInInboxError
) -> JSONResponse:
    return _error(request, 404, str(exc), "approval_not_found")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApprovalApiError, approval_api_error_handler)
    app.add_exception_handler(ApprovalApiUnavailable, approval_api_unavailable_handler)
    app.add_exception_handler(PreconditionFailedError, precondition_failed_handler)
    app.add_exception_handler(ApprovalInFlightError, approval_in_flight_handler)
    app.add_exception_handler(ApprovalNotInInboxError, approval_not_in_inbox_handler)
