from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from hr_portal.schemas.approvals import (
    ApprovalRecord,
    CurrentUser,
    PendingApproval,
    RequestDocument,
    RequestWithApprovals,
)

logger = logging.getLogger("hr_portal.approval_api")


class ApprovalApiError(Exception):
    """The HR backend answered with an error; `message` is its own wording."""

    def __init__(self, status_code: int, message: str) -> None:
        super().__init__(message)
        self.status_code = int(status_code)
        self.message = message


class ApprovalApiUnavailable(Exception):
    """The HR backend could not be reached (connect error, timeout, ...)."""


@dataclass(frozen=True)
class ForwardedCredentials:
    """Caller credentials passed through to the HR backend untouched."""

    authorization: Optional[str] = None
    cookies: dict[str, str] = field(default_factory=dict)

    def headers(self) -> dict[str, str]:
        if self.authorization:
            return {"Authorization": self.authorization}
        return {}


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        err = body.get("error")
        if isinstance(err, dict) and err.get("message"):
            return str(err["message"])
        for key in ("message", "detail", "error"):
            val = body.get(key)
            if isinstance(val, str) and val.strip():
                return val
    return f"HTTP {response.status_code}"


def _unwrap(body: Any) -> Any:
    # The backend wraps most payloads as {"data": ...}.
    if isinstance(body, dict) and "data" in body:
        return body["data"]
    return body


class ApprovalApiClient:
    """Synchronous client for the HR backend's approval endpoints.

    Every command is a single attempt; failures propagate to the caller.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        credentials: ForwardedCredentials | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.credentials = credentials or ForwardedCredentials()
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            headers={"Accept": "application/json", **self.credentials.headers()},
            cookies=self.credentials.cookies or None,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "ApprovalApiClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.warning("approval_api_timeout", extra={"method": method, "path": path})
            raise ApprovalApiUnavailable(f"HR backend timed out: {method} {path}") from exc
        except httpx.TransportError as exc:
            logger.warning(
                "approval_api_unreachable",
                extra={"method": method, "path": path, "error": str(exc)},
            )
            raise ApprovalApiUnavailable(f"HR backend unreachable: {exc}") from exc

        if response.status_code >= 400:
            message = _error_message(response)
            logger.info(
                "approval_api_error",
                extra={
                    "method": method,
                    "path": path,
                    "status_code": response.status_code,
                    "error": message,
                },
            )
            raise ApprovalApiError(response.status_code, message)

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            raise ApprovalApiError(502, "HR backend returned a non-JSON response") from exc

    @staticmethod
    def _parse(model, payload: Any, what: str):
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            logger.warning("approval_api_bad_payload", extra={"payload": what, "error": str(exc)})
            raise ApprovalApiError(502, f"HR backend returned an invalid {what}") from exc

    def fetch_my_pending_approvals(self) -> list[PendingApproval]:
        items = _unwrap(self._request("GET", "/approvals/mine")) or []
        if not isinstance(items, list):
            raise ApprovalApiError(502, "HR backend returned an invalid pending approval list")
        return [self._parse(PendingApproval, item, "pending approval") for item in items]

    def fetch_request_with_approvals(self, request_id: str) -> RequestWithApprovals:
        body = _unwrap(self._request("GET", f"/account-requests/{request_id}"))
        return self._parse(RequestWithApprovals, body, "request")

    def approve(self, approval_id: str, comments: str = "") -> ApprovalRecord:
        body = self._request("POST", f"/approvals/{approval_id}/approve", json={"comments": comments})
        return self._parse(ApprovalRecord, _decision_record(body), "approval")

    def reject(self, approval_id: str, comments: str = "") -> ApprovalRecord:
        body = self._request("POST", f"/approvals/{approval_id}/reject", json={"comments": comments})
        return self._parse(ApprovalRecord, _decision_record(body), "approval")

    def list_request_documents(
        self, request_id: str, document_type: str | None = None
    ) -> list[RequestDocument]:
        params = {"type": document_type} if document_type else None
        items = _unwrap(self._request("GET", f"/documents/user/{request_id}", params=params)) or []
        if not isinstance(items, list):
            raise ApprovalApiError(502, "HR backend returned an invalid document list")
        return [self._parse(RequestDocument, item, "document") for item in items]

    def upload_document(
        self,
        *,
        request_id: str,
        document_type: str,
        filename: str,
        content: bytes,
        content_type: str | None = None,
        description: str = "",
    ) -> RequestDocument:
        body = self._request(
            "POST",
            "/documents/upload",
            data={
                "document_type": document_type,
                "account_request_id": request_id,
                "description": description,
            },
            files={"file": (filename, content, content_type or "application/octet-stream")},
        )
        return self._parse(RequestDocument, _unwrap(body), "document")

    def fetch_current_user(self) -> CurrentUser:
        body = self._request("GET", "/auth/me")
        if isinstance(body, dict) and "user" in body:
            body = body["user"]
        return self._parse(CurrentUser, _unwrap(body), "user")


def _decision_record(body: Any) -> Any:
    # approve/reject answer {"data": {"approval": {...}, "request": {...}}} or the record itself.
    data = _unwrap(body)
    if isinstance(data, dict) and isinstance(data.get("approval"), dict):
        return data["approval"]
    return data
