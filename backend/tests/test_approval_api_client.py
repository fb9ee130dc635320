import json

import httpx
import pytest

from hr_portal.services.approval_api import (
    ApprovalApiClient,
    ApprovalApiError,
    ApprovalApiUnavailable,
    ForwardedCredentials,
)

from conftest import approval_record, pending_approval

BASE_URL = "http://hr-backend.test/api/v1"


def _client(handler, **kwargs):
    return ApprovalApiClient(BASE_URL, transport=httpx.MockTransport(handler), **kwargs)


def test_pending_approvals_are_unwrapped_and_validated():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        return httpx.Response(
            200,
            json={
                "data": [
                    pending_approval(
                        "apv-9",
                        1,
                        timeline=[approval_record(1, "pending", approval_id="apv-9"), approval_record(2)],
                        requested_role={"_id": "r1", "name": "Staff", "hierarchy_level": 5},
                    )
                ]
            },
        )

    with _client(handler) as client:
        (item,) = client.fetch_my_pending_approvals()

    assert seen["path"] == "/api/v1/approvals/mine"
    assert item.id == "apv-9"
    assert item.request_ref == "req-1"
    assert item.request.requester_name == "Budi Santoso"
    assert item.request.requested_role.name == "Staff"
    assert [r.approval_level for r in item.timeline] == [1, 2]
    assert item.effective_request_type == "account_request"


def test_credentials_are_forwarded_untouched():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["authorization"] = request.headers.get("authorization")
        seen["cookie"] = request.headers.get("cookie")
        return httpx.Response(200, json={"data": []})

    credentials = ForwardedCredentials(authorization="Bearer abc.def", cookies={"session": "s3cr3t"})
    with _client(handler, credentials=credentials) as client:
        client.fetch_my_pending_approvals()

    assert seen["authorization"] == "Bearer abc.def"
    assert "session=s3cr3t" in seen["cookie"]


def test_approve_posts_comments_and_returns_record():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "message": "Approval processed successfully",
                "data": {
                    "approval": approval_record(1, "approved", approval_id="apv-1", comments="ok"),
                    "request": {"_id": "req-1", "status": "pending"},
                },
            },
        )

    with _client(handler) as client:
        record = client.approve("apv-1", "ok")

    assert seen == {"method": "POST", "path": "/api/v1/approvals/apv-1/approve", "body": {"comments": "ok"}}
    assert record.status == "approved"
    assert record.comments == "ok"


def test_backend_error_message_is_kept_verbatim():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            500, json={"message": "Previous approval levels must be approved first"}
        )

    with _client(handler) as client:
        with pytest.raises(ApprovalApiError) as excinfo:
            client.reject("apv-2", "no")

    assert excinfo.value.status_code == 500
    assert excinfo.value.message == "Previous approval levels must be approved first"


@pytest.mark.parametrize(
    "body,expected",
    [
        ({"error": {"message": "Unauthorized"}}, "Unauthorized"),
        ({"detail": "Forbidden"}, "Forbidden"),
        ({"error": "Approval not found"}, "Approval not found"),
        ({}, "HTTP 404"),
    ],
)
def test_error_message_shapes(body, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, json=body)

    with _client(handler) as client:
        with pytest.raises(ApprovalApiError) as excinfo:
            client.fetch_request_with_approvals("req-404")

    assert excinfo.value.message == expected


def test_transport_failure_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with _client(handler) as client:
        with pytest.raises(ApprovalApiUnavailable):
            client.fetch_my_pending_approvals()


def test_timeout_is_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with _client(handler) as client:
        with pytest.raises(ApprovalApiUnavailable):
            client.approve("apv-1")


def test_malformed_payload_is_a_bad_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"_id": "apv-1", "approval_level": 0, "status": "done"}]})

    with _client(handler) as client:
        with pytest.raises(ApprovalApiError) as excinfo:
            client.fetch_my_pending_approvals()

    assert excinfo.value.status_code == 502


def test_non_json_success_is_a_bad_gateway():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy</html>")

    with _client(handler) as client:
        with pytest.raises(ApprovalApiError) as excinfo:
            client.fetch_current_user()

    assert excinfo.value.status_code == 502


def test_request_with_approvals():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/v1/account-requests/req-1"
        return httpx.Response(
            200,
            json={
                "data": {
                    "_id": "req-1",
                    "requester_name": "Budi Santoso",
                    "status": "pending",
                    "approvals": [approval_record(2), approval_record(1, "approved")],
                }
            },
        )

    with _client(handler) as client:
        request = client.fetch_request_with_approvals("req-1")

    assert request.request_type == "account_request"
    assert {r.approval_level for r in request.approvals} == {1, 2}


def test_documents_are_filtered_by_type_query():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["path"] = request.url.path
        seen["type"] = request.url.params.get("type")
        return httpx.Response(200, json={"data": [{"_id": "doc-1", "document_type": "contract"}]})

    with _client(handler) as client:
        (doc,) = client.list_request_documents("req-1", "contract")

    assert seen == {"path": "/api/v1/documents/user/req-1", "type": "contract"}
    assert doc.document_type == "contract"


def test_upload_document_is_multipart():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["content_type"] = request.headers["content-type"]
        seen["body"] = request.content
        return httpx.Response(
            201, json={"data": {"_id": "doc-2", "document_type": "contract", "file_name": "c.pdf"}}
        )

    with _client(handler) as client:
        doc = client.upload_document(
            request_id="req-1",
            document_type="contract",
            filename="c.pdf",
            content=b"%PDF-1.4",
            content_type="application/pdf",
        )

    assert seen["content_type"].startswith("multipart/form-data")
    assert b'name="account_request_id"' in seen["body"]
    assert b"%PDF-1.4" in seen["body"]
    assert doc.id == "doc-2"


def test_current_user_accepts_user_envelope():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            json={"user": {"_id": "u1", "full_name": "Sari", "role_id": {"_id": "r2", "name": "Manager HR"}}},
        )

    with _client(handler) as client:
        user = client.fetch_current_user()

    assert user.role_name == "Manager HR"
