import os
import tempfile

# CRITICAL: Set environment variables BEFORE any hr_portal imports
# These must be set before hr_portal.config.settings is loaded
_TEST_DB_PATH = os.path.join(tempfile.gettempdir(), "test_hr_portal.db")
os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{_TEST_DB_PATH}"
os.environ["ENVIRONMENT"] = "test"
os.environ["API_V1_STR"] = "/api"  # Ensure /api prefix is used in tests
os.environ["APPROVAL_API_BASE_URL"] = "http://hr-backend.test/api/v1"
os.environ.pop("WORKFLOW_CATALOG_PATH", None)

import pytest
from sqlalchemy.orm import sessionmaker

from hr_portal.core.workflow_catalog import build_default_catalog
from hr_portal.database import Base, engine as app_engine, get_db
from hr_portal.main import app
from hr_portal.schemas.approvals import (
    ApprovalRecord,
    CurrentUser,
    PendingApproval,
    RequestDocument,
    RequestWithApprovals,
)
from hr_portal.services.approval_api import ApprovalApiError

TEST_ENGINE = app_engine

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=TEST_ENGINE, future=True)


def override_get_db():
    """Test database session that uses the test engine."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function", autouse=True)
def setup_test_database():
    """Fresh audit table per test; test-specific dependency overrides are dropped afterwards."""
    original_overrides = dict(app.dependency_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)
    Base.metadata.create_all(bind=TEST_ENGINE)

    yield

    app.dependency_overrides.clear()
    app.dependency_overrides.update(original_overrides)

    Base.metadata.drop_all(bind=TEST_ENGINE)


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def catalog():
    return build_default_catalog()


def approval_record(level, status="pending", *, approval_id=None, approver=None, comments=""):
    """Approval record JSON as the HR backend serialises it."""
    return {
        "_id": approval_id or f"apv-{level}",
        "approval_level": level,
        "status": status,
        "approver_id": approver,
        "comments": comments,
        "processed_at": None if status == "pending" else "2024-05-02T10:00:00.000Z",
    }


def pending_approval(
    approval_id,
    level,
    *,
    request_type="account_request",
    request_id="req-1",
    timeline=None,
    **request_fields,
):
    """One entry of GET /approvals/mine with its populated request."""
    request = {
        "_id": request_id,
        "request_type": request_type,
        "status": "pending",
        "requester_name": "Budi Santoso",
        "email": "budi@example.com",
    }
    request.update(request_fields)
    return {
        "_id": approval_id,
        "approval_level": level,
        "status": "pending",
        "request_id": request,
        "timeline": timeline or [],
    }


class FakeApprovalClient:
    """In-memory stand-in for ApprovalApiClient.

    Mirrors the backend: a decided approval leaves the caller's inbox.
    """

    def __init__(self, pending=None, *, role="Manager HR", documents=None):
        self.pending = list(pending or [])
        self.user = {"_id": "user-1", "full_name": "Sari HR", "role_id": {"name": role}}
        self.documents = dict(documents or {})
        self.requests = {}
        self.calls = []
        self.uploads = []
        self.fail_with = None
        self.fail_inbox_with = None
        self.closed = False

    def fetch_my_pending_approvals(self):
        self.calls.append(("inbox",))
        if self.fail_inbox_with is not None:
            raise self.fail_inbox_with
        return [PendingApproval.model_validate(p) for p in self.pending]

    def fetch_current_user(self):
        self.calls.append(("me",))
        return CurrentUser.model_validate(self.user)

    def fetch_request_with_approvals(self, request_id):
        self.calls.append(("request", request_id))
        if request_id not in self.requests:
            raise ApprovalApiError(404, "Account request not found")
        return RequestWithApprovals.model_validate(self.requests[request_id])

    def list_request_documents(self, request_id, document_type=None):
        self.calls.append(("documents", request_id, document_type))
        docs = self.documents.get(request_id, [])
        return [
            RequestDocument.model_validate(d)
            for d in docs
            if document_type is None or d.get("document_type") == document_type
        ]

    def upload_document(self, *, request_id, document_type, filename, content, content_type=None, description=""):
        self.calls.append(("upload", request_id, document_type))
        doc = {"_id": f"doc-{len(self.uploads) + 1}", "document_type": document_type, "file_name": filename}
        self.uploads.append({**doc, "content": content, "content_type": content_type})
        self.documents.setdefault(request_id, []).append(doc)
        return RequestDocument.model_validate(doc)

    def _decide(self, approval_id, status, comments):
        self.calls.append((status, approval_id, comments))
        if self.fail_with is not None:
            raise self.fail_with
        for p in self.pending:
            if p["_id"] == approval_id:
                self.pending.remove(p)
                return ApprovalRecord.model_validate(
                    {**p, "status": status, "comments": comments, "processed_at": "2024-05-03T08:00:00Z"}
                )
        raise ApprovalApiError(404, "Approval not found")

    def approve(self, approval_id, comments=""):
        return self._decide(approval_id, "approved", comments)

    def reject(self, approval_id, comments=""):
        return self._decide(approval_id, "rejected", comments)

    def close(self):
        self.closed = True

    def commands(self):
        return [c for c in self.calls if c[0] in {"approved", "rejected"}]
