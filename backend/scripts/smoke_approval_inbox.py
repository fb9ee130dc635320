"""Smoke test: list the caller's pending approvals straight from the HR backend.

Usage:
  python scripts/smoke_approval_inbox.py --base-url "http://localhost:3000/api/v1" --token "<ACCESS_TOKEN>"

Security:
- Avoid pasting real tokens into logs/tickets.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))

from hr_portal.core.workflow_catalog import build_default_catalog  # noqa: E402
from hr_portal.services.approval_api import (  # noqa: E402
    ApprovalApiClient,
    ApprovalApiError,
    ApprovalApiUnavailable,
    ForwardedCredentials,
)
from hr_portal.services.approval_orchestrator import (  # noqa: E402
    ApprovalOrchestrator,
    InFlightRegistry,
)
from hr_portal.services.step_projector import StepProjector  # noqa: E402


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--base-url", required=True, help="HR backend API root, e.g. http://host/api/v1")
    parser.add_argument("--token", help="Access token (JWT)")
    parser.add_argument("--cookie", help="Session cookie value, sent as 'session'")
    args = parser.parse_args()

    credentials = ForwardedCredentials(
        authorization=f"Bearer {args.token.strip()}" if args.token else None,
        cookies={"session": args.cookie} if args.cookie else {},
    )
    catalog = build_default_catalog()

    with ApprovalApiClient(args.base_url, credentials=credentials) as client:
        orchestrator = ApprovalOrchestrator(
            catalog, StepProjector(catalog), client, InFlightRegistry()
        )
        try:
            items = orchestrator.load_inbox()
        except (ApprovalApiError, ApprovalApiUnavailable) as e:
            print(f"FAILED: {e}", file=sys.stderr)
            return 2

    print(f"Pending approvals: {len(items)}")
    for item in items:
        flag = "actionable" if item.can_approve else "waiting"
        print(
            f"- {item.approval_id} {item.workflow_name} level {item.approval_level} "
            f"[{item.progress.state}] {flag} requester={item.requester_name or '-'}"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
