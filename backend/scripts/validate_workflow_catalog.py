"""Check a workflow catalog JSON file before pointing WORKFLOW_CATALOG_PATH at it.

Usage:
  python scripts/validate_workflow_catalog.py path/to/workflows.json
  python scripts/validate_workflow_catalog.py --builtin --json
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Allow running this script directly (python scripts/...) while importing `hr_portal.*`.
BACKEND_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(BACKEND_ROOT))

from hr_portal.core.workflow_catalog import (  # noqa: E402
    WorkflowCatalog,
    WorkflowConfigError,
    build_default_catalog,
    load_workflow_catalog,
)


def _describe(catalog: WorkflowCatalog) -> dict:
    return {
        "workflows": {
            d.request_type: {
                "name": d.name,
                "steps": [
                    {"level": s.level, "approver_role": s.approver_role, "description": s.description}
                    for s in d.steps
                ],
            }
            for d in catalog.definitions()
        },
        "preconditions": [
            {
                "request_type": r.request_type,
                "level": r.level,
                "approver_role": r.approver_role,
                "code": r.precondition.code,
                "document_type": r.precondition.document_type,
                "message": r.precondition.message,
            }
            for r in catalog.precondition_rules()
        ],
    }


def main() -> int:
    parser = argparse.ArgumentParser(description="Validate a workflow catalog file.")
    parser.add_argument("path", nargs="?", help="JSON catalog file")
    parser.add_argument("--builtin", action="store_true", help="Check the built-in table instead")
    parser.add_argument("--json", action="store_true", help="Print the normalized catalog as JSON")
    args = parser.parse_args()

    if not args.builtin and not args.path:
        parser.error("a path is required unless --builtin is given")

    try:
        catalog = build_default_catalog() if args.builtin else load_workflow_catalog(args.path)
    except WorkflowConfigError as e:
        print(f"INVALID: {e}", file=sys.stderr)
        return 2

    if args.json:
        print(json.dumps(_describe(catalog), indent=2, ensure_ascii=False))
        return 0

    for definition in catalog.definitions():
        chain = " -> ".join(f"{s.level}:{s.approver_role}" for s in definition.steps)
        print(f"{definition.request_type:<16} {definition.name:<24} {chain}")
    for rule in catalog.precondition_rules():
        print(
            f"precondition {rule.precondition.code} on "
            f"{rule.request_type} level {rule.level} ({rule.approver_role})"
        )
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
