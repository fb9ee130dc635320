from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping


class RequestType(str, Enum):
    account_request = "account_request"
    promotion = "promotion"
    termination = "termination"
    transfer = "transfer"
    salary_change = "salary_change"


class WorkflowConfigError(ValueError):
    """Raised when a workflow table cannot be turned into a catalog."""


@dataclass(frozen=True)
class WorkflowStepDefinition:
    level: int
    approver_role: str
    description: str


@dataclass(frozen=True)
class WorkflowDefinition:
    request_type: str
    name: str
    steps: tuple[WorkflowStepDefinition, ...]


@dataclass(frozen=True)
class ApprovalPrecondition:
    """Extra requirement on top of the backend's own checks for one step.

    `document_type` names the document that must be attached to the request
    before the approve command may be sent.
    """

    code: str
    document_type: str | None = None
    message: str = ""


@dataclass(frozen=True)
class PreconditionRule:
    request_type: str
    level: int
    approver_role: str
    precondition: ApprovalPrecondition


CONTRACT_DOCUMENT = ApprovalPrecondition(
    code="contract_document",
    document_type="contract",
    message="Harap upload dokumen contract terlebih dahulu",
)

DEFAULT_WORKFLOWS: dict[str, dict[str, Any]] = {
    RequestType.account_request.value: {
        "name": "Account Request",
        "steps": [
            {"level": 1, "approver_role": "Manager HR", "description": "HR Manager Review"},
            {"level": 2, "approver_role": "Director", "description": "Director Approval"},
        ],
    },
    RequestType.promotion.value: {
        "name": "Promotion Request",
        "steps": [
            {"level": 1, "approver_role": "Manager", "description": "Direct Manager"},
            {"level": 2, "approver_role": "Manager HR", "description": "HR Manager Review"},
            {"level": 3, "approver_role": "Director", "description": "Director Approval"},
        ],
    },
    RequestType.termination.value: {
        "name": "Termination Request",
        "steps": [
            {"level": 1, "approver_role": "Manager", "description": "Division Manager"},
            {"level": 2, "approver_role": "Manager HR", "description": "HR Manager Approval"},
        ],
    },
    RequestType.transfer.value: {
        "name": "Transfer Request",
        "steps": [
            {"level": 1, "approver_role": "Manager", "description": "Current Manager"},
            {"level": 2, "approver_role": "Manager", "description": "Target Division Manager"},
            {"level": 3, "approver_role": "Manager HR", "description": "HR Manager Approval"},
        ],
    },
    RequestType.salary_change.value: {
        "name": "Salary Change Request",
        "steps": [
            {"level": 1, "approver_role": "Manager", "description": "Division Manager"},
            {"level": 2, "approver_role": "Manager HR", "description": "HR Manager Review"},
            {"level": 3, "approver_role": "Director", "description": "Director Approval"},
        ],
    },
}

DEFAULT_PRECONDITIONS: tuple[PreconditionRule, ...] = (
    PreconditionRule(
        request_type=RequestType.account_request.value,
        level=1,
        approver_role="Manager HR",
        precondition=CONTRACT_DOCUMENT,
    ),
)


def _request_type_key(request_type: object) -> str:
    if isinstance(request_type, RequestType):
        return request_type.value
    return str(request_type) if request_type is not None else ""


class WorkflowCatalog:
    """Read-only registry of approval chains per request type.

    Lookups never raise: unknown request types resolve to an empty chain and
    unknown levels to None. The HR backend is the authority on who may approve
    what; this table only drives display and client-side gating.
    """

    def __init__(
        self,
        definitions: Iterable[WorkflowDefinition],
        preconditions: Iterable[PreconditionRule] = (),
    ) -> None:
        by_type: dict[str, WorkflowDefinition] = {}
        for definition in definitions:
            _validate_chain(definition)
            if definition.request_type in by_type:
                raise WorkflowConfigError(
                    f"Duplicate workflow for request type: {definition.request_type}"
                )
            by_type[definition.request_type] = definition

        rules: dict[tuple[str, int, str], tuple[ApprovalPrecondition, ...]] = {}
        for rule in preconditions:
            key = (rule.request_type, int(rule.level), rule.approver_role)
            rules[key] = rules.get(key, ()) + (rule.precondition,)

        self._definitions: Mapping[str, WorkflowDefinition] = MappingProxyType(by_type)
        self._preconditions: Mapping[tuple[str, int, str], tuple[ApprovalPrecondition, ...]] = (
            MappingProxyType(rules)
        )

    @classmethod
    def from_mapping(
        cls,
        workflows: Mapping[str, Mapping[str, Any]],
        preconditions: Iterable[PreconditionRule] = (),
    ) -> "WorkflowCatalog":
        definitions = []
        for request_type, raw in workflows.items():
            if not isinstance(raw, Mapping):
                raise WorkflowConfigError(f"Workflow {request_type!r} must be an object")
            try:
                steps = tuple(
                    WorkflowStepDefinition(
                        level=int(s["level"]),
                        approver_role=str(s["approver_role"]),
                        description=str(s.get("description") or f"Level {s['level']}"),
                    )
                    for s in raw.get("steps") or []
                )
            except (KeyError, TypeError, ValueError) as exc:
                raise WorkflowConfigError(
                    f"Invalid step in workflow {request_type!r}: {exc}"
                ) from exc
            definitions.append(
                WorkflowDefinition(
                    request_type=str(request_type),
                    name=str(raw.get("name") or request_type),
                    steps=tuple(sorted(steps, key=lambda s: s.level)),
                )
            )
        return cls(definitions, preconditions)

    def request_types(self) -> tuple[str, ...]:
        return tuple(self._definitions.keys())

    def definitions(self) -> tuple[WorkflowDefinition, ...]:
        return tuple(self._definitions.values())

    def definition_for(self, request_type: object) -> WorkflowDefinition | None:
        return self._definitions.get(_request_type_key(request_type))

    def chain_for(self, request_type: object) -> tuple[WorkflowStepDefinition, ...]:
        definition = self.definition_for(request_type)
        return definition.steps if definition is not None else ()

    def name_for(self, request_type: object) -> str:
        definition = self.definition_for(request_type)
        if definition is None:
            return _request_type_key(request_type)
        return definition.name

    def step_definition_at(self, request_type: object, level: int) -> WorkflowStepDefinition | None:
        for step in self.chain_for(request_type):
            if step.level == level:
                return step
        return None

    def preconditions_for(
        self, request_type: object, level: int, approver_role: str | None
    ) -> tuple[ApprovalPrecondition, ...]:
        if not approver_role:
            return ()
        key = (_request_type_key(request_type), level, approver_role)
        return self._preconditions.get(key, ())

    def precondition_rules(self) -> tuple[PreconditionRule, ...]:
        return tuple(
            PreconditionRule(request_type=t, level=lvl, approver_role=role, precondition=p)
            for (t, lvl, role), items in self._preconditions.items()
            for p in items
        )


def _validate_chain(definition: WorkflowDefinition) -> None:
    levels = [s.level for s in definition.steps]
    if not levels:
        raise WorkflowConfigError(f"Workflow {definition.request_type!r} has no steps")
    expected = list(range(1, len(levels) + 1))
    if levels != expected:
        raise WorkflowConfigError(
            f"Workflow {definition.request_type!r} levels must be {expected}, got {levels}"
        )
    for step in definition.steps:
        if not step.approver_role.strip():
            raise WorkflowConfigError(
                f"Workflow {definition.request_type!r} level {step.level} has no approver role"
            )


def build_default_catalog() -> WorkflowCatalog:
    return WorkflowCatalog.from_mapping(DEFAULT_WORKFLOWS, DEFAULT_PRECONDITIONS)


def _parse_preconditions(raw: Iterable[Mapping[str, Any]]) -> list[PreconditionRule]:
    rules: list[PreconditionRule] = []
    for item in raw or []:
        try:
            rules.append(
                PreconditionRule(
                    request_type=str(item["request_type"]),
                    level=int(item["level"]),
                    approver_role=str(item["approver_role"]),
                    precondition=ApprovalPrecondition(
                        code=str(item["code"]),
                        document_type=item.get("document_type"),
                        message=str(item.get("message") or ""),
                    ),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise WorkflowConfigError(f"Invalid precondition entry: {exc}") from exc
    return rules


def load_workflow_catalog(path: str | Path) -> WorkflowCatalog:
    """Build a catalog from a JSON file.

    Shape: {"workflows": {<type>: {"name": ..., "steps": [...]}},
            "preconditions": [{"request_type", "level", "approver_role", "code", ...}]}
    """

    p = Path(path).expanduser()
    try:
        data = json.loads(p.read_text(encoding="utf-8"))
    except OSError as exc:
        raise WorkflowConfigError(f"Cannot read workflow catalog {p}: {exc}") from exc
    except json.JSONDecodeError as exc:
        raise WorkflowConfigError(f"Workflow catalog {p} is not valid JSON: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("workflows"), dict):
        raise WorkflowConfigError(f"Workflow catalog {p} must contain a 'workflows' object")

    return WorkflowCatalog.from_mapping(
        data["workflows"], _parse_preconditions(data.get("preconditions") or [])
    )


@dataclass(frozen=True)
class CatalogSource:
    """Where the active catalog came from; surfaced in logs at startup."""

    catalog: WorkflowCatalog
    origin: str = field(default="builtin")


def catalog_from_settings(workflow_catalog_path: str | None) -> CatalogSource:
    if workflow_catalog_path:
        return CatalogSource(
            catalog=load_workflow_catalog(workflow_catalog_path), origin=str(workflow_catalog_path)
        )
    return CatalogSource(catalog=build_default_catalog())
