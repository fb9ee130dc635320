import json

import pytest

from hr_portal.core.workflow_catalog import (
    CONTRACT_DOCUMENT,
    RequestType,
    WorkflowCatalog,
    WorkflowConfigError,
    WorkflowDefinition,
    WorkflowStepDefinition,
    catalog_from_settings,
    load_workflow_catalog,
)


def test_default_catalog_covers_every_request_type(catalog):
    assert set(catalog.request_types()) == {t.value for t in RequestType}


@pytest.mark.parametrize("request_type", [t.value for t in RequestType])
def test_chain_levels_are_contiguous_from_one(catalog, request_type):
    levels = [s.level for s in catalog.chain_for(request_type)]
    assert levels == list(range(1, len(levels) + 1))
    assert levels


@pytest.mark.parametrize("request_type", ["leave_request", "", "ACCOUNT_REQUEST"])
def test_unknown_request_type_is_not_an_error(catalog, request_type):
    assert catalog.chain_for(request_type) == ()
    assert catalog.name_for(request_type) == request_type
    assert catalog.step_definition_at(request_type, 1) is None


def test_name_for_missing_request_type_is_empty(catalog):
    assert catalog.name_for(None) == ""


def test_enum_and_string_keys_resolve_the_same(catalog):
    assert catalog.chain_for(RequestType.promotion) == catalog.chain_for("promotion")
    assert catalog.name_for(RequestType.promotion) == "Promotion Request"


def test_account_request_chain(catalog):
    chain = catalog.chain_for("account_request")
    assert [(s.level, s.approver_role, s.description) for s in chain] == [
        (1, "Manager HR", "HR Manager Review"),
        (2, "Director", "Director Approval"),
    ]
    assert catalog.name_for("account_request") == "Account Request"


def test_transfer_has_two_manager_levels(catalog):
    chain = catalog.chain_for("transfer")
    assert [s.approver_role for s in chain] == ["Manager", "Manager", "Manager HR"]
    assert catalog.step_definition_at("transfer", 2).description == "Target Division Manager"
    assert catalog.step_definition_at("transfer", 4) is None


def test_contract_precondition_only_for_manager_hr_on_account_level_one(catalog):
    assert catalog.preconditions_for("account_request", 1, "Manager HR") == (CONTRACT_DOCUMENT,)
    assert catalog.preconditions_for("account_request", 1, "Director") == ()
    assert catalog.preconditions_for("account_request", 2, "Manager HR") == ()
    assert catalog.preconditions_for("promotion", 2, "Manager HR") == ()
    assert catalog.preconditions_for("account_request", 1, None) == ()


def test_catalog_is_read_only(catalog):
    with pytest.raises(TypeError):
        catalog._definitions["leave"] = None  # type: ignore[index]
    step = catalog.chain_for("promotion")[0]
    with pytest.raises(AttributeError):
        step.level = 5  # type: ignore[misc]


@pytest.mark.parametrize(
    "steps",
    [
        [],
        [{"level": 2, "approver_role": "Manager"}],
        [{"level": 1, "approver_role": "Manager"}, {"level": 3, "approver_role": "Director"}],
        [{"level": 1, "approver_role": " "}],
        [{"approver_role": "Manager"}],
    ],
)
def test_invalid_chains_fail_at_construction(steps):
    with pytest.raises(WorkflowConfigError):
        WorkflowCatalog.from_mapping({"leave_request": {"name": "Leave", "steps": steps}})


def test_duplicate_request_type_is_rejected():
    step = WorkflowStepDefinition(level=1, approver_role="Manager", description="Manager")
    definition = WorkflowDefinition(request_type="leave", name="Leave", steps=(step,))
    with pytest.raises(WorkflowConfigError):
        WorkflowCatalog([definition, definition])


def test_from_mapping_sorts_steps_and_defaults_description():
    catalog = WorkflowCatalog.from_mapping(
        {
            "leave_request": {
                "steps": [
                    {"level": 2, "approver_role": "Manager HR"},
                    {"level": 1, "approver_role": "Manager", "description": "Line Manager"},
                ]
            }
        }
    )
    chain = catalog.chain_for("leave_request")
    assert [s.level for s in chain] == [1, 2]
    assert chain[1].description == "Level 2"
    assert catalog.name_for("leave_request") == "leave_request"


def test_load_workflow_catalog_from_json(tmp_path):
    path = tmp_path / "workflows.json"
    path.write_text(
        json.dumps(
            {
                "workflows": {
                    "leave_request": {
                        "name": "Leave Request",
                        "steps": [
                            {"level": 1, "approver_role": "Manager", "description": "Line Manager"},
                            {"level": 2, "approver_role": "Manager HR", "description": "HR Review"},
                        ],
                    }
                },
                "preconditions": [
                    {
                        "request_type": "leave_request",
                        "level": 2,
                        "approver_role": "Manager HR",
                        "code": "medical_note",
                        "document_type": "medical_note",
                        "message": "Upload the medical note first",
                    }
                ],
            }
        ),
        encoding="utf-8",
    )

    catalog = load_workflow_catalog(path)

    assert catalog.request_types() == ("leave_request",)
    assert catalog.name_for("leave_request") == "Leave Request"
    (precondition,) = catalog.preconditions_for("leave_request", 2, "Manager HR")
    assert precondition.document_type == "medical_note"
    assert catalog.chain_for("account_request") == ()


def test_load_workflow_catalog_rejects_bad_files(tmp_path):
    missing = tmp_path / "missing.json"
    with pytest.raises(WorkflowConfigError):
        load_workflow_catalog(missing)

    broken = tmp_path / "broken.json"
    broken.write_text("{not json", encoding="utf-8")
    with pytest.raises(WorkflowConfigError):
        load_workflow_catalog(broken)

    no_workflows = tmp_path / "empty.json"
    no_workflows.write_text(json.dumps({"preconditions": []}), encoding="utf-8")
    with pytest.raises(WorkflowConfigError):
        load_workflow_catalog(no_workflows)


def test_catalog_from_settings_defaults_to_builtin():
    source = catalog_from_settings(None)
    assert source.origin == "builtin"
    assert "salary_change" in source.catalog.request_types()
