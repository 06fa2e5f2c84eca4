"""
Tests for YAML workflow definitions: loading, validation and building.

Verifies:
- Documents parse into WorkflowDef with defaults applied
- The validator reports every wiring problem before anything is built
- build_engine produces a working TransitionEngine or raises ConfigurationError
- The checksum is deterministic and sensitive to threshold changes
"""

import dataclasses
from decimal import Decimal
from enum import Enum
from textwrap import dedent

import pytest
import yaml

from workflow_config.builder import (
    build_engine,
    build_guard_registry,
    build_transition_table,
    engine_from_yaml,
)
from workflow_config.loader import compute_checksum, load_workflow, parse_workflow
from workflow_config.schema import GuardBindingDef, WorkflowDef
from workflow_config.validator import validate_workflow_def
from workflow_kernel.domain.guards import Guard, flag_set
from workflow_kernel.exceptions import ConfigurationError, GuardDeniedError

from tests.support import Application

SCREENING_YAML = dedent(
    """
    name: screening
    version: 2
    description: Applicant screening
    states: [submitted, background_check, approved, rejected, completed]
    initial_states: [submitted]
    terminal_states: [rejected, completed]
    transitions:
      - from: submitted
        to: [background_check, rejected]
      - from: background_check
        to: [approved, rejected]
      - from: approved
        to: completed
    guards:
      - from: submitted
        to: background_check
        name: amount_within_limit
        kind: amount_at_most
        params: {field: amount, limit: 100000}
        description: amount must be within the automatic limit
    """
)


class Stage(Enum):
    SUBMITTED = "submitted"
    BACKGROUND_CHECK = "background_check"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


@pytest.fixture
def workflow_file(tmp_path):
    path = tmp_path / "screening.yaml"
    path.write_text(SCREENING_YAML)
    return path


@pytest.fixture
def workflow(workflow_file):
    return load_workflow(workflow_file)


def _with(workflow: WorkflowDef, **changes) -> WorkflowDef:
    return dataclasses.replace(workflow, **changes)


class TestLoader:
    def test_parses_document(self, workflow):
        assert workflow.name == "screening"
        assert workflow.version == 2
        assert workflow.initial_states == ("submitted",)
        assert workflow.terminal_states == ("rejected", "completed")
        assert workflow.edge_count == 5
        assert len(workflow.guards) == 1
        binding = workflow.guards[0]
        assert binding.kind == "amount_at_most"
        assert binding.params == {"field": "amount", "limit": 100000}

    def test_single_destination_string(self, workflow):
        approved = [t for t in workflow.transitions if t.from_state == "approved"][0]
        assert approved.to_states == ("completed",)

    def test_defaults(self):
        data = yaml.safe_load(SCREENING_YAML)
        del data["version"], data["initial_states"], data["guards"], data["description"]
        workflow = parse_workflow(data)
        assert workflow.version == 1
        assert workflow.initial_states is None
        assert workflow.guards == ()
        assert workflow.description == ""

    def test_missing_required_key(self):
        data = yaml.safe_load(SCREENING_YAML)
        del data["states"]
        with pytest.raises(KeyError):
            parse_workflow(data)

    def test_bad_shapes(self):
        data = yaml.safe_load(SCREENING_YAML)
        data["transitions"][0]["to"] = {"background_check": True}
        with pytest.raises(ValueError):
            parse_workflow(data)

        data = yaml.safe_load(SCREENING_YAML)
        data["guards"][0]["params"] = ["amount"]
        with pytest.raises(ValueError):
            parse_workflow(data)

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_workflow(tmp_path / "absent.yaml")

    def test_checksum_deterministic_and_sensitive(self, workflow, workflow_file):
        assert compute_checksum(workflow) == compute_checksum(load_workflow(workflow_file))

        raised = dataclasses.replace(
            workflow.guards[0], params={"field": "amount", "limit": 200000}
        )
        assert compute_checksum(_with(workflow, guards=(raised,))) != compute_checksum(workflow)


class TestValidator:
    def test_valid_document(self, workflow):
        result = validate_workflow_def(workflow)
        assert result.is_valid
        assert result.errors == []

    def test_unknown_guard_kind(self, workflow):
        binding = dataclasses.replace(workflow.guards[0], kind="credit_bureau_ok")
        result = validate_workflow_def(_with(workflow, guards=(binding,)))
        assert not result.is_valid
        assert any("unknown kind 'credit_bureau_ok'" in e for e in result.errors)

    def test_bad_guard_params(self, workflow):
        binding = dataclasses.replace(workflow.guards[0], params={"field": "amount"})
        result = validate_workflow_def(_with(workflow, guards=(binding,)))
        assert any("invalid params" in e for e in result.errors)

    def test_malformed_guard_value(self, workflow):
        binding = dataclasses.replace(
            workflow.guards[0], params={"field": "amount", "limit": "lots"}
        )
        result = validate_workflow_def(_with(workflow, guards=(binding,)))
        assert not result.is_valid
        assert any("rejected its params" in e for e in result.errors)

    def test_guard_on_undeclared_edge(self, workflow):
        binding = dataclasses.replace(workflow.guards[0], to_state="completed")
        result = validate_workflow_def(_with(workflow, guards=(binding,)))
        assert any("not a declared transition" in e for e in result.errors)

    def test_duplicate_guard_binding(self, workflow):
        result = validate_workflow_def(
            _with(workflow, guards=(workflow.guards[0], workflow.guards[0]))
        )
        assert any("bound twice" in e for e in result.errors)

    def test_duplicate_state_and_bad_header(self, workflow):
        result = validate_workflow_def(
            _with(workflow, name="", version=0, states=workflow.states + ("approved",))
        )
        assert "workflow name is empty" in result.errors
        assert any("version must be >= 1" in e for e in result.errors)
        assert any("'approved' declared more than once" in e for e in result.errors)

    def test_no_transitions(self, workflow):
        result = validate_workflow_def(_with(workflow, transitions=(), guards=()))
        assert "no transitions declared" in result.errors

    def test_split_source_is_warning(self, workflow):
        extra = dataclasses.replace(workflow.transitions[0], to_states=("rejected",))
        result = validate_workflow_def(
            _with(workflow, transitions=workflow.transitions + (extra,))
        )
        assert result.is_valid
        assert any("merged" in w for w in result.warnings)

    def test_custom_catalog(self, workflow):
        result = validate_workflow_def(workflow, catalog={"flag_set": flag_set})
        assert any("unknown kind 'amount_at_most'" in e for e in result.errors)


class TestBuilder:
    def test_build_engine_with_enum_states(self, workflow, make_context):
        engine = build_engine(workflow, state_type=Stage)
        app = Application(state=Stage.SUBMITTED, amount=Decimal("150000"))

        with pytest.raises(GuardDeniedError) as exc_info:
            engine.attempt(app, Stage.BACKGROUND_CHECK, make_context())
        assert exc_info.value.guard_name == "amount_within_limit"
        assert app.state is Stage.SUBMITTED

        app.amount = Decimal("90000")
        engine.attempt(app, Stage.BACKGROUND_CHECK, make_context())
        assert app.state is Stage.BACKGROUND_CHECK

    def test_build_engine_with_string_states(self, workflow, make_context):
        engine = build_engine(workflow)
        app = Application(state="submitted", amount=Decimal("1"))
        outcome = engine.attempt(app, "background_check", make_context())
        assert outcome.new_state == "background_check"

    def test_binding_description_applied(self, workflow):
        registry = build_guard_registry(workflow)
        (guard,) = registry.guards_for("submitted", "background_check")
        assert guard.description == "amount must be within the automatic limit"

    def test_table_merges_split_sources(self, workflow):
        extra = dataclasses.replace(workflow.transitions[2], to_states=("rejected",))
        table = build_transition_table(_with(workflow, transitions=workflow.transitions + (extra,)))
        assert table.outgoing("approved") == {"completed", "rejected"}

    def test_invalid_document_raises_and_logs(self, workflow, captured_logs):
        binding = dataclasses.replace(workflow.guards[0], kind="nope")
        with pytest.raises(ConfigurationError) as exc_info:
            build_engine(_with(workflow, guards=(binding,)))
        assert exc_info.value.workflow == "screening"
        assert any(r["message"] == "workflow_config_invalid" for r in captured_logs())

    def test_malformed_guard_value_raises_configuration_error(self, workflow):
        binding = dataclasses.replace(
            workflow.guards[0], params={"field": "amount", "limit": "lots"}
        )
        broken = _with(workflow, guards=(binding,))
        with pytest.raises(ConfigurationError) as exc_info:
            build_engine(broken)
        assert exc_info.value.workflow == "screening"

        with pytest.raises(ConfigurationError) as exc_info:
            build_guard_registry(broken)
        assert "amount_within_limit" in exc_info.value.problems[0]

    def test_graph_problem_raises(self, workflow):
        broken = tuple(t for t in workflow.transitions if t.from_state != "approved")
        with pytest.raises(ConfigurationError) as exc_info:
            build_engine(_with(workflow, transitions=broken))
        assert any("'approved' has no outgoing" in p for p in exc_info.value.problems)

    def test_state_not_in_enum(self, workflow):
        with pytest.raises(ConfigurationError) as exc_info:
            build_engine(_with(workflow, states=workflow.states + ("archived",)), state_type=Stage)
        assert "not a member of Stage" in str(exc_info.value)

    def test_custom_catalog(self, workflow, make_context):
        def always_deny(name=None):
            return Guard(name=name or "deny", predicate=lambda *a: False, description="closed")

        binding = GuardBindingDef(
            from_state="submitted", to_state="rejected", name="closed", kind="always_deny"
        )
        engine = build_engine(
            _with(workflow, guards=(binding,)), catalog={"always_deny": always_deny}
        )
        decision = engine.evaluate(Application(state="submitted"), "rejected", make_context())
        assert decision.reason == "closed"

    def test_engine_from_yaml_logs_checksum(self, workflow_file, workflow, captured_logs):
        engine = engine_from_yaml(workflow_file, state_type=Stage)
        assert engine.name == "screening"
        loaded = [r for r in captured_logs() if r["message"] == "workflow_config_loaded"]
        assert loaded[0]["checksum"] == compute_checksum(workflow)
        assert loaded[0]["version"] == 2
        assert loaded[0]["edge_count"] == 5
