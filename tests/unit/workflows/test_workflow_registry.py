"""Unit tests — WorkflowRegistry validation and lookup."""

from __future__ import annotations

import pytest

from automation_engine.exceptions import WorkflowValidationError
from automation_engine.workflows.models import (
    StepType,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowType,
)
from automation_engine.workflows.registry import WorkflowRegistry, get_workflow_registry


def _workflow(workflow_id: str = "wf", type: str = "sensor", **overrides) -> WorkflowDefinition:
    fields = {
        "id": workflow_id,
        "name": workflow_id.title(),
        "type": type,
        "steps": [
            WorkflowStep(id="a", type=StepType.STORE, config={"key": "k", "value": 1}, next_steps=["b"]),
            WorkflowStep(id="b", type=StepType.NOTIFY, config={"message": "done"}),
        ],
        "entry_step": "a",
    }
    fields.update(overrides)
    return WorkflowDefinition(**fields)


@pytest.mark.unit
class TestRegister:
    def test_register_and_get(self, workflow_registry: WorkflowRegistry) -> None:
        workflow = workflow_registry.register(_workflow())
        assert workflow_registry.get("wf") is workflow
        assert workflow_registry.has("wf")
        assert "wf" in workflow_registry
        assert len(workflow_registry) == 1

    def test_register_replaces_same_id(self, workflow_registry: WorkflowRegistry) -> None:
        workflow_registry.register(_workflow())
        replacement = workflow_registry.register(_workflow(name="Other"))
        assert workflow_registry.get("wf") is replacement
        assert len(workflow_registry) == 1

    def test_register_from_dict(self, workflow_registry: WorkflowRegistry) -> None:
        workflow = workflow_registry.register(
            {
                "id": "dict-wf",
                "name": "Dict",
                "type": "action",
                "entryStep": "n",
                "steps": [{"id": "n", "type": "notify", "config": {"message": "hi"}, "nextSteps": []}],
            }
        )
        assert workflow.type is WorkflowType.ACTION
        assert workflow.steps[0].type is StepType.NOTIFY

    def test_invalid_workflow_rejected(self, workflow_registry: WorkflowRegistry) -> None:
        with pytest.raises(WorkflowValidationError) as exc_info:
            workflow_registry.register(_workflow(entry_step="missing"))
        assert "Entry step 'missing' not found in steps" in exc_info.value.errors
        assert exc_info.value.workflow_id == "wf"
        assert not workflow_registry.has("wf")

    def test_unregister(self, workflow_registry: WorkflowRegistry) -> None:
        workflow_registry.register(_workflow())
        assert workflow_registry.unregister("wf")
        assert not workflow_registry.unregister("wf")

    def test_filter_by_type(self, workflow_registry: WorkflowRegistry) -> None:
        sensor = workflow_registry.register(_workflow("s1"))
        action = workflow_registry.register(_workflow("a1", type="action"))
        assert workflow_registry.get_sensor_workflows() == [sensor]
        assert workflow_registry.get_action_workflows() == [action]
        assert workflow_registry.get_by_type("action") == [action]
        assert workflow_registry.get_all() == [sensor, action]

    def test_clear(self, workflow_registry: WorkflowRegistry) -> None:
        workflow_registry.register(_workflow())
        workflow_registry.clear()
        assert len(workflow_registry) == 0

    def test_default_registry_is_shared(self) -> None:
        assert get_workflow_registry() is get_workflow_registry()


@pytest.mark.unit
class TestValidate:
    def test_valid(self, workflow_registry: WorkflowRegistry) -> None:
        assert workflow_registry.validate(_workflow()).valid

    def test_missing_id_and_name(self, workflow_registry: WorkflowRegistry) -> None:
        errors = workflow_registry.validate(_workflow(workflow_id="", name="")).errors
        assert "Workflow must have a string id" in errors
        assert "Workflow must have a string name" in errors

    def test_bad_type(self, workflow_registry: WorkflowRegistry) -> None:
        errors = workflow_registry.validate(_workflow(type="chore")).errors
        assert 'Workflow type must be "sensor" or "action"' in errors

    def test_duplicate_step(self, workflow_registry: WorkflowRegistry) -> None:
        steps = [
            WorkflowStep(id="a", type="notify"),
            WorkflowStep(id="a", type="notify"),
        ]
        errors = workflow_registry.validate(_workflow(steps=steps)).errors
        assert "Duplicate step id: a" in errors

    def test_unknown_references(self, workflow_registry: WorkflowRegistry) -> None:
        steps = [
            WorkflowStep(id="a", type="notify", next_steps=["ghost"], on_error="phantom"),
        ]
        errors = workflow_registry.validate(_workflow(steps=steps)).errors
        assert "Step 'a' references unknown next step 'ghost'" in errors
        assert "Step 'a' references unknown error step 'phantom'" in errors

    def test_unknown_branch_targets(self, workflow_registry: WorkflowRegistry) -> None:
        steps = [
            WorkflowStep(id="a", type="condition", config={"condition": "x", "thenStep": "yes"}),
            WorkflowStep(id="b", type="parallel", config={"steps": ["a", "nope"]}),
        ]
        errors = workflow_registry.validate(_workflow(steps=steps)).errors
        assert "Step 'a' references unknown step 'yes'" in errors
        assert "Step 'b' references unknown step 'nope'" in errors

    def test_cycles_are_allowed(self, workflow_registry: WorkflowRegistry) -> None:
        steps = [
            WorkflowStep(id="a", type="notify", next_steps=["b"]),
            WorkflowStep(id="b", type="notify", next_steps=["a"]),
        ]
        assert workflow_registry.validate(_workflow(steps=steps)).valid
