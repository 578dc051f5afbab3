"""WorkflowRegistry — validated store of workflow definitions.

Structural problems are rejected when a workflow is registered, never
discovered while it runs.
"""

from __future__ import annotations

from typing import Any

from automation_engine.conditions.engine import ValidationResult
from automation_engine.exceptions import WorkflowValidationError
from automation_engine.logging import get_logger
from automation_engine.workflows.models import StepType, WorkflowDefinition, WorkflowType

log = get_logger(__name__)


class WorkflowRegistry:
    def __init__(self) -> None:
        self._workflows: dict[str, WorkflowDefinition] = {}

    # ---------------------------------------------------------------------------
    # Registration
    # ---------------------------------------------------------------------------

    def register(self, workflow: WorkflowDefinition | dict[str, Any]) -> WorkflowDefinition:
        """Validate and store *workflow*, replacing any previous one with its id.

        Raises:
            WorkflowValidationError: the definition is structurally invalid.
        """
        if isinstance(workflow, dict):
            workflow = WorkflowDefinition.from_dict(workflow)
        validation = self.validate(workflow)
        if not validation.valid:
            raise WorkflowValidationError(str(workflow.id), validation.errors)
        self._workflows[workflow.id] = workflow
        log.info(
            "workflow_registered",
            workflow_id=workflow.id,
            type=workflow.type.value,
            steps=len(workflow.steps),
        )
        return workflow

    def unregister(self, workflow_id: str) -> bool:
        return self._workflows.pop(workflow_id, None) is not None

    def validate(self, workflow: WorkflowDefinition) -> ValidationResult:
        errors: list[str] = []

        if not isinstance(workflow.id, str) or not workflow.id:
            errors.append("Workflow must have a string id")
        if not isinstance(workflow.name, str) or not workflow.name:
            errors.append("Workflow must have a string name")
        if not isinstance(workflow.type, WorkflowType):
            errors.append('Workflow type must be "sensor" or "action"')

        if not isinstance(workflow.steps, list):
            errors.append("Workflow must have a steps list")
            return ValidationResult(valid=False, errors=errors)

        declared = {step.id for step in workflow.steps if step.id}

        if not workflow.entry_step:
            errors.append("Workflow must have an entry_step")
        elif workflow.entry_step not in declared:
            errors.append(f"Entry step '{workflow.entry_step}' not found in steps")

        seen: set[str] = set()
        for step in workflow.steps:
            if not step.id:
                errors.append("Each step must have an id")
                continue
            if step.id in seen:
                errors.append(f"Duplicate step id: {step.id}")
            seen.add(step.id)

            if not step.type:
                errors.append(f"Step '{step.id}' must have a type")

            for next_id in step.next_steps:
                if next_id not in declared:
                    errors.append(f"Step '{step.id}' references unknown next step '{next_id}'")
            if step.on_error and step.on_error not in declared:
                errors.append(
                    f"Step '{step.id}' references unknown error step '{step.on_error}'"
                )
            for ref in _config_references(step.type, step.config):
                if ref not in declared:
                    errors.append(f"Step '{step.id}' references unknown step '{ref}'")

        return ValidationResult(valid=not errors, errors=errors)

    # ---------------------------------------------------------------------------
    # Lookup
    # ---------------------------------------------------------------------------

    def get(self, workflow_id: str) -> WorkflowDefinition | None:
        return self._workflows.get(workflow_id)

    def has(self, workflow_id: str) -> bool:
        return workflow_id in self._workflows

    def get_all(self) -> list[WorkflowDefinition]:
        return list(self._workflows.values())

    def get_by_type(self, workflow_type: WorkflowType | str) -> list[WorkflowDefinition]:
        wanted = WorkflowType(workflow_type)
        return [w for w in self._workflows.values() if w.type == wanted]

    def get_sensor_workflows(self) -> list[WorkflowDefinition]:
        return self.get_by_type(WorkflowType.SENSOR)

    def get_action_workflows(self) -> list[WorkflowDefinition]:
        return self.get_by_type(WorkflowType.ACTION)

    def clear(self) -> None:
        self._workflows.clear()

    def __len__(self) -> int:
        return len(self._workflows)

    def __contains__(self, workflow_id: object) -> bool:
        return workflow_id in self._workflows


def _config_references(step_type: Any, config: dict[str, Any]) -> list[str]:
    """Step ids named inside a step's config (branch targets, parallel fan-out)."""
    if step_type == StepType.CONDITION:
        return [
            config[key] for key in ("thenStep", "elseStep")
            if isinstance(config.get(key), str) and config[key]
        ]
    if step_type == StepType.PARALLEL:
        return [s for s in config.get("steps") or [] if isinstance(s, str)]
    return []


_default_registry: WorkflowRegistry | None = None


def get_workflow_registry() -> WorkflowRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = WorkflowRegistry()
    return _default_registry
