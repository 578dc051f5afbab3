"""Workflow layer — step graphs for sensors (read-only) and actions.

workflows/
  models.py    — WorkflowDefinition, WorkflowStep, WorkflowContext
  registry.py  — WorkflowRegistry (registration-time validation)
  runner.py    — WorkflowRunner (traversal, handlers, timeout)
  builders.py  — SensorWorkflow / ActionWorkflow fluent builders
"""

from automation_engine.workflows.builders import ActionWorkflow, SensorWorkflow
from automation_engine.workflows.models import (
    StepType,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowType,
)
from automation_engine.workflows.registry import WorkflowRegistry, get_workflow_registry
from automation_engine.workflows.runner import ExecutionOptions, StepHandler, WorkflowRunner

__all__ = [
    "ActionWorkflow",
    "ExecutionOptions",
    "SensorWorkflow",
    "StepHandler",
    "StepType",
    "WorkflowContext",
    "WorkflowDefinition",
    "WorkflowRegistry",
    "WorkflowRunner",
    "WorkflowStep",
    "WorkflowType",
    "get_workflow_registry",
]
