"""Automation Engine — Exception hierarchy.

All exceptions raised by the engine inherit from AutomationError so that
callers can catch the full family with a single except clause when needed.

Match failures are never exceptions: they are reported as reason strings on
the result records.  Only structural problems (detected at registration or
schedule time) and run-time workflow failures raise.

Hierarchy:
    AutomationError
    ├── ValidationError
    │   ├── ConditionValidationError
    │   ├── WorkflowValidationError
    │   └── AutomationConfigError
    ├── TriggerError
    │   └── CronExpressionError
    └── WorkflowError
        ├── WorkflowNotFoundError
        ├── WorkflowTypeError
        ├── StepHandlerError
        ├── WorkflowTimeoutError
        └── ApiStepError
"""

from __future__ import annotations

from typing import Any


class AutomationError(Exception):
    """Base exception for all automation engine errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context or {}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context})"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class ValidationError(AutomationError):
    """Base for structural validation failures detected at registration time."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        super().__init__(message, context={"errors": errors or []})
        self.errors = errors or []


class ConditionValidationError(ValidationError):
    """A condition tree is malformed."""


class WorkflowValidationError(ValidationError):
    """A workflow definition failed registration-time validation."""

    def __init__(self, workflow_id: str, errors: list[str]) -> None:
        super().__init__(f"Invalid workflow: {', '.join(errors)}", errors=errors)
        self.workflow_id = workflow_id
        self.context["workflow_id"] = workflow_id


class AutomationConfigError(ValidationError):
    """An automation config cannot be registered."""


# ---------------------------------------------------------------------------
# Triggers
# ---------------------------------------------------------------------------


class TriggerError(AutomationError):
    """Base for trigger lifecycle and scheduling errors."""


class CronExpressionError(TriggerError):
    """A cron expression could not be parsed."""

    def __init__(self, expression: str, reason: str) -> None:
        super().__init__(
            f"Invalid cron expression '{expression}': {reason}",
            context={"expression": expression, "reason": reason},
        )
        self.expression = expression
        self.reason = reason


# ---------------------------------------------------------------------------
# Workflows
# ---------------------------------------------------------------------------


class WorkflowError(AutomationError):
    """Base for workflow execution errors."""


class WorkflowNotFoundError(WorkflowError):
    """No workflow is registered under the requested id."""

    def __init__(self, workflow_id: str, kind: str = "Workflow") -> None:
        super().__init__(
            f"{kind} workflow '{workflow_id}' not found",
            context={"workflow_id": workflow_id, "kind": kind},
        )
        self.workflow_id = workflow_id


class WorkflowTypeError(WorkflowError):
    """A workflow was resolved but has the wrong type (sensor vs action)."""

    def __init__(self, workflow_id: str, expected: str) -> None:
        super().__init__(
            f"Workflow '{workflow_id}' is not a {expected} workflow",
            context={"workflow_id": workflow_id, "expected": expected},
        )
        self.workflow_id = workflow_id
        self.expected = expected


class StepHandlerError(WorkflowError):
    """No handler is registered for a step type."""

    def __init__(self, step_id: str, step_type: str) -> None:
        super().__init__(
            f"No handler for step type: {step_type}",
            context={"step_id": step_id, "step_type": step_type},
        )
        self.step_id = step_id
        self.step_type = step_type


class WorkflowTimeoutError(WorkflowError):
    """The workflow traversal exceeded its deadline."""

    def __init__(self, workflow_id: str, timeout_ms: float) -> None:
        super().__init__(
            f"Workflow '{workflow_id}' timed out after {timeout_ms:g}ms",
            context={"workflow_id": workflow_id, "timeout_ms": timeout_ms},
        )
        self.workflow_id = workflow_id
        self.timeout_ms = timeout_ms


class ApiStepError(WorkflowError):
    """An ``api`` step received a non-success HTTP response."""

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        super().__init__(
            f"API call failed: {status_code} {reason}".rstrip(),
            context={"url": url, "status_code": status_code},
        )
        self.url = url
        self.status_code = status_code
