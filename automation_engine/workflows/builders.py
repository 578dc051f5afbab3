"""Fluent builders for sensor and action workflows.

Each added step is automatically linked from the previous one, so a chain of
calls produces a linear workflow entered at the first step::

    workflow = (
        SensorWorkflow.create("page-data")
        .name("Page data")
        .fetch("load", "https://api.example.com/page")
        .transform("shape", lambda data: {"title": data.get("title", "")})
        .build()
    )

``SensorWorkflow`` only offers read-only step helpers; ``ActionWorkflow``
adds notifications, API calls, loops, fan-out and agent calls.  Both accept
any step type through ``step()``.
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from automation_engine.exceptions import AutomationError
from automation_engine.workflows.models import (
    StepType,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowType,
)

_B = TypeVar("_B", bound="_WorkflowBuilder")


class _WorkflowBuilder:
    workflow_type: WorkflowType

    def __init__(self, workflow_id: str) -> None:
        self._id = workflow_id
        self._name: str | None = None
        self._description: str | None = None
        self._steps: list[WorkflowStep] = []

    @classmethod
    def create(cls: type[_B], workflow_id: str) -> _B:
        return cls(workflow_id)

    def name(self: _B, name: str) -> _B:
        self._name = name
        return self

    def description(self: _B, description: str) -> _B:
        self._description = description
        return self

    def step(
        self: _B,
        step_id: str,
        step_type: StepType | str,
        config: dict[str, Any] | None = None,
    ) -> _B:
        """Append a step and link it from the previous one."""
        if self._steps:
            self._steps[-1].next_steps.append(step_id)
        self._steps.append(WorkflowStep(id=step_id, type=step_type, config=dict(config or {})))
        return self

    def on_error(self: _B, error_step_id: str) -> _B:
        """Route failures of the most recently added step to *error_step_id*."""
        if not self._steps:
            raise AutomationError("No steps to add error handler to")
        self._steps[-1].on_error = error_step_id
        return self

    # Steps shared by both workflow kinds.

    def transform(self: _B, step_id: str, expression: Callable[[dict[str, Any]], Any]) -> _B:
        return self.step(step_id, StepType.TRANSFORM, {"expression": expression})

    def wait(self: _B, step_id: str, delay_ms: int) -> _B:
        return self.step(step_id, StepType.WAIT, {"delay": delay_ms})

    def condition(
        self: _B,
        step_id: str,
        condition: Callable[[WorkflowContext], bool] | str,
        then_step: str,
        else_step: str | None = None,
    ) -> _B:
        return self.step(
            step_id,
            StepType.CONDITION,
            {"condition": condition, "thenStep": then_step, "elseStep": else_step},
        )

    def store(self: _B, step_id: str, key: str, value: Any) -> _B:
        """``value`` may be a callable receiving the ``WorkflowContext``."""
        return self.step(step_id, StepType.STORE, {"key": key, "value": value})

    def build(self) -> WorkflowDefinition:
        if not self._steps:
            raise AutomationError(
                "Workflow must have at least one step", context={"workflow_id": self._id}
            )
        return WorkflowDefinition(
            id=self._id,
            name=self._name or self._id,
            type=self.workflow_type,
            steps=list(self._steps),
            entry_step=self._steps[0].id,
            description=self._description,
        )


class SensorWorkflow(_WorkflowBuilder):
    """Builder for read-only data-gathering workflows."""

    workflow_type = WorkflowType.SENSOR

    def fetch(
        self,
        step_id: str,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> "SensorWorkflow":
        return self.step(
            step_id,
            StepType.API,
            {"url": url, "method": method, "headers": headers or {}, "body": body},
        )


class ActionWorkflow(_WorkflowBuilder):
    """Builder for side-effecting workflows."""

    workflow_type = WorkflowType.ACTION

    def notify(self, step_id: str, level: str, message: str) -> "ActionWorkflow":
        return self.step(step_id, StepType.NOTIFY, {"type": level, "message": message})

    def api(
        self,
        step_id: str,
        url: str,
        method: str = "GET",
        headers: dict[str, str] | None = None,
        body: Any = None,
    ) -> "ActionWorkflow":
        return self.step(
            step_id,
            StepType.API,
            {"url": url, "method": method, "headers": headers or {}, "body": body},
        )

    def loop(
        self,
        step_id: str,
        items: str | Callable[[WorkflowContext], list[Any]],
        item_key: str = "item",
    ) -> "ActionWorkflow":
        return self.step(step_id, StepType.LOOP, {"items": items, "itemKey": item_key})

    def parallel(self, step_id: str, steps: list[str]) -> "ActionWorkflow":
        return self.step(step_id, StepType.PARALLEL, {"steps": list(steps)})

    def agent(
        self,
        step_id: str,
        agent_id: str,
        input: str | Callable[[WorkflowContext], str] | None = None,
    ) -> "ActionWorkflow":
        return self.step(step_id, StepType.AGENT, {"agentId": agent_id, "input": input})


# ---------------------------------------------------------------------------
# Prebuilt workflows
# ---------------------------------------------------------------------------


def event_snapshot() -> WorkflowDefinition:
    """Sensor: copy the identifying fields of the triggering event."""
    return (
        SensorWorkflow.create("event-snapshot")
        .name("Event Snapshot")
        .description("Collect the source, scope and session of the triggering event")
        .store(
            "snapshot",
            "event",
            lambda ctx: {
                "id": ctx.event.id,
                "source": ctx.event.source.value,
                "scope": ctx.event.scope.value,
                "sessionKey": ctx.event.session_key,
                "timestamp": ctx.event.timestamp,
            },
        )
        .build()
    )


def ocr_extract(url: str) -> WorkflowDefinition:
    """Sensor: post to an OCR service and keep text + confidence."""
    return (
        SensorWorkflow.create("ocr-extract")
        .name("OCR Text Extraction")
        .description("Extract text from an image using an OCR service")
        .fetch("ocr", url, method="POST", body=lambda ctx: {"imageUrl": ctx.event.image_url})
        .transform(
            "parse",
            lambda data: {
                "extractedText": data.get("text", ""),
                "confidence": data.get("confidence", 0),
            },
        )
        .build()
    )


def notify_success(message: str = "Operation completed successfully") -> WorkflowDefinition:
    return (
        ActionWorkflow.create("notify-success")
        .name("Success Notification")
        .description("Display a success notification")
        .notify("notify", "success", message)
        .build()
    )


def webhook_post(url: str, body: Callable[[WorkflowContext], Any]) -> WorkflowDefinition:
    return (
        ActionWorkflow.create("webhook-post")
        .name("Webhook POST")
        .description("Send data to a webhook")
        .api("send", url, method="POST", body=body)
        .build()
    )


def store_result(key: str) -> WorkflowDefinition:
    """Action: stage the reasoning result under *key*."""
    return (
        ActionWorkflow.create("store-result")
        .name("Store Result")
        .description("Store the reasoning result")
        .store("save", key, lambda ctx: ctx.reasoning_result)
        .build()
    )
