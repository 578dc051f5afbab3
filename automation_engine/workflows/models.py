"""Workflow data models.

A workflow is a graph of steps entered at ``entry_step``.  Steps link to
their successors by id through ``next_steps`` and, optionally, to an error
handler through ``on_error``.  The graph may contain cycles: the runner
enters every step at most once per run.

Step config quick-reference
---------------------------
agent       agentId, input (default event.input)      -> {agentId, input}
wait        delay (ms, default 1000)                  -> {waited}
transform   expression(collected_data) (optional)     -> expression result
store       key, value (or value(context))            -> {stored: {key: value}}
notify      type, message                             -> {notified, type, message}
condition   condition (callable or collected key),
            thenStep, elseStep                        -> {condition, nextStep}
loop        items (callable or collected key),
            itemKey (default "item")                  -> {items, itemKey}
parallel    steps (list of step ids)                  -> {parallelSteps}
api         url, method, headers,
            body (or body(context))                   -> decoded JSON response

Callables in config may be plain functions or coroutines.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from automation_engine.events.models import NormalizedEvent
from automation_engine.naming import snake_keys


class WorkflowType(str, Enum):
    SENSOR = "sensor"
    """Read-only: gathers data, never performs side effects."""
    ACTION = "action"
    """May perform side effects (network calls, notifications, storage)."""


class StepType(str, Enum):
    AGENT = "agent"
    CONDITION = "condition"
    LOOP = "loop"
    PARALLEL = "parallel"
    WAIT = "wait"
    TRANSFORM = "transform"
    API = "api"
    NOTIFY = "notify"
    STORE = "store"


def _coerce(enum_cls: type[Enum], value: Any) -> Any:
    """Return the enum member for *value*, or *value* unchanged if invalid.

    Invalid values are left for ``WorkflowRegistry.validate`` to report.
    """
    try:
        return enum_cls(value)
    except ValueError:
        return value


@dataclass
class WorkflowStep:
    id: str
    type: StepType | str
    config: dict[str, Any] = field(default_factory=dict)
    next_steps: list[str] = field(default_factory=list)
    on_error: str | None = None
    name: str | None = None

    def __post_init__(self) -> None:
        self.type = _coerce(StepType, self.type)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowStep":
        raw = snake_keys(data)
        return cls(
            id=raw.get("id", ""),
            type=raw.get("type", ""),
            config=dict(raw.get("config") or {}),
            next_steps=list(raw.get("next_steps") or []),
            on_error=raw.get("on_error"),
            name=raw.get("name"),
        )


@dataclass
class WorkflowDefinition:
    id: str
    name: str
    type: WorkflowType | str
    steps: list[WorkflowStep] = field(default_factory=list)
    entry_step: str = ""
    description: str | None = None

    def __post_init__(self) -> None:
        self.type = _coerce(WorkflowType, self.type)

    def get_step(self, step_id: str) -> WorkflowStep | None:
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WorkflowDefinition":
        raw = snake_keys(data)
        return cls(
            id=raw.get("id", ""),
            name=raw.get("name", ""),
            type=raw.get("type", ""),
            steps=[
                s if isinstance(s, WorkflowStep) else WorkflowStep.from_dict(s)
                for s in raw.get("steps") or []
            ],
            entry_step=raw.get("entry_step", ""),
            description=raw.get("description"),
        )


@dataclass
class WorkflowContext:
    """Per-run state bag.  Owned by exactly one pipeline run."""

    event: NormalizedEvent
    collected_data: dict[str, Any] = field(default_factory=dict)
    errors: list[Exception] = field(default_factory=list)
    current_step: str | None = None
    reasoning_result: Any = None
    start_time: float = field(default_factory=time.time)
