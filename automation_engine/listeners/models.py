"""Automation rule and pipeline result models.

An ``AutomationConfig`` binds a match predicate (source / scope / modality,
plus optional website, ``@mention`` patterns, tags and legacy context
keywords) to the pipeline stages run when it matches: sensor workflows, a
condition tree, the reasoning collaborator and action workflows.

Configs are created by configuration loading and are read-only while the
engine matches events.  ``from_dict`` accepts camelCase keys so configs
saved by older front-ends load unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from automation_engine.events.models import Modality, TriggerScope, TriggerSource
from automation_engine.naming import snake_keys


class ListenerMode(str, Enum):
    ACTIVE = "active"
    PASSIVE = "passive"


@dataclass
class AutomationTrigger:
    """Which events an automation listens to."""

    source: TriggerSource = TriggerSource.CHAT
    scope: TriggerScope = TriggerScope.GLOBAL
    modalities: list[Modality] = field(default_factory=list)
    schedule: str | None = None
    polling_interval: int | None = None
    webhook_path: str | None = None
    dom_selector: str | None = None
    dom_event: str | None = None
    workflow_id: str | None = None

    def __post_init__(self) -> None:
        self.source = TriggerSource(self.source)
        self.scope = TriggerScope(self.scope)
        self.modalities = [Modality(m) for m in self.modalities]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AutomationTrigger":
        raw = snake_keys(data)
        names = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in raw.items() if k in names and v is not None})

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "source": self.source.value,
            "scope": self.scope.value,
            "modalities": [m.value for m in self.modalities],
        }
        for key in (
            "schedule", "polling_interval", "webhook_path",
            "dom_selector", "dom_event", "workflow_id",
        ):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        return d


@dataclass
class AutomationConfig:
    id: str
    name: str = ""
    enabled: bool = True
    mode: ListenerMode = ListenerMode.ACTIVE
    trigger: AutomationTrigger = field(default_factory=AutomationTrigger)

    # Matching
    tags: list[str] = field(default_factory=list)
    patterns: list[str] = field(default_factory=list)
    expected_context: str | None = None
    website: str | None = None

    # Pipeline
    sensor_workflows: list[str] = field(default_factory=list)
    conditions: dict[str, Any] | None = None
    reasoning_profile: str = ""
    allowed_actions: list[str] = field(default_factory=list)
    report_to: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        self.mode = ListenerMode(self.mode)
        if isinstance(self.trigger, dict):
            self.trigger = AutomationTrigger.from_dict(self.trigger)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AutomationConfig":
        raw = snake_keys(data)
        names = cls.__dataclass_fields__.keys()
        kwargs = {k: v for k, v in raw.items() if k in names and v is not None}
        kwargs.setdefault("id", "")
        return cls(**kwargs)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "mode": self.mode.value,
            "trigger": self.trigger.to_dict(),
            "tags": list(self.tags),
            "patterns": list(self.patterns),
            "sensor_workflows": list(self.sensor_workflows),
            "conditions": self.conditions,
            "reasoning_profile": self.reasoning_profile,
            "allowed_actions": list(self.allowed_actions),
            "report_to": list(self.report_to),
        }
        if self.expected_context is not None:
            d["expected_context"] = self.expected_context
        if self.website is not None:
            d["website"] = self.website
        return d


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class MatchResult:
    automation_id: str
    matched: bool
    reason: str


@dataclass
class ActionResult:
    workflow_id: str
    success: bool
    output: Any = None
    error: Exception | None = None


@dataclass
class ProcessingResult:
    """Outcome of running one matched automation against one event."""

    automation_id: str
    event_id: str
    match_reason: str
    success: bool = False
    sensor_data: dict[str, Any] = field(default_factory=dict)
    conditions_passed: bool = False
    reasoning_result: Any = None
    action_results: list[ActionResult] = field(default_factory=list)
    errors: list[Exception] = field(default_factory=list)
    duration_ms: float = 0.0
