"""Legacy agent config adapter.

Older front-ends stored one "agent" per automation with a ``listening``
block that mixed event sources and content types::

    {
        "id": "a1", "name": "Invoices", "enabled": true,
        "listening": {
            "source": "image", "passiveEnabled": true,
            "passive": {"triggers": [{"tag": {"name": "Invoice"}}]},
            "tags": ["screenshot"], "expectedContext": "invoice, receipt",
            "website": "billing.example.com", "reportTo": ["slack"]
        },
        "reasoning": {"applyFor": "mixed"},
        "execution": {"workflows": ["store-result"]}
    }

This module converts such dicts to ``AutomationConfig``.  Every function is
pure: inputs are never mutated and list values are deep-copied.

Conversion rules:
  - id becomes ``auto_<agent id>``; ``reasoning_profile`` keeps the agent id.
  - scope is always ``agent``.
  - mode is ``passive`` when ``passiveEnabled`` is set, otherwise ``active``.
  - ``@mention`` patterns are the union of passive and active trigger tag
    names, in first-seen order.
  - ``allowed_actions`` come from ``execution.workflows``.
  - conditions and sensor workflows start empty.
"""

from __future__ import annotations

import copy
import time
from dataclasses import dataclass, field
from typing import Any, Iterable

from automation_engine.events.models import Modality, TriggerScope, TriggerSource
from automation_engine.listeners.models import (
    AutomationConfig,
    AutomationTrigger,
    ListenerMode,
)
from automation_engine.logging import get_logger
from automation_engine.naming import snake_keys

log = get_logger(__name__)

_SOURCE_ALIASES: dict[str, TriggerSource] = {
    "chat": TriggerSource.CHAT,
    "message": TriggerSource.CHAT,
    "dom": TriggerSource.DOM,
    "page": TriggerSource.DOM,
    "webpage": TriggerSource.DOM,
    "api": TriggerSource.API,
    "webhook": TriggerSource.API,
    "backend": TriggerSource.BACKEND,
    "service": TriggerSource.BACKEND,
    "workflow": TriggerSource.WORKFLOW,
    "cron": TriggerSource.CRON,
    "schedule": TriggerSource.CRON,
    "scheduled": TriggerSource.CRON,
    # Legacy values that named a content type rather than a source.
    "text": TriggerSource.CHAT,
    "image": TriggerSource.CHAT,
    "all": TriggerSource.CHAT,
    "screenshot": TriggerSource.DOM,
    "screen": TriggerSource.DOM,
}


@dataclass
class AdaptedConfig:
    """A converted config plus human-readable notes on what was inferred."""

    config: AutomationConfig
    notes: list[str] = field(default_factory=list)


def _section(data: dict[str, Any] | None, key: str) -> dict[str, Any]:
    value = (data or {}).get(key)
    return snake_keys(value) if isinstance(value, dict) else {}


def adapt_legacy_source(legacy_source: str | None) -> TriggerSource:
    """Map a legacy "listen on" value to a ``TriggerSource`` (default chat)."""
    if not legacy_source:
        return TriggerSource.CHAT
    return _SOURCE_ALIASES.get(legacy_source.lower(), TriggerSource.CHAT)


def infer_modalities(agent: dict[str, Any]) -> list[Modality]:
    """Derive modalities from the legacy source, tags and ``reasoning.applyFor``."""
    agent = snake_keys(agent)
    listening = _section(agent, "listening")
    modalities = [Modality.TEXT]

    def add(*items: Modality) -> None:
        for item in items:
            if item not in modalities:
                modalities.append(item)

    source = str(listening.get("source") or "").lower()
    if source in ("image", "screenshot"):
        add(Modality.IMAGE)
    if source == "all":
        add(Modality.IMAGE, Modality.VIDEO, Modality.CODE)

    tags = listening.get("tags") or []
    if "image" in tags or "screenshot" in tags:
        add(Modality.IMAGE)
    if "video" in tags:
        add(Modality.VIDEO)
    if "code" in tags:
        add(Modality.CODE)

    apply_for = str(_section(agent, "reasoning").get("apply_for") or "").lower()
    if apply_for in ("image", "mixed"):
        add(Modality.IMAGE)

    return modalities


def _trigger_tag_names(block: dict[str, Any]) -> list[str]:
    names = []
    for trigger in block.get("triggers") or []:
        name = ((trigger or {}).get("tag") or {}).get("name")
        if name:
            names.append(name)
    return names


def adapt_legacy_config(agent: dict[str, Any]) -> AdaptedConfig:
    raw = snake_keys(agent)
    listening = _section(raw, "listening")
    execution = _section(raw, "execution")
    agent_id = str(raw.get("id") or "")
    notes: list[str] = []

    source = adapt_legacy_source(listening.get("source"))
    if listening.get("source") and listening["source"].lower() != source.value:
        notes.append(f"source '{listening['source']}' mapped to '{source.value}'")

    mode = ListenerMode.PASSIVE if listening.get("passive_enabled") else ListenerMode.ACTIVE

    patterns: list[str] = []
    for name in _trigger_tag_names(_section(listening, "passive")) + _trigger_tag_names(
        _section(listening, "active")
    ):
        if name not in patterns:
            patterns.append(name)
    if patterns:
        notes.append(f"patterns from legacy triggers: {', '.join(patterns)}")

    modalities = infer_modalities(agent)
    if modalities != [Modality.TEXT]:
        notes.append(f"modalities inferred: {', '.join(m.value for m in modalities)}")

    config = AutomationConfig(
        id=f"auto_{agent_id}",
        name=raw.get("name") or f"Agent {raw.get('key') or agent_id}",
        enabled=bool(raw.get("enabled", True)),
        mode=mode,
        trigger=AutomationTrigger(
            source=source,
            scope=TriggerScope.AGENT,
            modalities=modalities,
        ),
        tags=copy.deepcopy(listening.get("tags") or []),
        patterns=patterns,
        expected_context=listening.get("expected_context"),
        website=listening.get("website"),
        sensor_workflows=[],
        conditions=None,
        reasoning_profile=agent_id,
        allowed_actions=copy.deepcopy(execution.get("workflows") or []),
        report_to=copy.deepcopy(listening.get("report_to") or []),
    )
    return AdaptedConfig(config=config, notes=notes)


def adapt_many(agents: Iterable[dict[str, Any]]) -> list[AdaptedConfig]:
    return [adapt_legacy_config(agent) for agent in agents]


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------


def is_legacy_config(obj: Any) -> bool:
    if not isinstance(obj, dict):
        return False
    raw = snake_keys(obj)
    if _section(raw, "trigger").get("source"):
        return False
    listening = _section(raw, "listening")
    if "passive_enabled" in listening or "active_enabled" in listening:
        return True
    if _section(listening, "passive").get("triggers"):
        return True
    if _section(listening, "active").get("triggers"):
        return True
    return "apply_for" in _section(raw, "reasoning")


def is_new_config(obj: Any) -> bool:
    if isinstance(obj, AutomationConfig):
        return True
    if not isinstance(obj, dict):
        return False
    raw = snake_keys(obj)
    return bool(
        _section(raw, "trigger").get("source")
        and raw.get("mode")
        and isinstance(raw.get("sensor_workflows"), list)
    )


def ensure_new_format(obj: Any) -> AutomationConfig:
    """Return *obj* as an ``AutomationConfig`` whatever format it arrived in.

    Unknown shapes produce a minimal enabled chat/global config and a warning.
    """
    if isinstance(obj, AutomationConfig):
        return obj
    if is_new_config(obj):
        return AutomationConfig.from_dict(copy.deepcopy(obj))
    if is_legacy_config(obj):
        return adapt_legacy_config(obj).config

    raw = snake_keys(obj) if isinstance(obj, dict) else {}
    log.warning("unknown_config_format", id=raw.get("id"))
    automation_id = raw.get("id") or f"auto_{int(time.time() * 1000)}"
    return AutomationConfig(
        id=automation_id,
        name=raw.get("name") or "Unknown Automation",
        enabled=raw.get("enabled") is not False,
        trigger=AutomationTrigger(
            source=TriggerSource.CHAT,
            scope=TriggerScope.GLOBAL,
            modalities=[Modality.TEXT],
        ),
        reasoning_profile=raw.get("id") or "",
    )
