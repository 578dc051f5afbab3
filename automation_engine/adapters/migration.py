"""Trigger migration — upgrade legacy tag-trigger fields to structured rules.

Migration rules (``direct_tag`` triggers only):
  - ``tagName``          -> ``tag`` with a ``#`` prefix
  - ``tag`` without ``#``  -> ``#`` added
  - ``expectedContext``  -> ``body_keywords`` condition (comma separated,
                            case-insensitive), unless one already exists
  - ``websiteFilter``    -> ``website_filter`` condition (comma separated),
                            unless one already exists
  - missing ``channel``  -> ``chat``

Deprecated fields are kept on the migrated trigger and reported as warnings.
Every function here is pure: the input dict is deep-copied before anything
is changed.

Usage::

    result = migrate_trigger({"tagName": "invoice", "expectedContext": "due, overdue"})
    result.trigger.tag                   # "#invoice"
    result.trigger.event_tag_conditions  # [BodyKeywordsCondition(["due", "overdue"])]
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any

from automation_engine.conditions.models import (
    BodyKeywordsCondition,
    EventTagCondition,
    UnifiedTriggerConfig,
    UnifiedTriggerType,
    WebsiteFilterCondition,
)
from automation_engine.events.models import EventChannel
from automation_engine.naming import snake_keys
from automation_engine.triggers.base import new_trigger_id


@dataclass
class MigrationResult:
    trigger: UnifiedTriggerConfig
    migrated: bool
    changes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass
class ListeningMigrationResult:
    triggers: list[UnifiedTriggerConfig]
    migrated: bool
    changes: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def _split(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def _has_condition(conditions: list[Any], condition_type: str) -> bool:
    for condition in conditions:
        kind = condition.get("type") if isinstance(condition, dict) else condition.type
        if kind == condition_type:
            return True
    return False


def _prefixed(tag: str) -> str:
    return tag if tag.startswith("#") else f"#{tag}"


# ---------------------------------------------------------------------------
# Single trigger
# ---------------------------------------------------------------------------


def migrate_trigger(trigger: dict[str, Any] | UnifiedTriggerConfig) -> MigrationResult:
    """Upgrade one (possibly partial) trigger dict to a ``UnifiedTriggerConfig``."""
    raw = snake_keys(
        trigger.to_dict() if isinstance(trigger, UnifiedTriggerConfig) else copy.deepcopy(trigger)
    )
    raw["id"] = raw.get("id") or new_trigger_id()
    raw.setdefault("type", UnifiedTriggerType.DIRECT_TAG.value)
    if raw.get("enabled") is None:
        raw["enabled"] = True

    if raw["type"] != UnifiedTriggerType.DIRECT_TAG.value:
        return MigrationResult(trigger=UnifiedTriggerConfig.from_dict(raw), migrated=False)

    changes: list[str] = []
    warnings: list[str] = []
    tag_name = raw.get("tag_name")
    expected_context = raw.get("expected_context")
    website_filter = raw.get("website_filter")

    if tag_name and not raw.get("tag"):
        raw["tag"] = _prefixed(tag_name.strip())
        changes.append(f'Migrated tagName "{tag_name}" to tag "{raw["tag"]}"')
    if raw.get("tag") and not raw["tag"].startswith("#"):
        raw["tag"] = _prefixed(raw["tag"])
        changes.append("Added # prefix to tag")

    if not raw.get("channel"):
        raw["channel"] = EventChannel.CHAT.value

    existing = list(raw.get("event_tag_conditions") or [])
    conditions = list(existing)

    if expected_context and not _has_condition(existing, "body_keywords"):
        keywords = _split(expected_context)
        if keywords:
            conditions.append({"type": "body_keywords", "keywords": keywords, "case_insensitive": True})
            changes.append(f"Migrated expectedContext to body_keywords: {', '.join(keywords)}")

    if website_filter and not _has_condition(existing, "website_filter"):
        patterns = _split(website_filter)
        if patterns:
            conditions.append({"type": "website_filter", "patterns": patterns})
            changes.append(
                f"Migrated websiteFilter to website_filter condition: {', '.join(patterns)}"
            )

    raw["event_tag_conditions"] = conditions

    if tag_name:
        warnings.append("tagName is deprecated, use tag instead")
    if expected_context:
        warnings.append("expectedContext is deprecated, use eventTagConditions with body_keywords")
    if website_filter:
        warnings.append("websiteFilter is deprecated, use eventTagConditions with website_filter")

    return MigrationResult(
        trigger=UnifiedTriggerConfig.from_dict(raw),
        migrated=bool(changes),
        changes=changes,
        warnings=warnings,
    )


def needs_migration(trigger: dict[str, Any]) -> bool:
    """True when a ``direct_tag`` trigger still carries un-migrated legacy fields."""
    raw = snake_keys(trigger)
    if raw.get("type") != UnifiedTriggerType.DIRECT_TAG.value:
        return False
    conditions = raw.get("event_tag_conditions") or []
    if raw.get("tag_name") and not raw.get("tag"):
        return True
    if raw.get("tag") and not raw["tag"].startswith("#"):
        return True
    if raw.get("expected_context") and not _has_condition(conditions, "body_keywords"):
        return True
    if raw.get("website_filter") and not _has_condition(conditions, "website_filter"):
        return True
    return False


# ---------------------------------------------------------------------------
# Listening blocks
# ---------------------------------------------------------------------------


def infer_channel(source: str | None) -> EventChannel:
    """Map a legacy ``listening.source`` to an ``EventChannel`` (default chat)."""
    if not source:
        return EventChannel.CHAT
    source = source.lower()
    if source == "email":
        return EventChannel.EMAIL
    if source in ("web", "dom", "overlay"):
        return EventChannel.WEB
    if source in ("api", "webhook"):
        return EventChannel.API
    if source == "workflow":
        return EventChannel.WORKFLOW
    return EventChannel.CHAT


def _migrate_legacy_trigger(
    legacy_trigger: dict[str, Any], mode: str, listening: dict[str, Any]
) -> MigrationResult:
    tag_name = ((legacy_trigger or {}).get("tag") or {}).get("name") or ""
    conditions: list[EventTagCondition] = []
    changes = [f'Migrated {mode} trigger "{tag_name}" to unified format']

    expected_context = listening.get("expected_context")
    if expected_context:
        keywords = _split(expected_context)
        if keywords:
            conditions.append(BodyKeywordsCondition(keywords=keywords, case_insensitive=True))
            changes.append(f"Inherited expectedContext as keywords: {', '.join(keywords)}")

    website = listening.get("website")
    if website:
        conditions.append(WebsiteFilterCondition(patterns=[website]))
        changes.append(f"Inherited website filter: {website}")

    trigger = UnifiedTriggerConfig(
        id=new_trigger_id(),
        type=UnifiedTriggerType.DIRECT_TAG,
        name=tag_name,
        enabled=True,
        tag=_prefixed(tag_name),
        channel=infer_channel(listening.get("source")),
        tag_name=tag_name,
        event_tag_conditions=conditions,
    )
    return MigrationResult(
        trigger=trigger,
        migrated=True,
        changes=changes,
        warnings=[f"Migrated from deprecated {mode} trigger format"],
    )


def migrate_listening_config(config: dict[str, Any]) -> ListeningMigrationResult:
    """Collect unified triggers from a legacy ``listening`` block.

    Existing ``unifiedTriggers`` win.  Only when there are none are the
    passive triggers converted, and only when those yield nothing are the
    active triggers converted.
    """
    listening = snake_keys(copy.deepcopy(config))
    results: list[MigrationResult] = [
        migrate_trigger(t) for t in listening.get("unified_triggers") or []
    ]

    for mode in ("passive", "active"):
        if results:
            break
        block = listening.get(mode) or {}
        results = [
            _migrate_legacy_trigger(t, mode, listening) for t in block.get("triggers") or []
        ]

    return ListeningMigrationResult(
        triggers=[r.trigger for r in results],
        migrated=any(r.migrated for r in results),
        changes=[c for r in results for c in r.changes],
        warnings=[w for r in results for w in r.warnings],
    )
