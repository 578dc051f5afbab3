"""Tag-rule data models used by the EventTagMatcher.

A *tag rule* (``UnifiedTriggerConfig`` with ``type=direct_tag``) fires when an
event carries a given ``#tag`` and every structured condition passes.

Structured condition quick-reference
------------------------------------
stamp_valid         required: bool           — event.stamp_valid must be True
sender_whitelist    allowed_senders: list    — event sender, case-folded, in list
body_keywords       keywords: list           — any keyword in subject+body+input
                    case_insensitive: bool   — default True
website_filter      patterns: list           — wildcard URL / domain patterns

Legacy fields (still honoured, reported as warnings by ``validate_trigger``):
    tag_name          — tag without the leading ``#``
    expected_context  — comma-separated keywords (implicit body_keywords)
    website_filter    — single wildcard pattern (implicit website_filter)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal, Union

from automation_engine.events.models import EventChannel, Modality
from automation_engine.naming import snake_keys


class UnifiedTriggerType(str, Enum):
    DIRECT_TAG = "direct_tag"
    WORKFLOW_CONDITION = "workflow_condition"
    TAG_AND_CONDITION = "tag_and_condition"
    UI_EVENT = "ui_event"
    MANUAL = "manual"


# ---------------------------------------------------------------------------
# Structured tag conditions
# ---------------------------------------------------------------------------


@dataclass
class StampValidCondition:
    required: bool = True
    type: Literal["stamp_valid"] = field(default="stamp_valid", init=False)


@dataclass
class SenderWhitelistCondition:
    allowed_senders: list[str] = field(default_factory=list)
    type: Literal["sender_whitelist"] = field(default="sender_whitelist", init=False)


@dataclass
class BodyKeywordsCondition:
    keywords: list[str] = field(default_factory=list)
    case_insensitive: bool = True
    type: Literal["body_keywords"] = field(default="body_keywords", init=False)


@dataclass
class WebsiteFilterCondition:
    patterns: list[str] = field(default_factory=list)
    type: Literal["website_filter"] = field(default="website_filter", init=False)


@dataclass
class UnknownTagCondition:
    """Placeholder for a condition type this engine does not know."""

    type: str
    params: dict[str, Any] = field(default_factory=dict)


EventTagCondition = Union[
    StampValidCondition,
    SenderWhitelistCondition,
    BodyKeywordsCondition,
    WebsiteFilterCondition,
    UnknownTagCondition,
]

# ``wrcode_valid`` is the historical name of ``stamp_valid``.
_CONDITION_ALIASES = {"wrcode_valid": "stamp_valid"}


def event_tag_condition_from_dict(data: dict[str, Any]) -> EventTagCondition:
    """Parse one structured condition from a (camelCase or snake_case) dict."""
    raw = snake_keys(data)
    kind = _CONDITION_ALIASES.get(raw.get("type", ""), raw.get("type", ""))
    if kind == "stamp_valid":
        return StampValidCondition(required=bool(raw.get("required", True)))
    if kind == "sender_whitelist":
        return SenderWhitelistCondition(allowed_senders=list(raw.get("allowed_senders") or []))
    if kind == "body_keywords":
        return BodyKeywordsCondition(
            keywords=list(raw.get("keywords") or []),
            case_insensitive=raw.get("case_insensitive") is not False,
        )
    if kind == "website_filter":
        return WebsiteFilterCondition(patterns=list(raw.get("patterns") or []))
    params = {k: v for k, v in raw.items() if k != "type"}
    return UnknownTagCondition(type=str(kind), params=params)


def event_tag_condition_to_dict(condition: EventTagCondition) -> dict[str, Any]:
    if isinstance(condition, UnknownTagCondition):
        return {"type": condition.type, **condition.params}
    if isinstance(condition, StampValidCondition):
        return {"type": condition.type, "required": condition.required}
    if isinstance(condition, SenderWhitelistCondition):
        return {"type": condition.type, "allowed_senders": list(condition.allowed_senders)}
    if isinstance(condition, BodyKeywordsCondition):
        return {
            "type": condition.type,
            "keywords": list(condition.keywords),
            "case_insensitive": condition.case_insensitive,
        }
    return {"type": condition.type, "patterns": list(condition.patterns)}


# ---------------------------------------------------------------------------
# UnifiedTriggerConfig
# ---------------------------------------------------------------------------


@dataclass
class UnifiedTriggerConfig:
    """A trigger rule.  Only ``direct_tag`` rules are evaluated by the matcher.

    Fields not listed here (UI selectors, mini-app layouts) are kept verbatim
    in ``extra`` so a round-trip through ``from_dict``/``to_dict`` is lossless.
    """

    id: str
    type: UnifiedTriggerType = UnifiedTriggerType.DIRECT_TAG
    enabled: bool = True
    name: str | None = None
    description: str | None = None

    # direct_tag
    channel: EventChannel | None = None
    tag: str | None = None
    event_tag_conditions: list[EventTagCondition] = field(default_factory=list)

    # workflow_condition / tag_and_condition
    workflow_id: str | None = None
    conditions: list[dict[str, Any]] = field(default_factory=list)

    modalities: list[Modality] = field(default_factory=list)

    # Deprecated
    tag_name: str | None = None
    expected_context: str | None = None
    website_filter: str | None = None

    extra: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.type = UnifiedTriggerType(self.type)
        if self.channel is not None:
            self.channel = EventChannel(self.channel)
        self.modalities = [Modality(m) for m in self.modalities]

    @property
    def effective_tag(self) -> str | None:
        """``tag``, or ``#tag_name`` for legacy rules."""
        if self.tag:
            return self.tag
        if self.tag_name:
            return f"#{self.tag_name}"
        return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "UnifiedTriggerConfig":
        raw = snake_keys(data)
        known = {
            "id", "type", "enabled", "name", "description", "channel", "tag",
            "workflow_id", "conditions", "modalities", "tag_name",
            "expected_context", "website_filter",
        }
        kwargs = {k: v for k, v in raw.items() if k in known and v is not None}
        kwargs.setdefault("id", "")
        kwargs["event_tag_conditions"] = [
            event_tag_condition_from_dict(c) for c in raw.get("event_tag_conditions") or []
        ]
        extra = {
            k: v for k, v in raw.items() if k not in known and k != "event_tag_conditions"
        }
        return cls(extra=extra, **kwargs)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "type": self.type.value,
            "enabled": self.enabled,
        }
        optional = {
            "name": self.name,
            "description": self.description,
            "channel": self.channel.value if self.channel else None,
            "tag": self.tag,
            "workflow_id": self.workflow_id,
            "tag_name": self.tag_name,
            "expected_context": self.expected_context,
            "website_filter": self.website_filter,
        }
        d.update({k: v for k, v in optional.items() if v is not None})
        if self.event_tag_conditions:
            d["event_tag_conditions"] = [
                event_tag_condition_to_dict(c) for c in self.event_tag_conditions
            ]
        if self.conditions:
            d["conditions"] = list(self.conditions)
        if self.modalities:
            d["modalities"] = [m.value for m in self.modalities]
        d.update(self.extra)
        return d


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


@dataclass
class ConditionResult:
    type: str
    passed: bool
    details: str = ""


@dataclass
class EventTagMatchResult:
    matched: bool
    trigger_id: str
    reason: str
    condition_results: list[ConditionResult] = field(default_factory=list)
    matched_tag: str | None = None


@dataclass
class TriggerValidation:
    valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
