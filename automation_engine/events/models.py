"""NormalizedEvent — the canonical event record consumed by the engine.

Every trigger (chat input, cron schedule, programmatic injection, email
ingestion) converts its source-specific payload into a ``NormalizedEvent``
before handing it to subscribers.  Nothing downstream ever looks at the raw
source payload.

Key classes
-----------
TriggerSource     — which kind of producer emitted the event
TriggerScope      — global / agent / workflow visibility
Modality          — content kinds carried by the event
EventChannel      — finer-grained origin used by tag rules
NormalizedEvent   — the immutable event record

Field quick-reference
---------------------
Required:
    id                str    — unique for the process lifetime (``evt_<ms>_<rand>``)
    timestamp         float  — Unix timestamp (seconds)
    source            TriggerSource
    scope             TriggerScope
    modalities        tuple[Modality, ...]
    input             str    — primary text content

Optional (tag rules / email / web):
    channel, subject, body, sender_address, stamp_valid, stamp_data,
    extracted_tags, url, domain, tab_id

Optional (routing):
    image_url, video_url, session_key, agent_id, source_workflow_id
"""

from __future__ import annotations

import dataclasses
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class TriggerSource(str, Enum):
    CHAT = "chat"
    DOM = "dom"
    API = "api"
    BACKEND = "backend"
    WORKFLOW = "workflow"
    CRON = "cron"


class TriggerScope(str, Enum):
    GLOBAL = "global"
    AGENT = "agent"
    WORKFLOW = "workflow"


class Modality(str, Enum):
    TEXT = "text"
    TABLE = "table"
    DIAGRAM = "diagram"
    IMAGE = "image"
    VIDEO = "video"
    CODE = "code"
    MATH = "math"
    ERROR = "error"
    OTHER = "other"


class EventChannel(str, Enum):
    CHAT = "chat"
    EMAIL = "email"
    WEB = "web"
    OVERLAY = "overlay"
    AGENT = "agent"
    MINIAPP = "miniapp"
    SCREENSHOT = "screenshot"
    STREAM = "stream"
    PDF = "pdf"
    DOCS = "docs"
    VOICEMEMO = "voicememo"
    VIDEO = "video"
    VOICE_COMMAND = "voice_command"
    PICTURE = "picture"
    API = "api"
    WORKFLOW = "workflow"


def new_event_id() -> str:
    """Return a fresh event id: millisecond timestamp plus a random suffix."""
    return f"evt_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


# camelCase keys accepted by ``NormalizedEvent.from_dict``.
_CAMEL_ALIASES: dict[str, str] = {
    "imageUrl": "image_url",
    "videoUrl": "video_url",
    "senderAddress": "sender_address",
    "stampValid": "stamp_valid",
    "stampData": "stamp_data",
    "extractedTags": "extracted_tags",
    "tabId": "tab_id",
    "sessionKey": "session_key",
    "agentId": "agent_id",
    "sourceWorkflowId": "source_workflow_id",
}


# ---------------------------------------------------------------------------
# NormalizedEvent
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NormalizedEvent:
    """Immutable, source-independent event record.

    ``metadata`` is copied into a read-only mapping on construction; values
    nested inside it are not frozen.

    String values are accepted for the enum fields and coerced on
    construction, so events can be built straight from JSON payloads::

        event = NormalizedEvent(source="chat", input="@Invoice please review")
        assert event.source is TriggerSource.CHAT
    """

    source: TriggerSource
    input: str = ""
    id: str = field(default_factory=new_event_id)
    timestamp: float = field(default_factory=time.time)
    scope: TriggerScope = TriggerScope.GLOBAL
    modalities: tuple[Modality, ...] = (Modality.TEXT,)
    metadata: Mapping[str, Any] = field(default_factory=dict)

    channel: EventChannel | None = None
    subject: str | None = None
    body: str | None = None
    image_url: str | None = None
    video_url: str | None = None
    sender_address: str | None = None
    stamp_valid: bool | None = None
    stamp_data: dict[str, Any] | None = None
    extracted_tags: tuple[str, ...] | None = None
    url: str | None = None
    domain: str | None = None
    tab_id: int | None = None
    session_key: str | None = None
    agent_id: str | None = None
    source_workflow_id: str | None = None

    def __post_init__(self) -> None:
        set_ = object.__setattr__
        set_(self, "source", TriggerSource(self.source))
        set_(self, "scope", TriggerScope(self.scope))
        set_(self, "modalities", tuple(Modality(m) for m in self.modalities))
        set_(self, "metadata", MappingProxyType(dict(self.metadata)))
        if self.channel is not None:
            set_(self, "channel", EventChannel(self.channel))
        if self.extracted_tags is not None:
            set_(self, "extracted_tags", tuple(self.extracted_tags))

    # ---------------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------------

    def replace(self, **changes: Any) -> "NormalizedEvent":
        """Return a copy with *changes* applied (the original is untouched)."""
        return dataclasses.replace(self, **changes)

    def text_content(self) -> str:
        """Concatenate subject, body and input, separated by spaces."""
        return " ".join([self.subject or "", self.body or "", self.input or ""])

    # ---------------------------------------------------------------------------
    # Serialisation
    # ---------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-friendly dict.  ``None`` optionals are omitted."""
        d: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "source": self.source.value,
            "scope": self.scope.value,
            "modalities": [m.value for m in self.modalities],
            "input": self.input,
            "metadata": dict(self.metadata),
        }
        for f in dataclasses.fields(self):
            if f.name in d:
                continue
            value = getattr(self, f.name)
            if value is None:
                continue
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, tuple):
                value = list(value)
            d[f.name] = value
        return d

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "NormalizedEvent":
        """Build an event from a dict using snake_case or camelCase keys.

        Unknown keys are ignored.
        """
        known = {f.name for f in dataclasses.fields(cls)}
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = _CAMEL_ALIASES.get(key, key)
            if name in known:
                kwargs[name] = value
        if "modalities" in kwargs:
            kwargs["modalities"] = tuple(kwargs["modalities"])
        if kwargs.get("metadata") is None:
            kwargs.pop("metadata", None)
        return cls(**kwargs)
