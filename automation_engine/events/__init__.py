"""Event schema layer — the canonical NormalizedEvent record.

Every producer (chat input, cron schedule, email ingestion, programmatic
injection) converts its payload into a ``NormalizedEvent`` before any
matching or workflow execution happens.

Quick start::

    from automation_engine.events import NormalizedEvent, TriggerSource

    event = NormalizedEvent(source=TriggerSource.CHAT, input="@Invoice please review")
"""

from automation_engine.events.models import (
    EventChannel,
    Modality,
    NormalizedEvent,
    TriggerScope,
    TriggerSource,
    new_event_id,
)

__all__ = [
    "EventChannel",
    "Modality",
    "NormalizedEvent",
    "TriggerScope",
    "TriggerSource",
    "new_event_id",
]
