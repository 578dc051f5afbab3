"""BaseTrigger — abstract base class for all event producers.

A trigger converts source-specific input into ``NormalizedEvent`` objects and
delivers them to its subscribers.

Contract
--------
- ``start()``      — Stopped -> Started; calling it twice is a no-op
- ``stop()``       — Started -> Stopped; calling it twice is a no-op
- ``is_active``    — True between start() and stop()
- ``subscribe()``  — returns an unsubscribe callable
- ``emit()``       — delivers to subscribers in subscription order

Subscriber signature (sync or async)::

    async def on_event(event: NormalizedEvent) -> None:
        ...

A subscriber that raises is logged and skipped; delivery to the remaining
subscribers continues.

Implementations must:
1. Define the ``source`` property
2. Override ``_on_start()`` / ``_on_stop()`` when they own background work
"""

from __future__ import annotations

import inspect
import itertools
import time
import uuid
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Union

from automation_engine.events.models import (
    Modality,
    NormalizedEvent,
    TriggerScope,
    TriggerSource,
    new_event_id,
)
from automation_engine.logging import get_logger

log = get_logger(__name__)

EventCallback = Callable[[NormalizedEvent], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


def new_trigger_id() -> str:
    return f"trigger_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class SubscriberList:
    """Insertion-ordered callbacks with O(1) removal by handle."""

    def __init__(self) -> None:
        self._callbacks: dict[int, EventCallback] = {}
        self._handles = itertools.count()

    def add(self, callback: EventCallback) -> Unsubscribe:
        handle = next(self._handles)
        self._callbacks[handle] = callback

        def unsubscribe() -> None:
            self._callbacks.pop(handle, None)

        return unsubscribe

    def clear(self) -> None:
        self._callbacks.clear()

    def __len__(self) -> int:
        return len(self._callbacks)

    async def deliver(self, event: NormalizedEvent, owner: str) -> None:
        """Call every callback in order.  Errors are caught and logged."""
        # Snapshot so a callback may unsubscribe itself during delivery.
        for callback in list(self._callbacks.values()):
            try:
                outcome = callback(event)
                if inspect.isawaitable(outcome):
                    await outcome
            except Exception as exc:
                log.error(
                    "subscriber_error",
                    owner=owner,
                    event_id=event.id,
                    error=str(exc),
                )


class BaseTrigger(ABC):
    """Abstract base for all triggers."""

    def __init__(self, trigger_id: str | None = None) -> None:
        self.id = trigger_id or new_trigger_id()
        self._active = False
        self._subscribers = SubscriberList()

    # ---------------------------------------------------------------------------
    # Identity
    # ---------------------------------------------------------------------------

    @property
    @abstractmethod
    def source(self) -> TriggerSource:
        """The source tag stamped on every event this trigger creates."""

    # ---------------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------------

    async def start(self) -> None:
        if self._active:
            return
        self._active = True
        await self._on_start()
        log.debug("trigger_started", trigger_id=self.id, source=self.source.value)

    async def stop(self) -> None:
        if not self._active:
            return
        self._active = False
        await self._on_stop()
        log.debug("trigger_stopped", trigger_id=self.id, source=self.source.value)

    @property
    def is_active(self) -> bool:
        return self._active

    async def _on_start(self) -> None:
        """Hook for subclasses that own background work."""

    async def _on_stop(self) -> None:
        """Hook for subclasses that own background work."""

    # ---------------------------------------------------------------------------
    # Subscription
    # ---------------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> Unsubscribe:
        return self._subscribers.add(callback)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    async def emit(self, event: NormalizedEvent) -> None:
        await self._subscribers.deliver(event, owner=self.id)

    # ---------------------------------------------------------------------------
    # Event construction
    # ---------------------------------------------------------------------------

    def create_event(self, **fields: Any) -> NormalizedEvent:
        """Build an event from *fields*, filling in trigger defaults.

        Defaults: fresh id, current time, this trigger's source, scope
        ``global``, modalities ``[text]``, empty metadata.
        """
        fields.setdefault("id", new_event_id())
        fields.setdefault("timestamp", time.time())
        fields.setdefault("source", self.source)
        fields.setdefault("scope", TriggerScope.GLOBAL)
        fields.setdefault("modalities", (Modality.TEXT,))
        fields.setdefault("input", "")
        if fields.get("metadata") is None:
            fields["metadata"] = {}
        return NormalizedEvent(**fields)
