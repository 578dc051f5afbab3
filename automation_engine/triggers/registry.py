"""TriggerRegistry — aggregates triggers into one event stream.

Triggers are grouped by source.  Registering a trigger subscribes the
registry to it; every event the trigger emits is republished to the
registry's own subscribers in subscription order.

Usage::

    registry = TriggerRegistry()
    registry.register_trigger(ChatTrigger())
    unsubscribe = registry.subscribe(on_event)
    await registry.start_all()
"""

from __future__ import annotations

from typing import Any

from automation_engine.events.models import Modality, NormalizedEvent, TriggerScope, TriggerSource
from automation_engine.logging import get_logger
from automation_engine.triggers.base import BaseTrigger, EventCallback, SubscriberList, Unsubscribe

log = get_logger(__name__)


class TriggerRegistry:
    def __init__(self) -> None:
        self._triggers: dict[TriggerSource, list[BaseTrigger]] = {}
        self._subscribers = SubscriberList()
        self._trigger_unsubscribers: dict[str, Unsubscribe] = {}

    # ---------------------------------------------------------------------------
    # Registration
    # ---------------------------------------------------------------------------

    def register_trigger(self, trigger: BaseTrigger) -> None:
        """Subscribe to *trigger*.  A trigger id that is already registered is ignored."""
        if trigger.id in self._trigger_unsubscribers:
            log.warning("trigger_already_registered", trigger_id=trigger.id)
            return
        self._triggers.setdefault(trigger.source, []).append(trigger)
        self._trigger_unsubscribers[trigger.id] = trigger.subscribe(self.emit)
        log.info("trigger_registered", trigger_id=trigger.id, source=trigger.source.value)

    async def unregister_trigger(self, trigger_id: str) -> bool:
        """Stop and detach *trigger_id*.  Returns False when it is unknown."""
        for source, triggers in self._triggers.items():
            for index, trigger in enumerate(triggers):
                if trigger.id != trigger_id:
                    continue
                await trigger.stop()
                del triggers[index]
                unsubscribe = self._trigger_unsubscribers.pop(trigger_id, None)
                if unsubscribe is not None:
                    unsubscribe()
                log.info("trigger_unregistered", trigger_id=trigger_id, source=source.value)
                return True
        return False

    def get_trigger(self, trigger_id: str) -> BaseTrigger | None:
        for trigger in self.get_all_triggers():
            if trigger.id == trigger_id:
                return trigger
        return None

    def get_triggers(self, source: TriggerSource | str) -> list[BaseTrigger]:
        return list(self._triggers.get(TriggerSource(source), []))

    def get_all_triggers(self) -> list[BaseTrigger]:
        return [t for triggers in self._triggers.values() for t in triggers]

    # ---------------------------------------------------------------------------
    # Event stream
    # ---------------------------------------------------------------------------

    def subscribe(self, callback: EventCallback) -> Unsubscribe:
        return self._subscribers.add(callback)

    async def emit(self, event: NormalizedEvent) -> None:
        """Publish *event* to every registry subscriber."""
        await self._subscribers.deliver(event, owner="trigger_registry")

    async def create_and_emit(
        self,
        source: TriggerSource | str,
        input: str,
        modalities: list[Modality] | tuple[Modality, ...] | None = None,
        scope: TriggerScope | str = TriggerScope.GLOBAL,
        metadata: dict[str, Any] | None = None,
        **fields: Any,
    ) -> NormalizedEvent:
        """Synthesize an event without a backing trigger and publish it."""
        event = NormalizedEvent(
            source=source,
            input=input,
            scope=scope,
            modalities=tuple(modalities or (Modality.TEXT,)),
            metadata=dict(metadata or {}),
            **fields,
        )
        await self.emit(event)
        return event

    # ---------------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------------

    async def start_all(self) -> None:
        for trigger in self.get_all_triggers():
            if not trigger.is_active:
                await trigger.start()
        log.info("triggers_started", count=len(self.get_all_triggers()))

    async def stop_all(self) -> None:
        for trigger in self.get_all_triggers():
            if trigger.is_active:
                await trigger.stop()
        log.info("triggers_stopped", count=len(self.get_all_triggers()))

    async def start_source(self, source: TriggerSource | str) -> None:
        for trigger in self.get_triggers(source):
            if not trigger.is_active:
                await trigger.start()

    async def stop_source(self, source: TriggerSource | str) -> None:
        for trigger in self.get_triggers(source):
            if trigger.is_active:
                await trigger.stop()

    async def clear(self) -> None:
        """Stop and detach every trigger and drop all subscribers."""
        await self.stop_all()
        for unsubscribe in self._trigger_unsubscribers.values():
            unsubscribe()
        self._trigger_unsubscribers.clear()
        self._triggers.clear()
        self._subscribers.clear()


# Process-wide default registry.
_default_registry: TriggerRegistry | None = None


def get_trigger_registry() -> TriggerRegistry:
    global _default_registry
    if _default_registry is None:
        _default_registry = TriggerRegistry()
    return _default_registry
