"""Unit tests — BaseTrigger lifecycle, subscription and event defaults."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import pytest

from automation_engine.events.models import Modality, NormalizedEvent, TriggerScope, TriggerSource
from automation_engine.triggers.base import BaseTrigger, SubscriberList


class _StubTrigger(BaseTrigger):
    def __init__(self, trigger_id: str | None = None) -> None:
        super().__init__(trigger_id)
        self.starts = 0
        self.stops = 0

    @property
    def source(self) -> TriggerSource:
        return TriggerSource.BACKEND

    async def _on_start(self) -> None:
        self.starts += 1

    async def _on_stop(self) -> None:
        self.stops += 1


@pytest.mark.unit
class TestLifecycle:
    def test_generated_id(self) -> None:
        assert _StubTrigger().id.startswith("trigger_")

    def test_explicit_id(self) -> None:
        assert _StubTrigger("backend-1").id == "backend-1"

    async def test_start_stop_idempotent(self) -> None:
        trigger = _StubTrigger()
        await trigger.start()
        await trigger.start()
        assert trigger.is_active
        assert trigger.starts == 1

        await trigger.stop()
        await trigger.stop()
        assert not trigger.is_active
        assert trigger.stops == 1

    async def test_stop_when_never_started(self) -> None:
        trigger = _StubTrigger()
        await trigger.stop()
        assert trigger.stops == 0


@pytest.mark.unit
class TestSubscription:
    async def test_emit_reaches_subscribers_in_order(self) -> None:
        trigger = _StubTrigger()
        calls: list[str] = []
        trigger.subscribe(lambda e: calls.append("first"))
        trigger.subscribe(lambda e: calls.append("second"))

        await trigger.emit(trigger.create_event(input="x"))
        assert calls == ["first", "second"]

    async def test_async_subscriber_awaited(self) -> None:
        trigger = _StubTrigger()
        callback = AsyncMock()
        trigger.subscribe(callback)
        event = trigger.create_event(input="x")
        await trigger.emit(event)
        callback.assert_awaited_once_with(event)

    async def test_unsubscribe(self) -> None:
        trigger = _StubTrigger()
        callback = MagicMock()
        unsubscribe = trigger.subscribe(callback)
        assert trigger.subscriber_count == 1
        unsubscribe()
        unsubscribe()
        assert trigger.subscriber_count == 0
        await trigger.emit(trigger.create_event())
        callback.assert_not_called()

    async def test_failing_subscriber_does_not_block_others(self) -> None:
        trigger = _StubTrigger()
        after = MagicMock()
        trigger.subscribe(MagicMock(side_effect=RuntimeError("boom")))
        trigger.subscribe(after)
        await trigger.emit(trigger.create_event())
        after.assert_called_once()

    async def test_subscriber_may_unsubscribe_during_delivery(self) -> None:
        subscribers = SubscriberList()
        seen: list[str] = []
        unsubscribe = None

        def once(event: NormalizedEvent) -> None:
            seen.append("once")
            unsubscribe()

        unsubscribe = subscribers.add(once)
        subscribers.add(lambda e: seen.append("always"))

        event = NormalizedEvent(source="chat")
        await subscribers.deliver(event, owner="test")
        await subscribers.deliver(event, owner="test")
        assert seen == ["once", "always", "always"]


@pytest.mark.unit
class TestCreateEvent:
    def test_defaults(self) -> None:
        event = _StubTrigger().create_event()
        assert event.source is TriggerSource.BACKEND
        assert event.scope is TriggerScope.GLOBAL
        assert event.modalities == (Modality.TEXT,)
        assert event.metadata == {}
        assert event.input == ""

    def test_overrides(self) -> None:
        event = _StubTrigger().create_event(input="hi", scope="agent", metadata=None, agent_id="a")
        assert event.scope is TriggerScope.AGENT
        assert event.metadata == {}
        assert event.agent_id == "a"
