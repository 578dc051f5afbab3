"""Unit tests — TriggerRegistry multiplexing and lifecycle."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from automation_engine.events.models import Modality, TriggerSource
from automation_engine.triggers.chat import ChatTrigger
from automation_engine.triggers.cron import CronTrigger
from automation_engine.triggers.registry import TriggerRegistry, get_trigger_registry


@pytest.mark.unit
class TestRegistration:
    def test_register_groups_by_source(self, trigger_registry: TriggerRegistry) -> None:
        chat = ChatTrigger()
        cron = CronTrigger()
        trigger_registry.register_trigger(chat)
        trigger_registry.register_trigger(cron)

        assert trigger_registry.get_triggers(TriggerSource.CHAT) == [chat]
        assert trigger_registry.get_triggers("cron") == [cron]
        assert trigger_registry.get_triggers("api") == []
        assert trigger_registry.get_all_triggers() == [chat, cron]
        assert trigger_registry.get_trigger("chat_trigger") is chat

    async def test_unregister_stops_and_detaches(self, trigger_registry: TriggerRegistry) -> None:
        chat = ChatTrigger()
        trigger_registry.register_trigger(chat)
        callback = MagicMock()
        trigger_registry.subscribe(callback)
        await chat.start()

        assert await trigger_registry.unregister_trigger("chat_trigger")
        assert not chat.is_active
        assert chat.subscriber_count == 0
        assert trigger_registry.get_all_triggers() == []
        assert not await trigger_registry.unregister_trigger("chat_trigger")

    async def test_duplicate_registration_subscribes_once(self, trigger_registry: TriggerRegistry) -> None:
        chat = ChatTrigger()
        trigger_registry.register_trigger(chat)
        trigger_registry.register_trigger(chat)
        received = []
        trigger_registry.subscribe(received.append)

        assert trigger_registry.get_all_triggers() == [chat]
        assert chat.subscriber_count == 1

        await trigger_registry.unregister_trigger(chat.id)
        assert chat.subscriber_count == 0
        await chat.start()
        await chat.handle_message("hi")
        assert received == []

    def test_default_registry_is_shared(self) -> None:
        assert get_trigger_registry() is get_trigger_registry()


@pytest.mark.unit
class TestEventStream:
    async def test_trigger_events_republished(self, trigger_registry: TriggerRegistry) -> None:
        chat = ChatTrigger()
        trigger_registry.register_trigger(chat)
        received = []
        trigger_registry.subscribe(received.append)

        await trigger_registry.start_all()
        event = await chat.handle_message("hello")
        assert received == [event]

    async def test_create_and_emit(self, trigger_registry: TriggerRegistry) -> None:
        received = []
        trigger_registry.subscribe(received.append)
        event = await trigger_registry.create_and_emit(
            "api", "payload", modalities=[Modality.TEXT, Modality.CODE], metadata={"k": 1}, url="https://x"
        )
        assert received == [event]
        assert event.source is TriggerSource.API
        assert event.modalities == (Modality.TEXT, Modality.CODE)
        assert event.url == "https://x"

    async def test_unsubscribe(self, trigger_registry: TriggerRegistry) -> None:
        callback = MagicMock()
        unsubscribe = trigger_registry.subscribe(callback)
        unsubscribe()
        await trigger_registry.create_and_emit("chat", "x")
        callback.assert_not_called()


@pytest.mark.unit
class TestLifecycle:
    async def test_start_and_stop_all(self, trigger_registry: TriggerRegistry) -> None:
        chat = ChatTrigger()
        cron = CronTrigger()
        trigger_registry.register_trigger(chat)
        trigger_registry.register_trigger(cron)

        await trigger_registry.start_all()
        assert chat.is_active and cron.is_active
        await trigger_registry.stop_all()
        assert not chat.is_active and not cron.is_active

    async def test_start_source(self, trigger_registry: TriggerRegistry) -> None:
        chat = ChatTrigger()
        cron = CronTrigger()
        trigger_registry.register_trigger(chat)
        trigger_registry.register_trigger(cron)

        await trigger_registry.start_source("chat")
        assert chat.is_active and not cron.is_active
        await trigger_registry.stop_source(TriggerSource.CHAT)
        assert not chat.is_active

    async def test_clear(self, trigger_registry: TriggerRegistry) -> None:
        chat = ChatTrigger()
        trigger_registry.register_trigger(chat)
        callback = MagicMock()
        trigger_registry.subscribe(callback)
        await trigger_registry.start_all()

        await trigger_registry.clear()
        assert trigger_registry.get_all_triggers() == []
        assert not chat.is_active
        assert chat.subscriber_count == 0
        await trigger_registry.create_and_emit("chat", "x")
        callback.assert_not_called()
