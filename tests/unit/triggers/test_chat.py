"""Unit tests — ChatTrigger."""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from automation_engine.events.models import Modality, TriggerScope, TriggerSource
from automation_engine.triggers.chat import ChatTrigger


@pytest.fixture
async def chat() -> ChatTrigger:
    trigger = ChatTrigger()
    await trigger.start()
    return trigger


@pytest.mark.unit
class TestHandleMessage:
    def test_default_id(self) -> None:
        assert ChatTrigger().id == "chat_trigger"

    async def test_emits_text_event(self, chat: ChatTrigger) -> None:
        callback = MagicMock()
        chat.subscribe(callback)

        event = await chat.handle_message("hello @Invoice")
        assert event is not None
        callback.assert_called_once_with(event)
        assert event.source is TriggerSource.CHAT
        assert event.scope is TriggerScope.GLOBAL
        assert event.modalities == (Modality.TEXT,)
        assert event.metadata == {"hasImage": False}

    async def test_image_and_video_modalities(self, chat: ChatTrigger) -> None:
        event = await chat.handle_message(
            "look", image_url="https://img", video_url="https://vid"
        )
        assert event.modalities == (Modality.TEXT, Modality.IMAGE, Modality.VIDEO)

    async def test_has_image_flag(self, chat: ChatTrigger) -> None:
        event = await chat.handle_message("look", has_image=True, metadata={"k": 1})
        assert Modality.IMAGE in event.modalities
        assert event.metadata == {"k": 1, "hasImage": True}

    async def test_agent_scope(self, chat: ChatTrigger) -> None:
        event = await chat.handle_message("hi", agent_id="agent-7", session_key="s", tab_id=4)
        assert event.scope is TriggerScope.AGENT
        assert event.agent_id == "agent-7"
        assert event.session_key == "s"
        assert event.tab_id == 4

    async def test_inactive_trigger_drops_message(self) -> None:
        trigger = ChatTrigger()
        callback = MagicMock()
        trigger.subscribe(callback)
        assert await trigger.handle_message("hello") is None
        callback.assert_not_called()


@pytest.mark.unit
class TestMentions:
    def test_extract_mentions(self) -> None:
        assert ChatTrigger.extract_mentions("Hi @Invoice and @ops-bot!") == ["Invoice", "ops-bot"]
        assert ChatTrigger.extract_mentions("") == []

    def test_has_mention_case_insensitive(self) -> None:
        assert ChatTrigger.has_mention("ping @INVOICE", "invoice")
        assert not ChatTrigger.has_mention("ping @InvoiceBot", "invoice")
