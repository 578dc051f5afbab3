"""Unit tests — NormalizedEvent construction, coercion and serialisation."""

from __future__ import annotations

import dataclasses
import re

import pytest

from automation_engine.events.models import (
    EventChannel,
    Modality,
    NormalizedEvent,
    TriggerScope,
    TriggerSource,
    new_event_id,
)


@pytest.mark.unit
class TestNewEventId:
    def test_format(self) -> None:
        assert re.fullmatch(r"evt_\d+_[0-9a-f]{9}", new_event_id())

    def test_unique(self) -> None:
        assert len({new_event_id() for _ in range(200)}) == 200


@pytest.mark.unit
class TestNormalizedEvent:
    def test_defaults(self) -> None:
        event = NormalizedEvent(source=TriggerSource.CHAT)
        assert event.input == ""
        assert event.scope is TriggerScope.GLOBAL
        assert event.modalities == (Modality.TEXT,)
        assert event.metadata == {}
        assert event.id.startswith("evt_")
        assert event.timestamp > 0

    def test_coerces_string_enums(self) -> None:
        event = NormalizedEvent(
            source="cron", scope="agent", modalities=["text", "image"], channel="email"
        )
        assert event.source is TriggerSource.CRON
        assert event.scope is TriggerScope.AGENT
        assert event.modalities == (Modality.TEXT, Modality.IMAGE)
        assert event.channel is EventChannel.EMAIL

    def test_invalid_source_rejected(self) -> None:
        with pytest.raises(ValueError):
            NormalizedEvent(source="telepathy")

    def test_is_frozen(self) -> None:
        event = NormalizedEvent(source="chat")
        with pytest.raises(dataclasses.FrozenInstanceError):
            event.input = "changed"  # type: ignore[misc]

    def test_metadata_is_read_only_copy(self) -> None:
        source_metadata = {"priority": "high"}
        event = NormalizedEvent(source="chat", metadata=source_metadata)
        source_metadata["priority"] = "low"

        assert event.metadata["priority"] == "high"
        with pytest.raises(TypeError):
            event.metadata["priority"] = "low"  # type: ignore[index]
        assert event.to_dict()["metadata"] == {"priority": "high"}

    def test_replace_returns_copy(self) -> None:
        event = NormalizedEvent(source="chat", input="a")
        changed = event.replace(input="b")
        assert event.input == "a"
        assert changed.input == "b"
        assert changed.id == event.id

    def test_text_content_joins_subject_body_input(self) -> None:
        event = NormalizedEvent(source="chat", input="c", subject="a", body="b")
        assert event.text_content() == "a b c"

    def test_text_content_with_missing_parts(self) -> None:
        event = NormalizedEvent(source="chat", input="hi")
        assert event.text_content() == "  hi"


@pytest.mark.unit
class TestSerialisation:
    def test_to_dict_omits_none(self) -> None:
        d = NormalizedEvent(source="chat", input="x").to_dict()
        assert d["source"] == "chat"
        assert d["modalities"] == ["text"]
        assert "url" not in d
        assert "channel" not in d

    def test_to_dict_includes_optionals(self) -> None:
        d = NormalizedEvent(
            source="chat", channel="web", url="https://a.example", extracted_tags=["#x"]
        ).to_dict()
        assert d["channel"] == "web"
        assert d["url"] == "https://a.example"
        assert d["extracted_tags"] == ["#x"]

    def test_from_dict_accepts_camel_case(self) -> None:
        event = NormalizedEvent.from_dict(
            {
                "source": "chat",
                "input": "hi",
                "imageUrl": "https://img",
                "sessionKey": "s1",
                "agentId": "a1",
                "unknownKey": 1,
            }
        )
        assert event.image_url == "https://img"
        assert event.session_key == "s1"
        assert event.agent_id == "a1"

    def test_dict_round_trip_preserves_fields(self) -> None:
        original = NormalizedEvent(
            source="dom", input="x", url="https://b", metadata={"k": 1}, tab_id=3
        )
        assert NormalizedEvent.from_dict(original.to_dict()) == original
