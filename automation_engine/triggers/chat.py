"""ChatTrigger — turns user chat messages into events.

The host calls ``handle_message()`` directly whenever a message arrives.
Messages received while the trigger is stopped are dropped with a warning,
never queued.
"""

from __future__ import annotations

import re
from typing import Any

from automation_engine.events.models import Modality, NormalizedEvent, TriggerScope, TriggerSource
from automation_engine.logging import get_logger
from automation_engine.triggers.base import BaseTrigger

log = get_logger(__name__)

_MENTION = re.compile(r"@([\w-]+)")


class ChatTrigger(BaseTrigger):
    """Manually-invoked trigger for chat input.

    Usage::

        chat = ChatTrigger()
        await chat.start()
        await chat.handle_message("Hello @Invoice", agent_id="agent-7")
    """

    def __init__(self, trigger_id: str | None = None) -> None:
        super().__init__(trigger_id or "chat_trigger")

    @property
    def source(self) -> TriggerSource:
        return TriggerSource.CHAT

    async def handle_message(
        self,
        text: str,
        *,
        has_image: bool = False,
        image_url: str | None = None,
        video_url: str | None = None,
        url: str | None = None,
        tab_id: int | None = None,
        session_key: str | None = None,
        agent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> NormalizedEvent | None:
        """Emit an event for *text*.  Returns the event, or None when stopped."""
        if not self.is_active:
            log.warning("chat_message_ignored", trigger_id=self.id, reason="trigger not active")
            return None

        modalities = [Modality.TEXT]
        if has_image or image_url:
            modalities.append(Modality.IMAGE)
        if video_url:
            modalities.append(Modality.VIDEO)

        event = self.create_event(
            input=text,
            modalities=tuple(modalities),
            scope=TriggerScope.AGENT if agent_id else TriggerScope.GLOBAL,
            image_url=image_url,
            video_url=video_url,
            url=url,
            tab_id=tab_id,
            session_key=session_key,
            agent_id=agent_id,
            metadata={**(metadata or {}), "hasImage": has_image},
        )
        await self.emit(event)
        return event

    # ---------------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------------

    @staticmethod
    def extract_mentions(text: str) -> list[str]:
        """``"Hi @Invoice and @ops-bot"`` -> ``["Invoice", "ops-bot"]``."""
        return _MENTION.findall(text or "")

    @staticmethod
    def has_mention(text: str, name: str) -> bool:
        wanted = name.lower()
        return any(m.lower() == wanted for m in ChatTrigger.extract_mentions(text))
