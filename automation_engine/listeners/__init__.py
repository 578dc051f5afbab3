"""Listener layer — automation rules and the event pipeline."""

from automation_engine.listeners.manager import ListenerManager, ReasoningCallback
from automation_engine.listeners.models import (
    ActionResult,
    AutomationConfig,
    AutomationTrigger,
    ListenerMode,
    MatchResult,
    ProcessingResult,
)

__all__ = [
    "ActionResult",
    "AutomationConfig",
    "AutomationTrigger",
    "ListenerManager",
    "ListenerMode",
    "MatchResult",
    "ProcessingResult",
    "ReasoningCallback",
]
