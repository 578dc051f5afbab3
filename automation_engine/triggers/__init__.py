"""Trigger subsystem — producers of NormalizedEvents.

Package structure
-----------------
triggers/
  base.py      — BaseTrigger ABC (start / stop / subscribe / emit)
  chat.py      — ChatTrigger, invoked directly by the host
  cron.py      — CronTrigger + cron expression parsing
  registry.py  — TriggerRegistry, multiplexes all triggers into one stream
"""

from automation_engine.triggers.base import BaseTrigger, EventCallback, Unsubscribe
from automation_engine.triggers.chat import ChatTrigger
from automation_engine.triggers.cron import CronSchedule, CronTrigger, ScheduledJob, parse_cron
from automation_engine.triggers.registry import TriggerRegistry, get_trigger_registry

__all__ = [
    "BaseTrigger",
    "ChatTrigger",
    "CronSchedule",
    "CronTrigger",
    "EventCallback",
    "ScheduledJob",
    "TriggerRegistry",
    "Unsubscribe",
    "get_trigger_registry",
    "parse_cron",
]
