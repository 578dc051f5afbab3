"""Automation Engine — event-driven automations for an AI assistant host.

Events from chat input, cron schedules, email ingestion or programmatic
injection are normalised into one ``NormalizedEvent`` shape, matched against
registered automations, and pushed through a pipeline of sensor workflows,
declarative conditions, a reasoning collaborator and action workflows.

Architecture layers (bottom to top):
    1. Events     — NormalizedEvent, sources, scopes, modalities, channels
    2. Conditions — condition trees, operators, ``#tag`` rule matching
    3. Triggers   — chat / cron producers and the TriggerRegistry
    4. Workflows  — sensor and action step graphs, WorkflowRunner
    5. Listeners  — AutomationConfig matching and the ListenerManager pipeline
    6. Adapters   — legacy agent config and trigger migration
"""

__version__ = "0.1.0"
__author__ = "Automation Engine Contributors"
__license__ = "Apache-2.0"

from automation_engine.events.models import NormalizedEvent
from automation_engine.listeners.manager import ListenerManager
from automation_engine.listeners.models import AutomationConfig

__all__ = [
    "__version__",
    "AutomationConfig",
    "ListenerManager",
    "NormalizedEvent",
]
