"""Shared pytest fixtures for the automation-engine test suite."""

from __future__ import annotations

from typing import Any, Generator

import pytest

import automation_engine.config as cfg_module
from automation_engine.config import Settings, override_settings
from automation_engine.events.models import NormalizedEvent, TriggerSource
from automation_engine.triggers.registry import TriggerRegistry
from automation_engine.workflows.registry import WorkflowRegistry
from automation_engine.workflows.runner import WorkflowRunner


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def test_settings() -> Generator[Settings, None, None]:
    original = cfg_module._settings
    settings = Settings(
        runner={"timeout_ms": 2000, "continue_on_error": False, "max_parallel": 5},
        cron={"check_interval_seconds": 60},
        logging={"level": "debug", "format": "console"},
    )
    override_settings(settings)
    yield settings
    cfg_module._settings = original


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@pytest.fixture
def make_event():
    def _make(input: str = "hello", **fields: Any) -> NormalizedEvent:
        fields.setdefault("source", TriggerSource.CHAT)
        return NormalizedEvent(input=input, **fields)

    return _make


# ---------------------------------------------------------------------------
# Registries
# ---------------------------------------------------------------------------


@pytest.fixture
def trigger_registry() -> TriggerRegistry:
    return TriggerRegistry()


@pytest.fixture
def workflow_registry() -> WorkflowRegistry:
    return WorkflowRegistry()


@pytest.fixture
def runner(workflow_registry: WorkflowRegistry) -> WorkflowRunner:
    return WorkflowRunner(workflow_registry)
