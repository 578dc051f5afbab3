"""ListenerManager — the top-level event pipeline.

For every event delivered by the TriggerRegistry the manager:

1. Selects enabled automations whose match predicate passes.
2. For each match, independently:
   a. runs its sensor workflows sequentially (a failing sensor is recorded
      and the rest still run);
   b. evaluates its condition tree against event fields + event metadata +
      sensor data (a failing condition ends this automation's pipeline);
   c. calls the reasoning collaborator once (a failure is recorded, actions
      still run);
   d. runs its action workflows sequentially, recording each outcome.

Match predicate (short-circuit order)
-------------------------------------
source      exact equality                                 "source mismatch"
scope       global passes; agent needs event.agent_id ==
            reasoning_profile; workflow needs
            source_workflow_id == trigger.workflow_id       "scope mismatch"
modalities  any overlap; empty config list is a wildcard    "modality mismatch"
website     substring of event.url (when both are set)      "website filter"
patterns    ``@mention`` in the input                       "@Name pattern"
tags        overlap with event.metadata["tags"]             "tag match"
context     any word (> 3 chars) of expected_context
            found in the input                              "context: ..."
otherwise   matches when no patterns/tags/context declared  "source/scope/modality match"
                                                            "no pattern/tag/context match"

Reasoning collaborator signature (sync or async)::

    async def reason(event: NormalizedEvent, config: AutomationConfig,
                     context: WorkflowContext) -> Any
"""

from __future__ import annotations

import inspect
import re
import time
from typing import Any, Awaitable, Callable, Union

from automation_engine.conditions.engine import ConditionEngine, condition_engine
from automation_engine.events.models import NormalizedEvent, TriggerScope
from automation_engine.exceptions import AutomationConfigError
from automation_engine.listeners.models import (
    ActionResult,
    AutomationConfig,
    MatchResult,
    ProcessingResult,
)
from automation_engine.logging import event_context, get_logger
from automation_engine.triggers.base import Unsubscribe
from automation_engine.triggers.chat import ChatTrigger
from automation_engine.triggers.registry import TriggerRegistry
from automation_engine.workflows.models import WorkflowContext
from automation_engine.workflows.registry import WorkflowRegistry
from automation_engine.workflows.runner import WorkflowRunner

log = get_logger(__name__)

ReasoningCallback = Callable[
    [NormalizedEvent, AutomationConfig, WorkflowContext], Union[Any, Awaitable[Any]]
]

_CONTEXT_SPLIT = re.compile(r"[\s,;]+")


class ListenerManager:
    """Owns registered automations and drives the pipeline for each event.

    Usage::

        manager = ListenerManager()
        manager.register(AutomationConfig(id="invoices", patterns=["Invoice"], ...))
        manager.set_reasoning_callback(call_agent)
        await manager.start()
    """

    def __init__(
        self,
        trigger_registry: TriggerRegistry | None = None,
        workflow_registry: WorkflowRegistry | None = None,
        runner: WorkflowRunner | None = None,
        engine: ConditionEngine | None = None,
    ) -> None:
        self._trigger_registry = trigger_registry if trigger_registry is not None else TriggerRegistry()
        self._workflow_registry = (
            workflow_registry if workflow_registry is not None else WorkflowRegistry()
        )
        self._runner = runner if runner is not None else WorkflowRunner(self._workflow_registry)
        self._engine = engine if engine is not None else condition_engine
        self._automations: dict[str, AutomationConfig] = {}
        self._reasoning_callback: ReasoningCallback | None = None
        self._unsubscribe: Unsubscribe | None = None

    # ---------------------------------------------------------------------------
    # Automations
    # ---------------------------------------------------------------------------

    def register(self, config: AutomationConfig | dict[str, Any]) -> AutomationConfig:
        if isinstance(config, dict):
            config = AutomationConfig.from_dict(config)
        if not config.id:
            raise AutomationConfigError("Automation config must have an id")
        if config.conditions is not None:
            self._engine.validate(config.conditions).raise_for_errors(
                f"Automation '{config.id}' has an invalid condition tree"
            )
        self._automations[config.id] = config
        log.info("automation_registered", automation_id=config.id, name=config.name)
        return config

    def unregister(self, automation_id: str) -> bool:
        removed = self._automations.pop(automation_id, None) is not None
        if removed:
            log.info("automation_unregistered", automation_id=automation_id)
        return removed

    def get(self, automation_id: str) -> AutomationConfig | None:
        return self._automations.get(automation_id)

    def get_all(self) -> list[AutomationConfig]:
        return list(self._automations.values())

    def set_reasoning_callback(self, callback: ReasoningCallback | None) -> None:
        self._reasoning_callback = callback

    @property
    def trigger_registry(self) -> TriggerRegistry:
        return self._trigger_registry

    @property
    def workflow_registry(self) -> WorkflowRegistry:
        return self._workflow_registry

    @property
    def runner(self) -> WorkflowRunner:
        return self._runner

    # ---------------------------------------------------------------------------
    # Lifecycle
    # ---------------------------------------------------------------------------

    async def start(self) -> None:
        if self._unsubscribe is not None:
            log.warning("listener_manager_already_running")
            return
        self._unsubscribe = self._trigger_registry.subscribe(self.process_event)
        await self._trigger_registry.start_all()
        log.info("listener_manager_started", automations=len(self._automations))

    async def stop(self) -> None:
        if self._unsubscribe is None:
            log.warning("listener_manager_not_running")
            return
        self._unsubscribe()
        self._unsubscribe = None
        await self._trigger_registry.stop_all()
        log.info("listener_manager_stopped")

    @property
    def is_running(self) -> bool:
        return self._unsubscribe is not None

    # ---------------------------------------------------------------------------
    # Pipeline
    # ---------------------------------------------------------------------------

    async def process_event(self, event: NormalizedEvent) -> list[ProcessingResult]:
        matches = self.get_matching_automations(event)
        if not matches:
            log.debug("no_matching_automations", event_id=event.id)
            return []

        log.info("processing_event", event_id=event.id, matches=len(matches))
        results = []
        for match in matches:
            config = self._automations[match.automation_id]
            results.append(await self.process_automation(config, event, match.reason))
        return results

    def get_matching_automations(self, event: NormalizedEvent) -> list[MatchResult]:
        matches = []
        for config in self._automations.values():
            if not config.enabled:
                continue
            result = self.match_automation(config, event)
            if result.matched:
                matches.append(result)
            else:
                log.debug(
                    "automation_not_matched",
                    automation_id=config.id,
                    event_id=event.id,
                    reason=result.reason,
                )
        return matches

    def match_automation(self, config: AutomationConfig, event: NormalizedEvent) -> MatchResult:
        def result(matched: bool, reason: str) -> MatchResult:
            return MatchResult(automation_id=config.id, matched=matched, reason=reason)

        trigger = config.trigger
        if event.source != trigger.source:
            return result(False, "source mismatch")
        if not _match_scope(event, config):
            return result(False, "scope mismatch")
        if trigger.modalities and not set(event.modalities) & set(trigger.modalities):
            return result(False, "modality mismatch")
        if config.website and event.url:
            if config.website.lower() not in event.url.lower():
                return result(False, "website filter")

        if config.patterns:
            mentions = {m.lower() for m in ChatTrigger.extract_mentions(event.input)}
            for pattern in config.patterns:
                if pattern.lower() in mentions:
                    return result(True, f"@{pattern} pattern")

        if config.tags:
            event_tags = event.metadata.get("tags") or []
            if any(tag in event_tags for tag in config.tags):
                return result(True, "tag match")

        if config.expected_context and _match_expected_context(event.input, config.expected_context):
            return result(True, f"context: {config.expected_context}")

        if not config.patterns and not config.tags and not config.expected_context:
            return result(True, "source/scope/modality match")
        return result(False, "no pattern/tag/context match")

    async def process_automation(
        self,
        config: AutomationConfig,
        event: NormalizedEvent,
        match_reason: str = "",
    ) -> ProcessingResult:
        started = time.monotonic()
        outcome = ProcessingResult(
            automation_id=config.id, event_id=event.id, match_reason=match_reason
        )
        with event_context(automation_id=config.id, event_id=event.id):
            try:
                await self._run_pipeline(config, event, outcome)
            finally:
                outcome.duration_ms = (time.monotonic() - started) * 1000
                log.debug(
                    "automation_processed",
                    automation_id=config.id,
                    success=outcome.success,
                    duration_ms=round(outcome.duration_ms, 2),
                )
        return outcome

    async def _run_pipeline(
        self, config: AutomationConfig, event: NormalizedEvent, outcome: ProcessingResult
    ) -> None:
        context = WorkflowContext(event=event)

        for sensor_id in config.sensor_workflows:
            try:
                context.collected_data.update(await self._runner.run_sensor(sensor_id, context))
            except Exception as exc:
                log.error("sensor_workflow_failed", workflow_id=sensor_id, error=str(exc))
                outcome.errors.append(exc)
        outcome.sensor_data = dict(context.collected_data)

        condition_context = {
            **event.to_dict(),
            **event.metadata,
            **context.collected_data,
        }
        outcome.conditions_passed = self._engine.evaluate(config.conditions, condition_context)
        if not outcome.conditions_passed:
            log.info("automation_conditions_not_met", automation_id=config.id)
            return

        if self._reasoning_callback is not None:
            try:
                reasoning = self._reasoning_callback(event, config, context)
                if inspect.isawaitable(reasoning):
                    reasoning = await reasoning
                outcome.reasoning_result = reasoning
                context.reasoning_result = reasoning
            except Exception as exc:
                log.error("reasoning_failed", automation_id=config.id, error=str(exc))
                outcome.errors.append(exc)

        for action_id in config.allowed_actions:
            try:
                output = await self._runner.run_action(action_id, context)
                outcome.action_results.append(
                    ActionResult(workflow_id=action_id, success=True, output=output)
                )
            except Exception as exc:
                log.error("action_workflow_failed", workflow_id=action_id, error=str(exc))
                outcome.action_results.append(
                    ActionResult(workflow_id=action_id, success=False, error=exc)
                )
                outcome.errors.append(exc)

        outcome.success = not outcome.errors


def _match_scope(event: NormalizedEvent, config: AutomationConfig) -> bool:
    scope = config.trigger.scope
    if scope == TriggerScope.GLOBAL:
        return True
    if scope == TriggerScope.AGENT:
        return event.agent_id == config.reasoning_profile
    if config.trigger.workflow_id:
        return event.source_workflow_id == config.trigger.workflow_id
    return True


def _match_expected_context(text: str, expected_context: str) -> bool:
    haystack = (text or "").lower()
    keywords = [w for w in _CONTEXT_SPLIT.split(expected_context.lower()) if len(w) > 3]
    return any(keyword in haystack for keyword in keywords)
