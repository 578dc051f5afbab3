"""Unit tests — SensorWorkflow / ActionWorkflow builders and prebuilt workflows."""

from __future__ import annotations

import pytest

from automation_engine.events.models import NormalizedEvent
from automation_engine.exceptions import AutomationError
from automation_engine.workflows import builders
from automation_engine.workflows.builders import ActionWorkflow, SensorWorkflow
from automation_engine.workflows.models import StepType, WorkflowContext, WorkflowType
from automation_engine.workflows.registry import WorkflowRegistry
from automation_engine.workflows.runner import WorkflowRunner


@pytest.mark.unit
class TestBuilders:
    def test_steps_auto_chain(self) -> None:
        workflow = (
            ActionWorkflow.create("notify-and-store")
            .name("Notify and store")
            .notify("n", "info", "hello")
            .store("s", "key", 1)
            .wait("w", 10)
            .build()
        )
        assert workflow.type is WorkflowType.ACTION
        assert workflow.entry_step == "n"
        assert [s.next_steps for s in workflow.steps] == [["s"], ["w"], []]
        assert workflow.get_step("w").config == {"delay": 10}

    def test_name_defaults_to_id(self) -> None:
        workflow = SensorWorkflow.create("plain").transform("t", lambda d: d).build()
        assert workflow.name == "plain"
        assert workflow.type is WorkflowType.SENSOR

    def test_build_requires_steps(self) -> None:
        with pytest.raises(AutomationError):
            SensorWorkflow.create("empty").build()

    def test_on_error_targets_last_step(self) -> None:
        workflow = (
            ActionWorkflow.create("wf")
            .api("call", "https://x.example")
            .on_error("fallback")
            .notify("fallback", "error", "failed")
            .build()
        )
        assert workflow.get_step("call").on_error == "fallback"

    def test_on_error_without_steps(self) -> None:
        with pytest.raises(AutomationError):
            ActionWorkflow.create("wf").on_error("x")

    def test_action_step_configs(self) -> None:
        workflow = (
            ActionWorkflow.create("wf")
            .loop("each", "rows", item_key="row")
            .parallel("fan", ["each"])
            .agent("think", "agent-1")
            .build()
        )
        assert workflow.get_step("each").config == {"items": "rows", "itemKey": "row"}
        assert workflow.get_step("fan").type is StepType.PARALLEL
        assert workflow.get_step("think").config == {"agentId": "agent-1", "input": None}

    def test_fetch_is_api_step(self) -> None:
        workflow = SensorWorkflow.create("wf").fetch("load", "https://x.example", headers={"A": "b"}).build()
        step = workflow.get_step("load")
        assert step.type is StepType.API
        assert step.config["method"] == "GET"
        assert step.config["headers"] == {"A": "b"}

    def test_condition_step(self) -> None:
        workflow = (
            ActionWorkflow.create("wf")
            .condition("check", "flag", then_step="yes", else_step="no")
            .notify("yes", "info", "y")
            .notify("no", "info", "n")
            .build()
        )
        assert workflow.get_step("check").config["thenStep"] == "yes"
        assert workflow.get_step("check").config["elseStep"] == "no"

    def test_built_workflows_register(self) -> None:
        registry = WorkflowRegistry()
        for workflow in (
            builders.event_snapshot(),
            builders.ocr_extract("https://ocr.example/api"),
            builders.notify_success(),
            builders.webhook_post("https://hooks.example", lambda ctx: {}),
            builders.store_result("answer"),
        ):
            registry.register(workflow)
        assert len(registry) == 5
        assert len(registry.get_sensor_workflows()) == 2


@pytest.mark.unit
class TestPrebuiltWorkflows:
    async def test_event_snapshot(self) -> None:
        registry = WorkflowRegistry()
        registry.register(builders.event_snapshot())
        event = NormalizedEvent(source="chat", input="hi", session_key="s1")
        context = WorkflowContext(event=event)

        await WorkflowRunner(registry).run_sensor("event-snapshot", context)
        snapshot = context.collected_data["stored"]["event"]
        assert snapshot["id"] == event.id
        assert snapshot["source"] == "chat"
        assert snapshot["sessionKey"] == "s1"

    async def test_store_result(self) -> None:
        registry = WorkflowRegistry()
        registry.register(builders.store_result("answer"))
        context = WorkflowContext(event=NormalizedEvent(source="chat"), reasoning_result="42")

        results = await WorkflowRunner(registry).run_action("store-result", context)
        assert results["save"] == {"stored": {"answer": "42"}}
