"""WorkflowRunner — executes workflow step graphs.

Traversal
---------
Depth-first from ``entry_step``.  A per-run visited set guarantees every step
id is entered at most once; a revisit (cycle) is skipped with a warning, it
is not an error.  Each step's result is recorded under its id and, when it
is a dict, shallow-merged into ``context.collected_data``.

- ``condition`` steps replace ``next_steps`` with a jump to ``thenStep`` /
  ``elseStep``.
- ``parallel`` steps fan out to ``config["steps"]`` concurrently.  Each
  branch gets its own *copy* of the visited set, so a step reachable from
  two branches runs once per branch.  Only the first ``max_parallel``
  branches run; the rest are dropped, not queued.

Failure policy
--------------
A failing step with ``on_error`` runs that step instead of propagating.
Otherwise the failure propagates out of ``execute()`` unless
``continue_on_error`` is set, in which case it is appended to
``context.errors`` and traversal continues.

The whole traversal races a deadline (``timeout_ms``).  On expiry the
traversal task is cancelled and ``WorkflowTimeoutError`` raised (or recorded
when ``continue_on_error``).  A handler that suppresses cancellation can
outlive the run.
"""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Union

import httpx

from automation_engine.exceptions import (
    ApiStepError,
    StepHandlerError,
    WorkflowError,
    WorkflowNotFoundError,
    WorkflowTimeoutError,
    WorkflowTypeError,
)
from automation_engine.logging import event_context, get_logger
from automation_engine.workflows.models import (
    StepType,
    WorkflowContext,
    WorkflowDefinition,
    WorkflowStep,
    WorkflowType,
)
from automation_engine.workflows.registry import WorkflowRegistry

log = get_logger(__name__)

StepHandler = Callable[[WorkflowStep, WorkflowContext], Union[Any, Awaitable[Any]]]


@dataclass(frozen=True)
class ExecutionOptions:
    timeout_ms: float
    continue_on_error: bool
    max_parallel: int


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    """Call a sync or async callable and return its result."""
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class WorkflowRunner:
    """Runs workflows from a ``WorkflowRegistry``.

    Defaults for ``timeout_ms``, ``continue_on_error`` and ``max_parallel``
    come from ``Settings.runner`` unless passed explicitly.  An
    ``httpx.AsyncClient`` may be injected for ``api`` steps; otherwise one
    is created per call.
    """

    def __init__(
        self,
        registry: WorkflowRegistry,
        timeout_ms: float | None = None,
        continue_on_error: bool | None = None,
        max_parallel: int | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        from automation_engine.config import get_settings

        settings = get_settings()
        self._registry = registry
        self._defaults = ExecutionOptions(
            timeout_ms=timeout_ms if timeout_ms is not None else settings.runner.timeout_ms,
            continue_on_error=(
                continue_on_error
                if continue_on_error is not None
                else settings.runner.continue_on_error
            ),
            max_parallel=max_parallel if max_parallel is not None else settings.runner.max_parallel,
        )
        self._http_client = http_client
        self._http_timeout = settings.http.timeout_seconds
        self._user_agent = settings.http.user_agent
        self._handlers: dict[str, StepHandler] = {}
        self._register_default_handlers()

    @property
    def defaults(self) -> ExecutionOptions:
        return self._defaults

    def register_handler(self, step_type: StepType | str, handler: StepHandler) -> None:
        """Install or replace the handler for *step_type*."""
        key = step_type.value if isinstance(step_type, StepType) else step_type
        self._handlers[key] = handler

    # ---------------------------------------------------------------------------
    # Entry points
    # ---------------------------------------------------------------------------

    async def run_sensor(
        self, workflow_id: str, context: WorkflowContext, **options: Any
    ) -> dict[str, Any]:
        workflow = self._resolve(workflow_id, WorkflowType.SENSOR)
        return await self.execute(workflow, context, **options)

    async def run_action(
        self, workflow_id: str, context: WorkflowContext, **options: Any
    ) -> dict[str, Any]:
        workflow = self._resolve(workflow_id, WorkflowType.ACTION)
        return await self.execute(workflow, context, **options)

    def _resolve(self, workflow_id: str, expected: WorkflowType) -> WorkflowDefinition:
        workflow = self._registry.get(workflow_id)
        if workflow is None:
            raise WorkflowNotFoundError(workflow_id, kind=expected.value.capitalize())
        if workflow.type != expected:
            raise WorkflowTypeError(workflow_id, expected.value)
        return workflow

    async def execute(
        self,
        workflow: WorkflowDefinition,
        context: WorkflowContext,
        timeout_ms: float | None = None,
        continue_on_error: bool | None = None,
        max_parallel: int | None = None,
    ) -> dict[str, Any]:
        """Run *workflow* and return ``{step_id: result}`` for every step entered."""
        opts = ExecutionOptions(
            timeout_ms=timeout_ms if timeout_ms is not None else self._defaults.timeout_ms,
            continue_on_error=(
                continue_on_error
                if continue_on_error is not None
                else self._defaults.continue_on_error
            ),
            max_parallel=max_parallel if max_parallel is not None else self._defaults.max_parallel,
        )
        results: dict[str, Any] = {}
        with event_context(workflow_id=workflow.id, event_id=context.event.id):
            log.debug("workflow_started", workflow_id=workflow.id, type=workflow.type.value)
            try:
                await asyncio.wait_for(
                    self._execute_step(workflow, workflow.entry_step, context, results, set(), opts),
                    timeout=opts.timeout_ms / 1000,
                )
            except asyncio.TimeoutError:
                error = WorkflowTimeoutError(workflow.id, opts.timeout_ms)
                log.error("workflow_timeout", workflow_id=workflow.id, timeout_ms=opts.timeout_ms)
                if not opts.continue_on_error:
                    raise error from None
                context.errors.append(error)
            except Exception as exc:
                log.error("workflow_failed", workflow_id=workflow.id, error=str(exc))
                if not opts.continue_on_error:
                    raise
                context.errors.append(exc)

            log.debug("workflow_finished", workflow_id=workflow.id, steps_run=len(results))
        return results

    # ---------------------------------------------------------------------------
    # Traversal
    # ---------------------------------------------------------------------------

    async def _execute_step(
        self,
        workflow: WorkflowDefinition,
        step_id: str,
        context: WorkflowContext,
        results: dict[str, Any],
        visited: set[str],
        opts: ExecutionOptions,
    ) -> None:
        if step_id in visited:
            log.warning("workflow_step_revisit_skipped", workflow_id=workflow.id, step_id=step_id)
            return
        visited.add(step_id)

        step = workflow.get_step(step_id)
        if step is None:
            raise WorkflowError(
                f"Step '{step_id}' not found in workflow '{workflow.id}'",
                context={"workflow_id": workflow.id, "step_id": step_id},
            )
        step_type = step.type.value if isinstance(step.type, StepType) else str(step.type)
        handler = self._handlers.get(step_type)
        if handler is None:
            raise StepHandlerError(step.id, step_type)

        context.current_step = step_id

        try:
            result = await _call(handler, step, context)
            results[step_id] = result
            if isinstance(result, dict):
                context.collected_data.update(result)

            if step.type == StepType.CONDITION and isinstance(result, dict) and result.get("nextStep"):
                await self._execute_step(
                    workflow, result["nextStep"], context, results, visited, opts
                )
                return

            if step.type == StepType.PARALLEL and isinstance(result, dict) and result.get("parallelSteps"):
                branches = list(result["parallelSteps"])
                if len(branches) > opts.max_parallel:
                    log.debug(
                        "parallel_branches_dropped",
                        workflow_id=workflow.id,
                        step_id=step_id,
                        dropped=branches[opts.max_parallel:],
                    )
                await asyncio.gather(
                    *(
                        self._execute_step(workflow, branch, context, results, set(visited), opts)
                        for branch in branches[: opts.max_parallel]
                    )
                )
                return

            for next_id in step.next_steps:
                await self._execute_step(workflow, next_id, context, results, visited, opts)

        except Exception as exc:
            log.error(
                "workflow_step_failed",
                workflow_id=workflow.id,
                step_id=step_id,
                error=str(exc),
            )
            if step.on_error:
                await self._execute_step(workflow, step.on_error, context, results, visited, opts)
            elif not opts.continue_on_error:
                raise
            else:
                context.errors.append(exc)

    # ---------------------------------------------------------------------------
    # Built-in handlers
    # ---------------------------------------------------------------------------

    def _register_default_handlers(self) -> None:
        self.register_handler(StepType.AGENT, self._agent_step)
        self.register_handler(StepType.WAIT, self._wait_step)
        self.register_handler(StepType.TRANSFORM, self._transform_step)
        self.register_handler(StepType.STORE, self._store_step)
        self.register_handler(StepType.NOTIFY, self._notify_step)
        self.register_handler(StepType.CONDITION, self._condition_step)
        self.register_handler(StepType.LOOP, self._loop_step)
        self.register_handler(StepType.API, self._api_step)
        self.register_handler(StepType.PARALLEL, self._parallel_step)

    @staticmethod
    async def _agent_step(step: WorkflowStep, context: WorkflowContext) -> dict[str, Any]:
        # The reasoning call itself belongs to ListenerManager's callback.
        agent_input = step.config.get("input")
        if callable(agent_input):
            agent_input = await _call(agent_input, context)
        return {
            "agentId": step.config.get("agentId"),
            "input": agent_input if agent_input is not None else context.event.input,
        }

    @staticmethod
    async def _wait_step(step: WorkflowStep, context: WorkflowContext) -> dict[str, Any]:
        delay = step.config.get("delay") or 1000
        await asyncio.sleep(delay / 1000)
        return {"waited": delay}

    @staticmethod
    async def _transform_step(step: WorkflowStep, context: WorkflowContext) -> Any:
        expression = step.config.get("expression")
        if callable(expression):
            return await _call(expression, context.collected_data)
        return dict(context.collected_data)

    @staticmethod
    async def _store_step(step: WorkflowStep, context: WorkflowContext) -> dict[str, Any]:
        value = step.config.get("value")
        if callable(value):
            value = await _call(value, context)
        return {"stored": {step.config.get("key"): value}}

    @staticmethod
    async def _notify_step(step: WorkflowStep, context: WorkflowContext) -> dict[str, Any]:
        level = step.config.get("type", "info")
        message = step.config.get("message")
        log.info("workflow_notification", step_id=step.id, level=level, message=message)
        return {"notified": True, "type": level, "message": message}

    @staticmethod
    async def _condition_step(step: WorkflowStep, context: WorkflowContext) -> dict[str, Any]:
        condition = step.config.get("condition")
        if callable(condition):
            passed = bool(await _call(condition, context))
        else:
            passed = bool(context.collected_data.get(condition))
        return {
            "condition": passed,
            "nextStep": step.config.get("thenStep") if passed else step.config.get("elseStep"),
        }

    @staticmethod
    async def _loop_step(step: WorkflowStep, context: WorkflowContext) -> dict[str, Any]:
        items = step.config.get("items")
        if callable(items):
            resolved = await _call(items, context)
        else:
            resolved = context.collected_data.get(items) or []
        return {"items": resolved, "itemKey": step.config.get("itemKey", "item")}

    @staticmethod
    async def _parallel_step(step: WorkflowStep, context: WorkflowContext) -> dict[str, Any]:
        return {"parallelSteps": list(step.config.get("steps") or [])}

    async def _api_step(self, step: WorkflowStep, context: WorkflowContext) -> Any:
        url = step.config["url"]
        method = str(step.config.get("method", "GET")).upper()
        headers = {"Content-Type": "application/json", **(step.config.get("headers") or {})}
        body = step.config.get("body")
        if callable(body):
            body = await _call(body, context)

        if self._http_client is not None:
            response = await self._http_client.request(method, url, headers=headers, json=body)
        else:
            async with httpx.AsyncClient(
                timeout=self._http_timeout,
                headers={"User-Agent": self._user_agent},
            ) as client:
                response = await client.request(method, url, headers=headers, json=body)

        if not response.is_success:
            raise ApiStepError(url, response.status_code, response.reason_phrase)
        return response.json()
