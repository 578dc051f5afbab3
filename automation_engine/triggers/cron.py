"""CronTrigger — emits events for jobs on 5-field cron schedules.

Fields: minute (0-59), hour (0-23), day-of-month (1-31), month (1-12),
day-of-week (0-6, 0 = Sunday).  Each field supports ``*``, comma lists,
``a-b`` ranges and ``/step``.  Expressions are expanded into concrete value
sets with ``croniter`` at schedule time, so a bad expression fails fast.

A job is due when *every* field set contains the matching component of the
current local time (day-of-month and day-of-week are AND-ed, not OR-ed as in
classic cron) and the job has not already run in the same calendar minute.

Known edge case
---------------
Jobs are checked on a fixed poll cadence (default 60s) plus once
immediately on start.  A cadence above 60s can skip a minute boundary
entirely.  The trigger logs a warning for such intervals but does not
compensate.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from croniter import CroniterError, croniter

from automation_engine.events.models import NormalizedEvent, TriggerScope, TriggerSource
from automation_engine.exceptions import CronExpressionError
from automation_engine.logging import get_logger
from automation_engine.triggers.base import BaseTrigger

log = get_logger(__name__)

# (name, min, max) for the five supported fields.
_FIELDS: tuple[tuple[str, int, int], ...] = (
    ("minute", 0, 59),
    ("hour", 0, 23),
    ("day-of-month", 1, 31),
    ("month", 1, 12),
    ("day-of-week", 0, 6),
)

# Search horizon of ``get_next_run``, in minutes.
NEXT_RUN_HORIZON = 24 * 60


# ---------------------------------------------------------------------------
# Schedule parsing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CronSchedule:
    """Concrete value sets for each cron field, sorted and de-duplicated."""

    minutes: tuple[int, ...]
    hours: tuple[int, ...]
    days_of_month: tuple[int, ...]
    months: tuple[int, ...]
    days_of_week: tuple[int, ...]

    def matches(self, when: datetime) -> bool:
        return (
            when.minute in self.minutes
            and when.hour in self.hours
            and when.day in self.days_of_month
            and when.month in self.months
            and cron_weekday(when) in self.days_of_week
        )


def cron_weekday(when: datetime) -> int:
    """Day of week with 0 = Sunday (``datetime.weekday()`` has 0 = Monday)."""
    return (when.weekday() + 1) % 7


def parse_cron(expression: str) -> CronSchedule:
    """Expand *expression* into a ``CronSchedule``.

    Raises:
        CronExpressionError: the expression does not have exactly five
            fields, or any field cannot be parsed.
    """
    parts = expression.split()
    if len(parts) != 5:
        raise CronExpressionError(expression, f"expected 5 fields, got {len(parts)}")

    try:
        expanded, _nth_weekday = croniter.expand(" ".join(parts))
    except (CroniterError, ValueError) as exc:
        raise CronExpressionError(expression, str(exc)) from exc

    sets: list[tuple[int, ...]] = []
    for (name, low, high), values in zip(_FIELDS, expanded):
        if values == ["*"]:
            sets.append(tuple(range(low, high + 1)))
            continue
        resolved: set[int] = set()
        for value in values:
            if not isinstance(value, int):
                raise CronExpressionError(expression, f"unsupported {name} value {value!r}")
            if name == "day-of-week":
                value %= 7
            if low <= value <= high:
                resolved.add(value)
        if not resolved:
            raise CronExpressionError(expression, f"{name} field matches nothing")
        sets.append(tuple(sorted(resolved)))

    return CronSchedule(*sets)


# ---------------------------------------------------------------------------
# ScheduledJob
# ---------------------------------------------------------------------------


@dataclass
class ScheduledJob:
    id: str
    expression: str
    schedule: CronSchedule
    name: str | None = None
    agent_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    last_run_minute: datetime | None = None
    """Start of the calendar minute the job last ran in."""


# ---------------------------------------------------------------------------
# CronTrigger
# ---------------------------------------------------------------------------


class CronTrigger(BaseTrigger):
    """Polls its jobs and emits one event per due job.

    Usage::

        cron = CronTrigger(check_interval=30)
        cron.schedule("digest", "0 9 * * 1-5", name="Morning digest", agent_id="agent1")
        await cron.start()
    """

    def __init__(
        self,
        trigger_id: str | None = None,
        check_interval: float | None = None,
    ) -> None:
        super().__init__(trigger_id or "cron_trigger")
        if check_interval is None:
            from automation_engine.config import get_settings

            check_interval = get_settings().cron.check_interval_seconds
        if check_interval <= 0:
            raise ValueError(f"check_interval must be positive, got {check_interval}")
        if check_interval > 60:
            log.warning(
                "cron_poll_interval_exceeds_minute",
                trigger_id=self.id,
                check_interval=check_interval,
            )
        self.check_interval = float(check_interval)
        self._jobs: dict[str, ScheduledJob] = {}
        self._task: asyncio.Task[None] | None = None
        self._stop_event = asyncio.Event()

    @property
    def source(self) -> TriggerSource:
        return TriggerSource.CRON

    # ---------------------------------------------------------------------------
    # Jobs
    # ---------------------------------------------------------------------------

    def schedule(
        self,
        job_id: str,
        expression: str,
        name: str | None = None,
        agent_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> ScheduledJob:
        """Add or replace a job.  Raises ``CronExpressionError`` on a bad expression."""
        job = ScheduledJob(
            id=job_id,
            expression=expression,
            schedule=parse_cron(expression),
            name=name,
            agent_id=agent_id,
            metadata=dict(metadata or {}),
        )
        self._jobs[job_id] = job
        log.info("cron_job_scheduled", trigger_id=self.id, job_id=job_id, expression=expression)
        return job

    def unschedule(self, job_id: str) -> bool:
        removed = self._jobs.pop(job_id, None) is not None
        if removed:
            log.info("cron_job_unscheduled", trigger_id=self.id, job_id=job_id)
        return removed

    def get_jobs(self) -> list[ScheduledJob]:
        return list(self._jobs.values())

    def get_job(self, job_id: str) -> ScheduledJob | None:
        return self._jobs.get(job_id)

    def should_run(self, job: ScheduledJob, now: datetime) -> bool:
        if not job.schedule.matches(now):
            return False
        return job.last_run_minute != _minute_of(now)

    def get_next_run(self, job_id: str, now: datetime | None = None) -> datetime | None:
        """First matching minute strictly after *now*, within 24h, else None."""
        job = self._jobs.get(job_id)
        if job is None:
            return None
        candidate = _minute_of(now or datetime.now())
        for _ in range(NEXT_RUN_HORIZON):
            candidate += timedelta(minutes=1)
            if job.schedule.matches(candidate):
                return candidate
        return None

    async def trigger_now(self, job_id: str) -> NormalizedEvent | None:
        """Fire *job_id* immediately, ignoring its schedule."""
        job = self._jobs.get(job_id)
        if job is None:
            log.warning("cron_job_not_found", trigger_id=self.id, job_id=job_id)
            return None
        return await self._run_job(job, datetime.now())

    # ---------------------------------------------------------------------------
    # Polling
    # ---------------------------------------------------------------------------

    async def _on_start(self) -> None:
        self._stop_event.clear()
        self._task = asyncio.create_task(self._poll(), name=f"cron_{self.id}")
        log.info("cron_trigger_started", trigger_id=self.id, jobs=len(self._jobs))

    async def _on_stop(self) -> None:
        self._stop_event.set()
        if self._task is not None and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None

    async def _poll(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.check_jobs()
            except Exception as exc:
                log.error("cron_check_failed", trigger_id=self.id, error=str(exc))
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.check_interval)
                return
            except asyncio.TimeoutError:
                pass

    async def check_jobs(self, now: datetime | None = None) -> list[NormalizedEvent]:
        """Run every due job once.  Returns the events emitted."""
        now = now or datetime.now()
        emitted = []
        for job in list(self._jobs.values()):
            if self.should_run(job, now):
                emitted.append(await self._run_job(job, now))
        return emitted

    async def _run_job(self, job: ScheduledJob, now: datetime) -> NormalizedEvent:
        job.last_run_minute = _minute_of(now)
        event = self.create_event(
            input=f"[CRON] {job.name or job.id} triggered at {now.isoformat()}",
            scope=TriggerScope.AGENT if job.agent_id else TriggerScope.GLOBAL,
            agent_id=job.agent_id,
            metadata={
                "jobId": job.id,
                "jobName": job.name,
                "expression": job.expression,
                "scheduledTime": now.isoformat(),
                **job.metadata,
            },
        )
        log.debug("cron_job_fired", trigger_id=self.id, job_id=job.id, event_id=event.id)
        await self.emit(event)
        return event


def _minute_of(when: datetime) -> datetime:
    return when.replace(second=0, microsecond=0)
