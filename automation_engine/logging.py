"""Structured logging for the automation pipeline.

Every module logs through ``get_logger(__name__)`` with snake_case event
names and key-value fields.  While an automation runs, the listener manager
and workflow runner bind the ids they are working on so each record carries:

    - timestamp (ISO-8601), level, logger name
    - automation_id / event_id / workflow_id (whichever are bound)

Fields passed explicitly to a log call take precedence over bound ones.
"""

from __future__ import annotations

import logging
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Any, Iterator, Mapping

import structlog
from structlog.types import EventDict, WrappedLogger

if TYPE_CHECKING:
    from automation_engine.config import LoggingConfig

_CONTEXT_KEYS = ("automation_id", "event_id", "workflow_id")

_pipeline_context: ContextVar[Mapping[str, str]] = ContextVar("pipeline_context", default={})


def bind_event_context(
    automation_id: str | None = None,
    event_id: str | None = None,
    workflow_id: str | None = None,
) -> None:
    """Bind pipeline ids to the current task; ``None`` leaves a key as is."""
    updates = {
        key: value
        for key, value in zip(_CONTEXT_KEYS, (automation_id, event_id, workflow_id))
        if value is not None
    }
    if updates:
        _pipeline_context.set({**_pipeline_context.get(), **updates})


def clear_event_context() -> None:
    _pipeline_context.set({})


@contextmanager
def event_context(
    automation_id: str | None = None,
    event_id: str | None = None,
    workflow_id: str | None = None,
) -> Iterator[None]:
    """Bind pipeline ids for the duration of the block, then restore the previous ones."""
    token = _pipeline_context.set(_pipeline_context.get())
    try:
        bind_event_context(automation_id=automation_id, event_id=event_id, workflow_id=workflow_id)
        yield
    finally:
        _pipeline_context.reset(token)


def _inject_context_vars(
    _logger: WrappedLogger, _method: str, event_dict: EventDict
) -> EventDict:
    for key, value in _pipeline_context.get().items():
        event_dict.setdefault(key, value)
    return event_dict


# ---------------------------------------------------------------------------
# Setup
# ---------------------------------------------------------------------------


def _renderer(format: str) -> Any:
    if format == "json":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def _handlers(formatter: logging.Formatter, log_file: str | None) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))
    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def configure_logging(
    level: str = "info",
    format: str = "console",
    log_file: str | None = None,
) -> None:
    """Route structlog and stdlib logging through one formatter.

    Args:
        level:    One of debug, info, warning, error, critical.
        format:   ``"console"`` or ``"json"``.
        log_file: Optional path written in addition to stdout.
    """
    pre_chain: list[Any] = [
        structlog.contextvars.merge_contextvars,
        _inject_context_vars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            _renderer(format),
        ],
    )

    root = logging.getLogger()
    root.handlers = _handlers(formatter, log_file)
    root.setLevel(level.upper())

    # httpx logs every request at INFO.
    for noisy in ("httpx", "httpcore", "asyncio"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def configure_from_settings(config: "LoggingConfig") -> None:
    """Apply the ``logging`` section of ``Settings``."""
    configure_logging(
        level=config.level,
        format=config.format,
        log_file=str(config.file) if config.file else None,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger for *name*.

    Usage::

        log = get_logger(__name__)
        log.info("automation_matched", automation_id="auto_1", reason="tag match")
    """
    return structlog.get_logger(name)
