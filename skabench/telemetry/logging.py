"""
SKA Workbench — Structured Logging

Every module logs through ``structlog.get_logger("skabench.<area>")`` and
binds a ``component``. Records are rendered by a single stdlib handler on
stderr, leaving stdout to the command line's ``[*]``/``[!]`` report.
"""

from __future__ import annotations

import logging
import sys
from typing import IO, TYPE_CHECKING, Any

import structlog
from structlog.typing import EventDict, Processor, WrappedLogger

if TYPE_CHECKING:
    from skabench.config import LoggingConfig

_HANDLER_NAME = "skabench"


def _component_first(_: WrappedLogger, __: str, event_dict: EventDict) -> EventDict:
    """Move ``component`` right after the event so console lines scan by area."""
    component = event_dict.pop("component", None)
    if component is None:
        return event_dict
    event = event_dict.pop("event", "")
    return {"event": event, "component": component, **event_dict}


def _pre_chain() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.format_exc_info,
        _component_first,
    ]


def _renderer(fmt: str) -> Processor:
    if fmt.lower() == "json":
        return structlog.processors.JSONRenderer(sort_keys=False)
    # Terminals under test runners and pipes rarely handle ANSI well.
    return structlog.dev.ConsoleRenderer(colors=False, sort_keys=False)


def _build_handler(fmt: str, stream: IO[str] | None) -> logging.Handler:
    handler = logging.StreamHandler(stream if stream is not None else sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=_pre_chain(),
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                _renderer(fmt),
            ],
        )
    )
    return handler


def setup_logging(config: LoggingConfig, stream: IO[str] | None = None) -> None:
    """
    Route structlog and stdlib logging through one stderr handler.

    Safe to call more than once: an earlier skabench handler is replaced
    rather than stacked.
    """
    structlog.configure(
        processors=[*_pre_chain(), structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root = logging.getLogger()
    for existing in list(root.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root.removeHandler(existing)
    root.addHandler(_build_handler(config.format, stream))

    level: Any = logging.getLevelName(config.level.upper())
    root.setLevel(level if isinstance(level, int) else logging.INFO)
