"""
Structured logging for nawi.

structlog writes one JSON object per event to stderr: event_type, level,
logger, timestamp and the keyword fields of the call. stdout is reserved for
the rendered script context. Level and format come from LOG_LEVEL and
LOG_FORMAT (json | console) and can be changed at runtime with
configure_logging, which is what the CLI's -v flag does.

No nawi imports here: every other module imports this one.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any, TextIO

import structlog

DEFAULT_LEVEL = "WARNING"
DEFAULT_FORMAT = "json"


def _event_type(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Publish structlog's positional event name as event_type."""
    if "event" in event_dict:
        event_dict.setdefault("event_type", event_dict.pop("event"))
    return event_dict


def _level_value(level: str) -> int:
    value = logging.getLevelName(level.strip().upper())
    return value if isinstance(value, int) else logging.WARNING


def configure_logging(
    level: str | None = None,
    fmt: str | None = None,
    stream: TextIO | None = None,
) -> None:
    """
    (Re)configure structlog for the whole process.

    Args:
        level: Minimum level name; defaults to LOG_LEVEL, then WARNING.
        fmt: "json" or "console"; defaults to LOG_FORMAT, then json.
        stream: Where log lines go; defaults to sys.stderr.
    """
    level = level or os.getenv("LOG_LEVEL", DEFAULT_LEVEL)
    fmt = (fmt or os.getenv("LOG_FORMAT", DEFAULT_FORMAT)).strip().lower()
    stream = stream or sys.stderr
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True, key="timestamp"),
        structlog.processors.format_exc_info,
    ]
    if fmt == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=stream.isatty()))
    else:
        processors += [_event_type, structlog.processors.JSONRenderer()]
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level_value(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=stream),
        # module-level loggers must pick up a later configure_logging call
        cache_logger_on_first_use=False,
    )


if not structlog.is_configured():
    configure_logging()


def get_logger(name: str) -> Any:
    """
    Lazy structured logger for a module, with `logger=name` on every event.

        logger = get_logger(__name__)
        logger.info("utxo_fetched", input_ref="ab12...#0")
    """
    return structlog.get_logger(name, logger=name)


def bind_transaction(tx_id: str) -> Any:
    """Logger with tx_id bound to all subsequent events of one run."""
    return get_logger("nawi").bind(tx_id=tx_id)
