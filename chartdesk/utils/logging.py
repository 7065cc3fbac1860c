"""Structured logging setup with structlog and request IDs.

Supports two output modes:
- "json": Machine-readable JSON lines
- "console": Human-readable colored output (for development)

Request IDs are injected via contextvars into every log entry. A chart
pane's CandleFeed calls bind_load_context at the start of each load, so
provider attempts, retries and fallbacks of a single load carry the same
request_id, symbol, timeframe and source.
"""

from __future__ import annotations

import logging
import sys
import uuid
from contextvars import ContextVar

import structlog

_request_id: ContextVar[str] = ContextVar("request_id", default="")

# Transport loggers that would repeat every provider request at INFO
QUIET_LOGGERS = ("httpx", "httpcore")


def set_request_id(rid: str) -> None:
    """Set the request ID for the current context."""
    _request_id.set(rid)


def get_request_id() -> str:
    """Get the request ID for the current context."""
    return _request_id.get()


def bind_load_context(symbol: str, timeframe: str, source: str) -> str:
    """Start a fresh request ID and bind the pane's chart to the log context.

    Returns the new request ID.
    """
    rid = uuid.uuid4().hex[:12]
    set_request_id(rid)
    structlog.contextvars.bind_contextvars(
        symbol=symbol,
        timeframe=timeframe,
        source=source,
    )
    return rid


def _add_request_id(
    logger: structlog.types.WrappedLogger,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """Inject request_id into every log entry."""
    rid = get_request_id()
    if rid:
        event_dict["request_id"] = rid
    return event_dict


def setup_logging(level: str = "INFO", log_format: str = "json") -> None:
    """Configure structlog for chartdesk.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_format: Output format - "json" or "console".
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_request_id,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    # provider attempts are logged as our own events
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a named structlog logger."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
