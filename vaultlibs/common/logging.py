"""Structured logging for vault services.

All services log through ``structlog`` on top of the standard library:
JSON lines in deployed environments, a colourised console renderer locally.
Context bound at startup (service name, environment) and per request (see
``request_context``) is merged into every line.
"""

import logging
import sys
from contextlib import contextmanager
from typing import Any, Iterator, List

import structlog
from structlog.stdlib import LoggerFactory, add_logger_name

LOG_FORMATS = ("json", "console")


def _processors(log_format: str) -> List[Any]:
    processors: List[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]
    if log_format == "console":
        processors.append(structlog.dev.ConsoleRenderer(colors=True))
    else:
        # Tracebacks become a string field so each record stays one JSON line.
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    return processors


def configure_logging(
    service_name: str,
    log_level: str = "INFO",
    log_format: str = "json",
    **context: Any
) -> None:
    """Configure structured logging for a service.

    Parameters
    - service_name: Bound to every line as ``service``
    - log_level: Standard level name, case-insensitive
    - log_format: ``json`` or ``console``; anything else falls back to JSON
    - context: Extra key/values bound to every line (e.g. ``env="prod"``)
    """
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    structlog.configure(
        processors=_processors(log_format),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(service=service_name, **context)


def get_logger(name: str) -> structlog.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def request_context(**values: Any) -> Iterator[None]:
    """Bind ``values`` to every log line emitted inside the block."""
    with structlog.contextvars.bound_contextvars(**values):
        yield


def log_performance(operation: str, duration_ms: float, **kwargs: Any) -> None:
    """Log the duration of a unit of work on the ``performance`` logger."""
    get_logger("performance").info(
        "Operation completed",
        operation=operation,
        duration_ms=round(duration_ms, 2),
        **kwargs
    )
