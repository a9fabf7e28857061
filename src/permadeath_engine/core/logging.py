"""Structured logging for the permadeath progression engine.

structlog is used throughout: every module takes a logger from
``get_logger(__name__)`` and logs events with keyword fields instead of
formatted strings, so economy and battle logs can be filtered by
``actor_id``, ``action_id`` or ``battle_id`` downstream.

Rendering is chosen from settings: console output while developing, one
JSON object per line in production (``PERMADEATH_JSON_LOGS=true``).

Example:
    >>> from permadeath_engine.core.logging import actor_context, get_logger
    >>> logger = get_logger(__name__)
    >>> with actor_context("a-1", action_id="iron_sword"):
    ...     logger.info("Craft resolved", success=True, xp=40)
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.types import Processor


if TYPE_CHECKING:
    from structlog.types import EventDict, WrappedLogger

    from permadeath_engine.core.config import Settings


APP_NAME = "permadeath_engine"

_STDLIB_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def add_app_context(
    logger: WrappedLogger,
    method_name: str,
    event_dict: EventDict,
) -> EventDict:
    """Tag every entry with the engine name.

    Args:
        logger: The wrapped logger instance.
        method_name: Name of the logging method called.
        event_dict: The event dictionary to modify.

    Returns:
        The event dictionary with ``app`` set.
    """
    event_dict.setdefault("app", APP_NAME)
    return event_dict


def _level_number(level: str) -> int:
    return getattr(logging, level.upper(), logging.INFO)


def _processors(json_format: bool) -> list[Processor]:
    shared: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]
    if json_format:
        return [*shared, structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]
    return [
        *shared,
        structlog.dev.ConsoleRenderer(colors=True, exception_formatter=structlog.dev.plain_traceback),
    ]


def configure_logging(
    settings: Settings | None = None,
    *,
    level: str | None = None,
    json_format: bool | None = None,
    log_file: str | None = None,
) -> None:
    """Configure engine-wide logging.

    Explicit arguments win over ``settings``; without either, INFO level
    console output is used.

    Args:
        settings: Engine settings supplying ``log_level`` and ``json_logs``.
        level: The logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        json_format: If True, output logs in JSON format for production.
        log_file: Optional path to a log file for persistent logging.

    Example:
        >>> configure_logging(get_settings())
        >>> configure_logging(level="DEBUG", json_format=True)
    """
    if level is None:
        level = settings.log_level if settings is not None else "INFO"
    if json_format is None:
        json_format = settings.json_logs if settings is not None else False
    level_number = _level_number(level)

    structlog.configure(
        processors=_processors(json_format),
        wrapper_class=structlog.make_filtering_bound_logger(level_number),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format=_STDLIB_FORMAT, level=level_number, stream=sys.stdout, force=True)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(level_number)
        file_handler.setFormatter(logging.Formatter(_STDLIB_FORMAT))
        logging.getLogger().addHandler(file_handler)


def get_logger(name: str | None = None) -> structlog.BoundLogger:
    """Get a logger, typically with ``__name__``."""
    return structlog.get_logger(name)


def bind_context(**kwargs: Any) -> None:
    """Bind fields included in every subsequent entry of this context.

    Example:
        >>> bind_context(actor_id="a-1", request_id="r-42")
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Clear all bound fields.

    Call this at the end of a request so fields do not leak into the next.
    """
    structlog.contextvars.clear_contextvars()


@contextmanager
def actor_context(actor_id: str, **extra: Any) -> Iterator[None]:
    """Bind ``actor_id`` (and ``extra``) for the duration of a block.

    Previously bound values of the same keys are restored on exit.
    """
    with structlog.contextvars.bound_contextvars(actor_id=actor_id, **extra):
        yield


__all__ = [
    "APP_NAME",
    "actor_context",
    "add_app_context",
    "configure_logging",
    "get_logger",
    "bind_context",
    "clear_context",
]
