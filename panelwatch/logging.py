"""Structured logging setup.

Call ``configure_structlog`` once at process start; modules then log with
``structlog.get_logger(__name__)`` using snake_case event names::

    log = structlog.get_logger(__name__)
    log.info("cursor_advanced", cursor=105, events=3)

``json`` output is one JSON object per line for log shipping, ``console`` is
the coloured developer renderer.
"""

from __future__ import annotations

import logging

import structlog
from structlog.typing import Processor


def _level(name: str) -> int:
    return getattr(logging, (name or "INFO").upper(), logging.INFO)


def configure_structlog(fmt: str = "json", level: str = "INFO") -> None:
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if fmt == "console":
        final_processors: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        final_processors = [structlog.processors.format_exc_info, structlog.processors.JSONRenderer()]

    structlog.configure(
        processors=shared_processors + final_processors,
        wrapper_class=structlog.make_filtering_bound_logger(_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
