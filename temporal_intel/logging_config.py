"""
Structured logging for the temporal engine, structlog wrapping stdlib.

Events are emitted as snake_case names with keyword context
(user_id, commitment_id, counts) and rendered as JSON in production or
as console lines in development. Each record carries a short `component`
field ("budget.manager", "learning.outcomes") derived from the logger name.

Environment:
    TIL_LOG_LEVEL    DEBUG | INFO | WARNING | ERROR (default INFO)
    TIL_LOG_FORMAT   "json" for JSON lines, anything else for console
    TIL_LOG_FILE     Also append JSON lines to this file

Usage:
    from temporal_intel.logging_config import setup_logging, get_logger

    setup_logging()
    logger = get_logger(__name__)
    logger.info("morning_digest_sent", user_id="alice", items=5)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

PACKAGE_PREFIX = "temporal_intel."

# Third-party loggers that drown out engine events at INFO
NOISY_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def add_component(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """Derive `component` from the logger name, dropping the package prefix."""
    name = event_dict.get("logger") or ""
    if name.startswith(PACKAGE_PREFIX):
        event_dict["component"] = name[len(PACKAGE_PREFIX):]
    return event_dict


def setup_logging(
    level: str | None = None,
    json_output: bool | None = None,
    log_file: str | None = None,
) -> None:
    if level is None:
        level = os.environ.get("TIL_LOG_LEVEL", "INFO")

    if json_output is None:
        json_output = os.environ.get("TIL_LOG_FORMAT", "").lower() == "json"

    if log_file is None:
        log_file = os.environ.get("TIL_LOG_FILE") or None

    numeric_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_component,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    def _formatter(renderer: structlog.types.Processor) -> logging.Formatter:
        return structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )

    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(
        _formatter(
            structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(console)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(_formatter(structlog.processors.JSONRenderer()))
        root.addHandler(file_handler)

    root.setLevel(numeric_level)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric_level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


__all__ = ["add_component", "get_logger", "setup_logging"]
