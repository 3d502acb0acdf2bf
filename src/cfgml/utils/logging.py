"""Structured logging setup using structlog."""

from __future__ import annotations

import logging
import sys

import structlog

_configured: dict[str, object] = {}


def setup_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog with console or JSON rendering on stderr."""
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
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
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    _configured.update(level=level, json_output=json_output)


def logging_settings() -> tuple[str, bool]:
    """Current (level, json_output), handed to worker processes."""
    return str(_configured.get("level", "INFO")), bool(_configured.get("json_output", False))


def init_worker_logging(level: str, json_output: bool) -> None:
    """ProcessPoolExecutor initializer so spawned workers log like the parent."""
    setup_logging(level=level, json_output=json_output)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)
