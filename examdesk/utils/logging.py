"""Structured logging for the incident desk: structlog events on stdlib handlers."""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler

import structlog

LOG_FILE_NAME = "examdesk.log"


def _handlers(log_dir: str, log_max_bytes: int, log_backup_count: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    try:
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(RotatingFileHandler(
            os.path.join(log_dir, LOG_FILE_NAME),
            maxBytes=log_max_bytes,
            backupCount=log_backup_count,
            encoding="utf-8",
        ))
    except OSError:
        sys.stderr.write(f"File logging disabled: cannot write to {log_dir}\n")
    return handlers


def setup_logging(
    debug: bool = False,
    log_dir: str = "logs",
    log_max_bytes: int = 10_000_000,
    log_backup_count: int = 5,
) -> None:
    """Configure logging for the service.

    structlog renders each event (console lines in debug, one JSON object per
    line otherwise) and hands the rendered line to the stdlib logger of the
    same name, so incident events and plain ``logging`` records share the
    stdout handler and the rotating file under ``log_dir``.
    """
    log_level = logging.DEBUG if debug else logging.INFO

    renderer = (
        structlog.dev.ConsoleRenderer()
        if debug
        else structlog.processors.JSONRenderer()
    )
    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]
    if not debug:
        processors.append(structlog.processors.format_exc_info)
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    # Reload-safe: drop handlers from a previous setup
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter("%(message)s")
    for handler in _handlers(log_dir, log_max_bytes, log_backup_count):
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        root_logger.addHandler(handler)


def get_logger(name: str) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name)
