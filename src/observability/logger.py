"""
Structured logging for the unclaimed-property import pipeline

Modules log through get_logger(__name__). Records are rendered as JSON by
python-json-logger; LOG_FORMAT=text switches to a plain line format for local
runs. Logs always go to stderr so CLI results printed on stdout stay
machine-readable.
"""
import logging
import os
import sys
import time
from contextlib import contextmanager
from typing import Iterator

from pythonjsonlogger import jsonlogger

APP_LOGGER_NAME = "unclaimed-import"
PACKAGE_PREFIX = "src."

TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
JSON_FIELDS = "%(timestamp)s %(level)s %(logger)s %(message)s"


class ImportJsonFormatter(jsonlogger.JsonFormatter):
    """Adds timestamp, level, logger and source location to each JSON record."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["source"] = f"{record.module}:{record.funcName}:{record.lineno}"


def _resolve_level(level: str | None) -> int:
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _make_formatter(format_type: str) -> logging.Formatter:
    if format_type == "text":
        return logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S")
    return ImportJsonFormatter(JSON_FIELDS, datefmt="%Y-%m-%dT%H:%M:%S")


def setup_logger(
    name: str = APP_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    (Re)configure a logger with a single stderr handler.

    Args:
        name: Logger name
        level: Level name; defaults to LOG_LEVEL, then INFO
        format_type: "json" or "text"; defaults to LOG_FORMAT, then json

    Returns:
        The configured logger
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_make_formatter(format_type or os.getenv("LOG_FORMAT", "json")))

    logger.handlers = [handler]
    logger.propagate = False
    return logger


def get_logger(name: str = APP_LOGGER_NAME) -> logging.Logger:
    """Return the named logger, configuring it the first time it is asked for."""
    logger = logging.getLogger(name)
    return logger if logger.handlers else setup_logger(name)


def _application_loggers() -> Iterator[logging.Logger]:
    for name, candidate in list(logging.root.manager.loggerDict.items()):
        if not isinstance(candidate, logging.Logger):
            continue
        if name == APP_LOGGER_NAME or name.startswith(PACKAGE_PREFIX):
            yield candidate


def set_log_level(level: str) -> None:
    """Change the level of every application logger configured so far."""
    resolved = _resolve_level(level)
    for logger in _application_loggers():
        logger.setLevel(resolved)


@contextmanager
def log_operation(operation_name: str, logger: logging.Logger | None = None, **fields) -> Iterator[None]:
    """
    Log the start and the outcome of a pipeline stage with its duration.

    Exceptions are logged and re-raised.

    Usage:
        with log_operation("Loading file", logger=logger, file_name="a.csv"):
            ...
    """
    logger = logger or get_logger()
    context = {"operation": operation_name, **fields}
    started = time.perf_counter()

    logger.info(f"Starting: {operation_name}", extra=context)
    try:
        yield
    except Exception as e:
        logger.error(
            f"Failed: {operation_name}",
            extra={
                **context,
                "status": "error",
                "duration_seconds": round(time.perf_counter() - started, 3),
                "error_type": type(e).__name__,
                "error_message": str(e),
            },
        )
        raise

    logger.info(
        f"Completed: {operation_name}",
        extra={
            **context,
            "status": "success",
            "duration_seconds": round(time.perf_counter() - started, 3),
        },
    )
