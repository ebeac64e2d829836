"""
Structured logging for the ingestion pipeline.

Modules log through get_logger(__name__). Records are JSON on stderr
(stdout is reserved for command output) and carry the id of the workflow
execution they belong to, so the three transform branches can be told
apart when their lines interleave.
"""
import contextvars
import logging
import os
import sys
import time
from collections.abc import Iterator
from contextlib import contextmanager

from pythonjsonlogger import jsonlogger

ROOT_LOGGER_NAME = "ev_ingest"

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(function)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(execution_id)s] %(message)s"

_execution_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("execution_id", default=None)


class ExecutionContextFilter(logging.Filter):
    """Stamp each record with the current execution id (or "-")."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "execution_id"):
            record.execution_id = _execution_id.get() or "-"
        return True


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """
    JSON formatter with stable top-level keys: timestamp, level, logger,
    function, thread and the execution id when one is bound.
    """

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)

        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["function"] = record.funcName
        log_record["thread"] = record.threadName
        if getattr(record, "execution_id", "-") == "-":
            log_record.pop("execution_id", None)


def setup_logger(
    name: str = ROOT_LOGGER_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    (Re)configure a logger with a single stderr handler.

    Args:
        name: Logger name
        level: Level name; falls back to LOG_LEVEL, then INFO
        format_type: "json" or "text"; falls back to LOG_FORMAT, then json

    Returns:
        The configured logger
    """
    level_name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    log_level = logging.getLevelName(level_name)
    if not isinstance(log_level, int):
        log_level = logging.INFO
    format_type = (format_type or os.getenv("LOG_FORMAT") or "json").lower()

    logger = logging.getLogger(name)
    logger.setLevel(log_level)
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stderr)
    handler.addFilter(ExecutionContextFilter())
    if format_type == "json":
        handler.setFormatter(CustomJsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(logging.Formatter(TEXT_FORMAT, datefmt="%H:%M:%S"))

    logger.addHandler(handler)
    logger.propagate = False
    return logger


def get_logger(name: str = ROOT_LOGGER_NAME) -> logging.Logger:
    """
    Return a logger under the ``ev_ingest`` hierarchy.

    Names outside the package are nested under it so every line goes
    through the one configured handler.
    """
    if not logging.getLogger(ROOT_LOGGER_NAME).handlers:
        setup_logger(ROOT_LOGGER_NAME)

    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


@contextmanager
def bind_execution(execution_id: str) -> Iterator[None]:
    """Attach ``execution_id`` to every record logged in this context."""
    token = _execution_id.set(execution_id)
    try:
        yield
    finally:
        _execution_id.reset(token)


@contextmanager
def log_operation(operation_name: str, logger: logging.Logger | None = None, **extra_fields) -> Iterator[None]:
    """
    Log start, completion and duration of a unit of work.

    Exceptions are logged with their type and re-raised.

    Usage:
        with log_operation("Transform zones", logger=logger, destination="Zone_Information"):
            ...
    """
    logger = logger or get_logger()
    fields = {"operation": operation_name, **extra_fields}
    started = time.perf_counter()
    logger.info(f"Starting: {operation_name}", extra=fields)
    try:
        yield
    except Exception as e:
        logger.error(
            f"Failed: {operation_name}",
            extra={
                **fields,
                "duration_seconds": round(time.perf_counter() - started, 3),
                "status": "error",
                "error_type": type(e).__name__,
            },
            exc_info=True,
        )
        raise
    logger.info(
        f"Completed: {operation_name}",
        extra={**fields, "duration_seconds": round(time.perf_counter() - started, 3), "status": "success"},
    )
