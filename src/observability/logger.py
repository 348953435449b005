"""
Structured logging for the staged append pipeline

Every component logs through ``get_logger(__name__)``. Records are emitted
as single-line JSON objects by python-json-logger so that submission ids,
dataset ids and row counts passed via ``extra=`` stay machine readable.
Set LOG_FORMAT=text for plain lines during local work.
"""
import logging
import os
import sys
import time

from pythonjsonlogger import jsonlogger

SERVICE_NAME = "staged-append-pipeline"

JSON_FORMAT = "%(timestamp)s %(level)s %(logger)s %(message)s"
TEXT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_configured: set[str] = set()


class PipelineJsonFormatter(jsonlogger.JsonFormatter):
    """Stamps each record with timestamp, level, logger, service and call site."""

    def add_fields(self, log_record: dict, record: logging.LogRecord, message_dict: dict) -> None:
        super().add_fields(log_record, record, message_dict)
        if not log_record.get("timestamp"):
            log_record["timestamp"] = self.formatTime(record, self.datefmt)
        log_record.update(
            level=record.levelname,
            logger=record.name,
            service=SERVICE_NAME,
            module=record.module,
            function=record.funcName,
        )


def resolve_level(level: str | None = None) -> int:
    """Map a level name (or the LOG_LEVEL env var) to a logging constant."""
    name = (level or os.getenv("LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _build_handler(format_type: str) -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    if format_type == "json":
        handler.setFormatter(PipelineJsonFormatter(fmt=JSON_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    else:
        handler.setFormatter(logging.Formatter(fmt=TEXT_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logger(
    name: str = SERVICE_NAME,
    level: str | None = None,
    format_type: str | None = None,
) -> logging.Logger:
    """
    Configure ``name`` with a single stdout handler, replacing earlier ones.

    Args:
        name: Logger name
        level: Level name; falls back to LOG_LEVEL, then INFO
        format_type: "json" or "text"; falls back to LOG_FORMAT, then json
    """
    logger = logging.getLogger(name)
    logger.handlers.clear()
    logger.addHandler(_build_handler(format_type or os.getenv("LOG_FORMAT", "json")))
    logger.setLevel(resolve_level(level))
    logger.propagate = False
    _configured.add(name)
    return logger


def get_logger(name: str = SERVICE_NAME) -> logging.Logger:
    """Return ``name``'s logger, configuring it on first use."""
    if name in _configured:
        return logging.getLogger(name)
    return setup_logger(name)


def set_level(level: str) -> None:
    """Apply ``level`` to every logger configured through this module."""
    for name in _configured:
        logging.getLogger(name).setLevel(resolve_level(level))


class log_operation:
    """
    Logs start, completion and duration of a block.

    Usage:
        with log_operation("Promoting submission", logger=logger, submission_id=sid):
            ...

    A failing block is logged at ERROR with its traceback and the
    exception propagates.
    """

    def __init__(self, operation_name: str, logger: logging.Logger | None = None, **context):
        self.operation_name = operation_name
        self.logger = logger or get_logger()
        self.context = {k: None if v is None else str(v) for k, v in context.items()}
        self.start_time: float | None = None
        self.duration: float | None = None

    def _fields(self, **fields) -> dict:
        return {"operation": self.operation_name, **fields, **self.context}

    def __enter__(self):
        self.start_time = time.perf_counter()
        self.logger.info(f"Starting: {self.operation_name}", extra=self._fields())
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.duration = round(time.perf_counter() - self.start_time, 3)
        if exc_type is None:
            self.logger.info(
                f"Completed: {self.operation_name}",
                extra=self._fields(duration_seconds=self.duration, status="success"),
            )
        else:
            self.logger.error(
                f"Failed: {self.operation_name}",
                extra=self._fields(
                    duration_seconds=self.duration,
                    status="error",
                    error_type=exc_type.__name__,
                    error_message=str(exc_val),
                ),
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
