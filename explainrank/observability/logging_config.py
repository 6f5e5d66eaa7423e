"""
ExplainRank - Logging Configuration
====================================

Log records carry the context of the work that produced them: the HTTP
request, a named operation such as a batch recompute, the acting user,
and the explanation being scored or engaged with. Context is bound with
``OperationContext`` and read back by both formatters, so services log
plain messages instead of repeating ids in every call.

Usage:
    from explainrank.observability import setup_logging, get_logger, OperationContext

    setup_logging(level="INFO", json_format=True)
    logger = get_logger(__name__)

    with OperationContext(request_id="req-123", explanation_id=42):
        logger.info("Score recomputed")
"""

import contextvars
import json
import logging
import sys
import time
import traceback
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any
from uuid import uuid4

_request_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("request_id", default=None)
_operation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("operation_id", default=None)
_user_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("user_id", default=None)
_explanation_id: contextvars.ContextVar[int | None] = contextvars.ContextVar("explanation_id", default=None)
_extra_context: contextvars.ContextVar[dict[str, Any] | None] = contextvars.ContextVar("extra_context", default=None)

# Order in which ids appear in log output
_CONTEXT_VARS: dict[str, contextvars.ContextVar] = {
    "request_id": _request_id,
    "operation_id": _operation_id,
    "user_id": _user_id,
    "explanation_id": _explanation_id,
}

_TEXT_LABELS = {"user_id": "user:", "explanation_id": "explanation:"}


def get_request_id() -> str | None:
    return _request_id.get()


def set_request_id(request_id: str | None) -> contextvars.Token:
    return _request_id.set(request_id)


def get_operation_id() -> str | None:
    return _operation_id.get()


def set_operation_id(operation_id: str | None) -> contextvars.Token:
    return _operation_id.set(operation_id)


def get_user_id() -> str | None:
    return _user_id.get()


def set_user_id(user_id: str | None) -> contextvars.Token:
    return _user_id.set(user_id)


def get_explanation_id() -> int | None:
    return _explanation_id.get()


def generate_request_id() -> str:
    return f"req-{uuid4().hex[:12]}"


def generate_operation_id() -> str:
    return f"op-{uuid4().hex[:12]}"


def current_context() -> dict[str, Any]:
    """Bound context ids (unset ones omitted) plus any extra context under ``context``."""
    context = {name: var.get() for name, var in _CONTEXT_VARS.items() if var.get() is not None}
    if extra := _extra_context.get():
        context["context"] = dict(extra)
    return context


class OperationContext:
    """
    Bind log context for the duration of a block.

    Only the ids that are given are bound; outer values stay visible for
    the rest. Keyword arguments beyond the known ids are merged into the
    extra context.
    """

    def __init__(
        self,
        request_id: str | None = None,
        operation_id: str | None = None,
        user_id: str | None = None,
        explanation_id: int | None = None,
        auto_generate_request: bool = False,
        auto_generate_operation: bool = False,
        **extra_context,
    ):
        if request_id is None and auto_generate_request and get_request_id() is None:
            request_id = generate_request_id()
        if operation_id is None and auto_generate_operation:
            operation_id = generate_operation_id()

        self.request_id = request_id
        self.operation_id = operation_id
        self.user_id = user_id
        self.explanation_id = explanation_id
        self.extra_context = extra_context
        self._tokens: list[contextvars.Token] = []

    def __enter__(self):
        bindings = {
            "request_id": self.request_id,
            "operation_id": self.operation_id,
            "user_id": self.user_id,
            "explanation_id": self.explanation_id,
        }
        for name, value in bindings.items():
            if value is not None:
                self._tokens.append(_CONTEXT_VARS[name].set(value))
        if self.extra_context:
            merged = {**(_extra_context.get() or {}), **self.extra_context}
            self._tokens.append(_extra_context.set(merged))
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        while self._tokens:
            token = self._tokens.pop()
            token.var.reset(token)
        return False


class StructuredFormatter(logging.Formatter):
    """One JSON object per record."""

    def __init__(self, include_timestamp: bool = True, include_location: bool = True,
                 include_context: bool = True):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_location = include_location
        self.include_context = include_context

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.include_timestamp:
            payload["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat()
        if self.include_location:
            payload["location"] = {"file": record.filename, "line": record.lineno, "function": record.funcName}
        if self.include_context:
            payload.update(current_context())
        if record.exc_info and record.exc_info[0] is not None:
            exc_type, exc_value, exc_tb = record.exc_info
            payload["exception"] = {
                "type": exc_type.__name__,
                "message": str(exc_value),
                "traceback": traceback.format_exception(exc_type, exc_value, exc_tb),
            }
        if hasattr(record, "extra_data"):
            payload["data"] = record.extra_data
        return json.dumps(payload, default=str)


class ContextFormatter(logging.Formatter):
    """Plain-text lines prefixed with the bound ids, e.g. ``[req-1] [explanation:42]``."""

    DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(context)s%(name)s - %(message)s"

    def __init__(self, fmt: str | None = None, datefmt: str | None = None):
        super().__init__(fmt=fmt or self.DEFAULT_FORMAT, datefmt=datefmt or "%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        context = current_context()
        context.pop("context", None)
        prefix = " ".join(f"[{_TEXT_LABELS.get(name, '')}{value}]" for name, value in context.items())
        record.context = f"{prefix} " if prefix else ""
        return super().format(record)


def setup_logging(level: str = "INFO", json_format: bool = False, log_to_console: bool = True,
                  log_to_file: bool = False, log_file_path: str | None = None,
                  max_file_size_mb: int = 10, backup_count: int = 5,
                  include_location: bool = True) -> None:
    """Configure the root logger for the service or CLI."""
    root = logging.getLogger()
    root.setLevel(level.upper())
    root.handlers.clear()

    formatter = StructuredFormatter(include_location=include_location) if json_format else ContextFormatter()

    handlers: list[logging.Handler] = []
    if log_to_console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_to_file:
        log_path = Path(log_file_path or "./logs/explainrank.log")
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(log_path, maxBytes=max_file_size_mb * 1024 * 1024, backupCount=backup_count)
        )
    for handler in handlers:
        handler.setFormatter(formatter)
        root.addHandler(handler)

    # SQL echo is controlled by the engine, not the log level
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class OperationLogger:
    """
    Log start, completion and failure of a named operation.

    Binds a fresh operation id (and the current request id, or a new one)
    for the duration of the block. Failures are logged with their
    traceback and re-raised.
    """

    def __init__(self, logger: logging.Logger, operation_name: str, request_id: str | None = None,
                 operation_id: str | None = None, user_id: str | None = None, **context_data):
        self.logger = logger
        self.operation_name = operation_name
        self.request_id = request_id or get_request_id() or generate_request_id()
        self.operation_id = operation_id or generate_operation_id()
        self.user_id = user_id
        self.context_data = context_data
        self._started: float | None = None
        self._finished: float | None = None
        self._context = OperationContext(
            request_id=self.request_id, operation_id=self.operation_id, user_id=self.user_id, **context_data
        )

    def __enter__(self):
        self._started = time.perf_counter()
        self._context.__enter__()
        self.logger.info(
            f"Starting {self.operation_name}",
            extra={"extra_data": {"event": "operation_start", "operation": self.operation_name}},
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._finished = time.perf_counter()
        data = {"operation": self.operation_name, "duration_ms": self.duration_ms}
        try:
            if exc_type is None:
                self.logger.info(
                    f"Finished {self.operation_name} in {self.duration_ms}ms",
                    extra={"extra_data": {"event": "operation_success", **data}},
                )
            else:
                self.logger.error(
                    f"{self.operation_name} failed after {self.duration_ms}ms: {exc_val}",
                    exc_info=(exc_type, exc_val, exc_tb),
                    extra={"extra_data": {"event": "operation_failed", **data}},
                )
        finally:
            self._context.__exit__(exc_type, exc_val, exc_tb)
        return False

    @property
    def duration_ms(self) -> int:
        if self._started is None:
            return 0
        end = self._finished if self._finished is not None else time.perf_counter()
        return int((end - self._started) * 1000)


def log_exception(logger: logging.Logger, message: str, exception: BaseException | None = None, **data) -> None:
    """
    Log ``message`` at ERROR with the exception's traceback.

    Without ``exception`` the one currently being handled is used. Keyword
    arguments are attached as structured data.
    """
    exc_info = (type(exception), exception, exception.__traceback__) if exception is not None else True
    logger.error(message, exc_info=exc_info, extra={"extra_data": data} if data else None)
