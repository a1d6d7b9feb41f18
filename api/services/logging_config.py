"""
Structured Logging Configuration with Run IDs

Every backtest, comparison or sweep executes under a run id so that the log
lines of one run can be picked out of a busy stream.
Features:
- Run ID tracking in a ContextVar (set per HTTP request or per run)
- JSON format: {timestamp, run_id, component, level, message, extra}
- Colourised console format for development
- @log_method decorator for execution time tracking
- Request logging with method, path, status_code, response_time
"""
import functools
import json
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, TypeVar
from contextvars import ContextVar

# Context variable for the run ID - thread-safe and async-safe
_run_id: ContextVar[Optional[str]] = ContextVar("run_id", default=None)

RUN_ID_HEADER = b"x-run-id"

F = TypeVar("F", bound=Callable[..., Any])

_STANDARD_ATTRS = {
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "pathname", "process", "processName", "relativeCreated",
    "stack_info", "exc_info", "exc_text", "thread", "threadName",
    "taskName", "message",
}


def get_run_id() -> str:
    """Current run ID, created on first use in a context."""
    run_id = _run_id.get()
    if run_id is None:
        run_id = uuid.uuid4().hex[:12]
        _run_id.set(run_id)
    return run_id


def set_run_id(run_id: Optional[str] = None) -> str:
    """Set the run ID for the current context, generating one if not given."""
    run_id = run_id or uuid.uuid4().hex[:12]
    _run_id.set(run_id)
    return run_id


def clear_run_id() -> None:
    _run_id.set(None)


def _component(record: logging.LogRecord) -> str:
    return record.name.split(".")[-1]


class StructuredFormatter(logging.Formatter):
    """
    Formatter that outputs one JSON object per line.

    Format:
    {
        "timestamp": "2026-01-28T14:30:00.123456+00:00",
        "run_id": "3f2a9c1b7e40",
        "component": "engine",
        "level": "INFO",
        "message": "mean-reversion: 12 trades ...",
        "extra": {...}
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "run_id": get_run_id(),
            "component": _component(record),
            "level": record.levelname,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        extra = {}
        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS or key.startswith("_"):
                continue
            try:
                json.dumps(value)
                extra[key] = value
            except (TypeError, ValueError):
                extra[key] = str(value)

        if extra:
            log_entry["extra"] = extra

        return json.dumps(log_entry)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter: [run_id] LEVEL component - message"""

    COLORS = {
        "DEBUG": "\033[36m",     # Cyan
        "INFO": "\033[32m",      # Green
        "WARNING": "\033[33m",   # Yellow
        "ERROR": "\033[31m",     # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_color: bool = True):
        super().__init__()
        self.use_color = use_color

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "") if self.use_color else ""
        reset = self.RESET if color else ""

        formatted = (
            f"[{get_run_id()}] "
            f"{color}{record.levelname:8}{reset} "
            f"{_component(record):16} - "
            f"{record.getMessage()}"
        )

        if record.exc_info:
            formatted += "\n" + self.formatException(record.exc_info)

        return formatted


def _make_handler(use_json: bool, level: int) -> logging.Handler:
    handler = logging.StreamHandler()
    handler.setLevel(level)
    handler.setFormatter(StructuredFormatter() if use_json else ConsoleFormatter())
    return handler


def get_logger(name: str, use_json: bool = False) -> logging.Logger:
    """
    Get a logger with its own handler that does not propagate to the root.

    Args:
        name: Logger name (typically __name__ of the module)
        use_json: If True, use JSON structured output; otherwise console format
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        logger.addHandler(_make_handler(use_json, logging.DEBUG))
        logger.propagate = False

    return logger


def setup_logging(use_json: bool = False, level: int = logging.INFO) -> None:
    """
    Configure the root logger for the application, replacing existing handlers.

    Args:
        use_json: If True, use JSON structured output
        level: Root logging level
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(_make_handler(use_json, level))


def log_request(
    logger: logging.Logger,
    method: str,
    path: str,
    status_code: Optional[int] = None,
    response_time_ms: Optional[float] = None,
) -> None:
    """Log a handled HTTP request; 4xx/5xx are logged at WARNING/ERROR."""
    log_data = {"http_method": method, "http_path": path}
    if status_code is not None:
        log_data["status_code"] = status_code
    if response_time_ms is not None:
        log_data["response_time_ms"] = round(response_time_ms, 2)

    if status_code is not None and status_code >= 500:
        level = logging.ERROR
    elif status_code is not None and status_code >= 400:
        level = logging.WARNING
    else:
        level = logging.INFO

    message = f"{method} {path}"
    if status_code is not None:
        message += f" -> {status_code}"
    if response_time_ms is not None:
        message += f" ({response_time_ms:.0f}ms)"

    logger.log(level, message, extra=log_data)


def log_method(
    logger: Optional[logging.Logger] = None,
    level: int = logging.DEBUG,
) -> Callable[[F], F]:
    """
    Decorator to log method entry, exit, and execution time.

    Args:
        logger: Logger to use (if None, uses the function's module logger)
        level: Log level for the ENTER/EXIT messages

    Usage:
        @log_method(logger=logger)
        def run(self, bars):
            ...
    """
    def decorator(func: F) -> F:
        _logger = logger or logging.getLogger(func.__module__)
        func_name = func.__qualname__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            _logger.log(level, f"ENTER: {func_name}", extra={"function": func_name})
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                execution_time_ms = (time.perf_counter() - start_time) * 1000
                _logger.error(
                    f"ERROR: {func_name} ({execution_time_ms:.2f}ms) - {type(e).__name__}: {e}",
                    extra={
                        "function": func_name,
                        "execution_time_ms": round(execution_time_ms, 2),
                        "error_type": type(e).__name__,
                    },
                )
                raise

            execution_time_ms = (time.perf_counter() - start_time) * 1000
            _logger.log(
                level,
                f"EXIT: {func_name} ({execution_time_ms:.2f}ms)",
                extra={"function": func_name, "execution_time_ms": round(execution_time_ms, 2)},
            )
            return result

        return wrapper  # type: ignore

    return decorator


class RunIdMiddleware:
    """
    ASGI middleware that gives each HTTP request its own run ID.

    Honours an incoming X-Run-ID header, echoes the ID back on the response
    and logs the request with its status and timing.

    Usage in FastAPI:
        from services.logging_config import RunIdMiddleware
        app.add_middleware(RunIdMiddleware)
    """

    def __init__(self, app: Any):
        self.app = app
        self.logger = logging.getLogger("quantflow.http")

    async def __call__(self, scope: dict, receive: Callable, send: Callable) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict(scope.get("headers", []))
        set_run_id(headers.get(RUN_ID_HEADER, b"").decode() or None)
        start_time = time.perf_counter()
        status = {}

        async def send_with_run_id(message: dict) -> None:
            if message["type"] == "http.response.start":
                status["code"] = message.get("status")
                response_headers = list(message.get("headers", []))
                response_headers.append((RUN_ID_HEADER, get_run_id().encode()))
                message["headers"] = response_headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_run_id)
        finally:
            log_request(
                self.logger,
                scope.get("method", ""),
                scope.get("path", ""),
                status.get("code"),
                (time.perf_counter() - start_time) * 1000,
            )
            clear_run_id()
