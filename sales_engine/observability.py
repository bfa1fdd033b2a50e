"""
Logging, correlation ids and timing for report runs.

Each log line carries the correlation id of the HTTP request or WebSocket
message being served, so a pushed sale can be followed from ingestion
through the event bus to the broadcast that refreshes dashboards. Report
computations are timed into ``metrics``, which also counts exports per
report kind and format.

Usage:
    from sales_engine.observability import setup_logging, get_logger, correlation_context

    setup_logging(level="DEBUG", json_format=True)
    logger = get_logger(__name__)

    with correlation_context(request_id):
        logger.info("Profit computed", extra={"products": 12})
"""
import functools
import inspect
import json
import logging
import time
import uuid
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

_correlation_id: ContextVar[Optional[str]] = ContextVar("correlation_id", default=None)

# LogRecord attributes that are not ``extra`` fields
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {
    "message", "asctime",
}

# Third-party loggers kept at WARNING unless include_libs is set
QUIET_LOGGERS = ("uvicorn.access", "httpx", "watchfiles", "multipart")


# ═══════════════════════════════════════════════════════════════════════════════
# CORRELATION
# ═══════════════════════════════════════════════════════════════════════════════

def get_correlation_id() -> Optional[str]:
    return _correlation_id.get()


def generate_correlation_id() -> str:
    """Short random id for a request or socket message."""
    return uuid.uuid4().hex[:8]


class correlation_context:
    """Scope a correlation id to a block, restoring the previous one on exit."""

    def __init__(self, correlation_id: Optional[str] = None):
        self.correlation_id = correlation_id or generate_correlation_id()
        self._token = None

    def __enter__(self) -> str:
        self._token = _correlation_id.set(self.correlation_id)
        return self.correlation_id

    def __exit__(self, *exc_info) -> None:
        _correlation_id.reset(self._token)


# ═══════════════════════════════════════════════════════════════════════════════
# FORMATTERS
# ═══════════════════════════════════════════════════════════════════════════════

def _log_fields(record: logging.LogRecord) -> Dict[str, Any]:
    """Common fields of a log line plus the record's ``extra`` values."""
    fields: Dict[str, Any] = {
        "timestamp": datetime.fromtimestamp(record.created, timezone.utc),
        "level": record.levelname,
        "logger": record.name,
        "message": record.getMessage(),
    }
    correlation_id = get_correlation_id()
    if correlation_id:
        fields["correlation_id"] = correlation_id
    fields["extra"] = {
        key: value
        for key, value in vars(record).items()
        if key not in _RECORD_ATTRS and not key.startswith("_")
    }
    return fields


class StructuredFormatter(logging.Formatter):
    """One JSON object per line; ``extra`` values become top-level keys."""

    def format(self, record: logging.LogRecord) -> str:
        fields = _log_fields(record)
        extra = fields.pop("extra")
        fields["timestamp"] = (
            fields["timestamp"].isoformat(timespec="milliseconds").replace("+00:00", "Z")
        )
        fields.update(extra)
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)
        return json.dumps(fields, default=str)


class HumanReadableFormatter(logging.Formatter):
    """
    Console format.

    ``TIMESTAMP - LEVEL - LOGGER [CORRELATION_ID] - MESSAGE | extras``
    """

    def format(self, record: logging.LogRecord) -> str:
        fields = _log_fields(record)
        correlation = f" [{fields['correlation_id']}]" if "correlation_id" in fields else ""
        line = (
            f"{fields['timestamp']:%Y-%m-%d %H:%M:%S} - {fields['level']:8} - "
            f"{fields['logger']}{correlation} - {fields['message']}"
        )
        if fields["extra"]:
            line += f" | {fields['extra']}"
        if record.exc_info:
            line += f"\n{self.formatException(record.exc_info)}"
        return line


def setup_logging(
    level: str = "INFO",
    json_format: bool = False,
    include_libs: bool = False
) -> None:
    """
    Install a single stream handler on the root logger.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_format: JSON lines instead of the console format
        include_libs: Keep third-party request logs at the same level
    """
    handler = logging.StreamHandler()
    handler.setFormatter(StructuredFormatter() if json_format else HumanReadableFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, level.upper()))

    if not include_libs:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


# ═══════════════════════════════════════════════════════════════════════════════
# TIMING
# ═══════════════════════════════════════════════════════════════════════════════

class Timer:
    """
    Time a block and record it under ``name`` in ``metrics``.

    Usage:
        with Timer("export_sales_csv", logger) as t:
            content = to_csv(rows, header)
        logger.info(f"CSV took {t.elapsed_ms}ms")

    The duration is logged at DEBUG, or WARNING past ``warn_threshold_ms``.
    """

    def __init__(
        self,
        name: str,
        logger: Optional[logging.Logger] = None,
        warn_threshold_ms: float = 1000,
    ):
        self.name = name
        self.logger = logger
        self.warn_threshold_ms = warn_threshold_ms
        self.elapsed_ms: float = 0
        self._start: float = 0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
        metrics.record_timing(self.name, self.elapsed_ms)

        if self.logger:
            level = logging.WARNING if self.elapsed_ms > self.warn_threshold_ms else logging.DEBUG
            outcome = "failed" if exc_type else "completed"
            self.logger.log(
                level,
                f"{self.name} {outcome}",
                extra={"duration_ms": round(self.elapsed_ms, 2)}
            )


def timed(name: Optional[str] = None, warn_threshold_ms: float = 1000):
    """Run each call of the decorated function inside a ``Timer``."""
    def decorator(func: Callable) -> Callable:
        operation = name or func.__name__
        func_logger = get_logger(func.__module__)

        if inspect.iscoroutinefunction(func):
            @functools.wraps(func)
            async def async_wrapper(*args, **kwargs):
                with Timer(operation, func_logger, warn_threshold_ms):
                    return await func(*args, **kwargs)
            return async_wrapper

        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            with Timer(operation, func_logger, warn_threshold_ms):
                return func(*args, **kwargs)
        return wrapper

    return decorator


# ═══════════════════════════════════════════════════════════════════════════════
# METRICS
# ═══════════════════════════════════════════════════════════════════════════════

def _summarize(samples: List[float]) -> Dict[str, Any]:
    ordered = sorted(samples)
    return {
        "count": len(ordered),
        "avg_ms": round(sum(ordered) / len(ordered), 2),
        "max_ms": round(ordered[-1], 2),
        "p50_ms": round(ordered[len(ordered) // 2], 2),
        "p95_ms": round(ordered[min(len(ordered) - 1, int(len(ordered) * 0.95))], 2),
    }


class MetricsCollector:
    """
    In-memory counters served by ``GET /api/metrics``.

    - requests and errors per endpoint / error type
    - timing samples per operation (bounded)
    - exports per ``kind.format`` with row totals and empty runs
    """

    def __init__(self, max_samples: int = 100):
        self._max_samples = max_samples
        self._requests: Dict[str, int] = {}
        self._errors: Dict[str, int] = {}
        self._timings: Dict[str, List[float]] = {}
        self._reports: Dict[str, Dict[str, int]] = {}

    def record_request(self, endpoint: str) -> None:
        self._requests[endpoint] = self._requests.get(endpoint, 0) + 1

    def record_error(self, error_type: str) -> None:
        self._errors[error_type] = self._errors.get(error_type, 0) + 1

    def record_timing(self, operation: str, duration_ms: float) -> None:
        samples = self._timings.setdefault(operation, [])
        samples.append(duration_ms)
        del samples[:-self._max_samples]

    def record_report(self, kind: str, fmt: str, row_count: int) -> None:
        entry = self._reports.setdefault(f"{kind}.{fmt}", {"exports": 0, "rows": 0, "empty": 0})
        entry["exports"] += 1
        entry["rows"] += row_count
        if not row_count:
            entry["empty"] += 1

    def get_stats(self) -> Dict[str, Any]:
        return {
            "requests": dict(self._requests),
            "errors": dict(self._errors),
            "timing": {
                operation: _summarize(samples)
                for operation, samples in self._timings.items()
                if samples
            },
            "reports": {key: dict(entry) for key, entry in self._reports.items()},
        }

    def reset(self) -> None:
        self._requests.clear()
        self._errors.clear()
        self._timings.clear()
        self._reports.clear()


metrics = MetricsCollector()
