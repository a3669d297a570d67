"""
Balance Monitor - Observability Monitoring

Structured JSON logging, trace-id propagation and in-process counters.
Counters live in memory and are reported through the check_status tool;
the snapshot database is reserved for usage data.
"""

import contextvars
import json
import logging
import threading
import time
from collections import defaultdict
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

# Trace ID context variable, one per tool call or scheduled job run
_trace_id_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("trace_id", default=None)

# Job name context variable (set by the scheduler)
_job_ctx: contextvars.ContextVar[str | None] = contextvars.ContextVar("job", default=None)

ROOT_LOGGER = "balance_monitor"

_RESERVED_ATTRS = frozenset(
    (
        "args",
        "msg",
        "levelname",
        "levelno",
        "pathname",
        "filename",
        "module",
        "exc_info",
        "exc_text",
        "stack_info",
        "lineno",
        "funcName",
        "created",
        "msecs",
        "relativeCreated",
        "thread",
        "threadName",
        "processName",
        "process",
        "taskName",
        "name",
        "message",
    )
)


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(UTC).isoformat().replace("+00:00", "Z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        trace_id = _trace_id_ctx.get()
        if trace_id:
            log_data["trace_id"] = trace_id

        job = _job_ctx.get()
        if job:
            log_data["job"] = job

        for key, value in record.__dict__.items():
            if key not in log_data and not key.startswith("_") and key not in _RESERVED_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def configure_logging(level: str = "INFO", stream: Any = None) -> logging.Logger:
    """
    Route the package logger through a single JSON handler.

    Idempotent: existing handlers on the package logger are replaced.
    Stderr by default so stdio MCP transport stays clean.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()

    handler = logging.StreamHandler(stream)
    handler.setFormatter(JSONFormatter())
    logger.addHandler(handler)
    logger.setLevel(level.upper())
    logger.propagate = False

    return logger


class ObservabilityAdapter:
    """
    Simple observability adapter.

    Provides:
    - Counters and last-value gauges (in memory, thread-safe)
    - Span timing with trace IDs
    - Structured events
    """

    def __init__(self, enable_metrics: bool = True, enable_tracing: bool = True):
        self.enable_metrics = enable_metrics
        self.enable_tracing = enable_tracing
        self.logger = logging.getLogger(ROOT_LOGGER)

        self._lock = threading.Lock()
        self._counters: dict[str, float] = defaultdict(float)
        self._gauges: dict[str, float] = {}
        self._timings: dict[str, list[float]] = defaultdict(list)

    def increment(self, metric: str, value: float = 1.0, tags: dict[str, str] | None = None) -> None:
        """
        Increment a counter metric.

        Args:
            metric: Metric name (e.g., "collect.success")
            value: Value to increment by
            tags: Optional tags; folded into the key as name{k=v,...}
        """
        if not self.enable_metrics:
            return
        with self._lock:
            self._counters[self._key(metric, tags)] += value

    def gauge(self, metric: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Set a gauge metric to its latest value."""
        if not self.enable_metrics:
            return
        with self._lock:
            self._gauges[self._key(metric, tags)] = value

    def histogram(self, metric: str, value: float, tags: dict[str, str] | None = None) -> None:
        """Record a timing/size sample."""
        if not self.enable_metrics:
            return
        with self._lock:
            samples = self._timings[self._key(metric, tags)]
            samples.append(value)
            # Bounded window
            if len(samples) > 500:
                del samples[: len(samples) - 500]

    def event(self, name: str, payload: dict[str, Any]) -> None:
        """
        Record an event.

        Args:
            name: Event name
            payload: Event data
        """
        self.logger.info(
            f"Event: {name}",
            extra={
                "event_name": name,
                "event_payload": payload,
            },
        )

    @contextmanager
    def trace(self, span_name: str, tags: dict[str, str] | None = None) -> Generator[None, None, None]:
        """
        Context manager for tracing a span.

        Example:
            with observability.trace("collect"):
                await collector.collect()
        """
        if not self.enable_tracing:
            yield
            return

        start_time = time.perf_counter()
        tags = tags or {}
        if self.get_trace_id() is None:
            self.generate_trace_id()

        self.logger.debug(f"Span started: {span_name}", extra={"span_name": span_name, "tags": tags})

        try:
            yield
        except Exception as e:
            self.logger.error(
                f"Span error: {span_name}",
                extra={"span_name": span_name, "error": str(e), "tags": tags},
            )
            raise
        finally:
            duration_ms = (time.perf_counter() - start_time) * 1000
            self.histogram("span.duration", duration_ms, tags={"span_name": span_name, **tags})
            self.logger.debug(
                f"Span completed: {span_name}",
                extra={"span_name": span_name, "duration_ms": round(duration_ms, 2), "tags": tags},
            )

    def get_trace_id(self) -> str | None:
        """Get current trace ID from context."""
        return _trace_id_ctx.get()

    def set_trace_id(self, trace_id: str) -> None:
        """Set trace ID in context."""
        _trace_id_ctx.set(trace_id)

    def generate_trace_id(self) -> str:
        """Generate a new trace ID and set it in context."""
        trace_id = str(uuid4())
        self.set_trace_id(trace_id)
        return trace_id

    def set_job(self, job: str | None) -> None:
        _job_ctx.set(job)

    def get_metrics(self) -> dict[str, Any]:
        """Snapshot of counters, gauges and timing summaries."""
        with self._lock:
            timings = {
                key: {
                    "count": len(samples),
                    "avg_ms": round(sum(samples) / len(samples), 2),
                    "max_ms": round(max(samples), 2),
                }
                for key, samples in self._timings.items()
                if samples
            }
            return {
                "counters": dict(self._counters),
                "gauges": dict(self._gauges),
                "timings": timings,
            }

    def clear_metrics(self) -> None:
        """Reset all metrics (testing/reset)."""
        with self._lock:
            self._counters.clear()
            self._gauges.clear()
            self._timings.clear()

    @staticmethod
    def _key(metric: str, tags: dict[str, str] | None) -> str:
        if not tags:
            return metric
        rendered = ",".join(f"{k}={v}" for k, v in sorted(tags.items()))
        return f"{metric}{{{rendered}}}"


# Global observability adapter instance (singleton)
_observability_adapter: ObservabilityAdapter | None = None


def get_observability() -> ObservabilityAdapter:
    """
    Get the global observability adapter instance.

    Returns:
        Global ObservabilityAdapter instance (created with defaults on first use)
    """
    global _observability_adapter

    if _observability_adapter is None:
        _observability_adapter = ObservabilityAdapter()

    return _observability_adapter


def initialize_observability(
    enable_metrics: bool = True,
    enable_tracing: bool = True,
    log_level: str | None = None,
) -> ObservabilityAdapter:
    """
    Initialize the global observability adapter.

    Args:
        enable_metrics: Enable counters/gauges
        enable_tracing: Enable span timing
        log_level: When given, also (re)configure JSON logging

    Returns:
        Initialized ObservabilityAdapter instance
    """
    global _observability_adapter

    if log_level is not None:
        configure_logging(log_level)

    _observability_adapter = ObservabilityAdapter(
        enable_metrics=enable_metrics,
        enable_tracing=enable_tracing,
    )

    return _observability_adapter
