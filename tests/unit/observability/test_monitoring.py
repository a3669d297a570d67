"""
Tests for the observability adapter and JSON logging.
"""

import io
import json
import logging
import sys

import pytest

from balance_monitor.observability import (
    JSONFormatter,
    ObservabilityAdapter,
    configure_logging,
    get_observability,
    initialize_observability,
)


def _record(message: str = "hello", **extra) -> logging.LogRecord:
    record = logging.LogRecord("balance_monitor.test", logging.INFO, __file__, 10, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJSONFormatter:
    def test_basic_fields(self):
        data = json.loads(JSONFormatter().format(_record("poll done", provider="packycode")))

        assert data["level"] == "INFO"
        assert data["logger"] == "balance_monitor.test"
        assert data["message"] == "poll done"
        assert data["provider"] == "packycode"
        assert data["timestamp"].endswith("Z")

    def test_context_fields(self):
        obs = ObservabilityAdapter()
        trace_id = obs.generate_trace_id()
        obs.set_job("daily_reset")
        try:
            data = json.loads(JSONFormatter().format(_record()))
        finally:
            obs.set_job(None)

        assert data["trace_id"] == trace_id
        assert data["job"] == "daily_reset"

    def test_exception_rendered(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = _record()
            record.exc_info = sys.exc_info()

        data = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in data["exception"]


class TestConfigureLogging:
    @pytest.fixture(autouse=True)
    def restore_logger(self):
        logger = logging.getLogger("balance_monitor")
        saved = (list(logger.handlers), logger.level, logger.propagate)
        yield
        logger.handlers[:] = saved[0]
        logger.setLevel(saved[1])
        logger.propagate = saved[2]

    def test_single_json_handler(self):
        stream = io.StringIO()
        logger = configure_logging("warning", stream=stream)
        configure_logging("warning", stream=stream)

        logging.getLogger("balance_monitor.collector").warning("low balance", extra={"balance": 1.5})

        assert len(logger.handlers) == 1
        assert logger.level == logging.WARNING
        line = json.loads(stream.getvalue().strip())
        assert line["message"] == "low balance"
        assert line["balance"] == 1.5


class TestMetrics:
    def test_counters_with_tags(self):
        obs = ObservabilityAdapter()

        obs.increment("collect.success", tags={"provider": "packycode"})
        obs.increment("collect.success", tags={"provider": "packycode"})
        obs.increment("collect.failure")

        counters = obs.get_metrics()["counters"]
        assert counters == {"collect.success{provider=packycode}": 2, "collect.failure": 1}

    def test_tag_order_is_stable(self):
        assert ObservabilityAdapter._key("m", {"b": "2", "a": "1"}) == "m{a=1,b=2}"

    def test_gauge_keeps_last_value(self):
        obs = ObservabilityAdapter()

        obs.gauge("balance.current", 20.0)
        obs.gauge("balance.current", 17.5)

        assert obs.get_metrics()["gauges"] == {"balance.current": 17.5}

    def test_disabled_metrics(self):
        obs = ObservabilityAdapter(enable_metrics=False)

        obs.increment("collect.success")
        obs.gauge("balance.current", 1.0)

        assert obs.get_metrics() == {"counters": {}, "gauges": {}, "timings": {}}

    def test_clear(self):
        obs = ObservabilityAdapter()
        obs.increment("x")

        obs.clear_metrics()

        assert obs.get_metrics()["counters"] == {}


class TestTrace:
    def test_records_duration(self):
        obs = ObservabilityAdapter()

        with obs.trace("collect"):
            pass

        timings = obs.get_metrics()["timings"]
        assert timings["span.duration{span_name=collect}"]["count"] == 1

    def test_reraises_errors(self):
        obs = ObservabilityAdapter()

        with pytest.raises(RuntimeError):
            with obs.trace("daily_reset"):
                raise RuntimeError("db locked")

        assert "span.duration{span_name=daily_reset}" in obs.get_metrics()["timings"]

    def test_tracing_disabled(self):
        obs = ObservabilityAdapter(enable_tracing=False)

        with obs.trace("collect"):
            pass

        assert obs.get_metrics()["timings"] == {}


class TestGlobalAdapter:
    def test_initialize_replaces_singleton(self):
        before = get_observability()

        after = initialize_observability(enable_metrics=False)

        try:
            assert after is not before
            assert get_observability() is after
        finally:
            initialize_observability()
