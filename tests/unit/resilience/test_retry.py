"""
Unit tests for retry logic with exponential backoff.
"""

import pytest

from balance_monitor.errors import BillingAPIError, BillingResponseError, BillingTimeoutError
from balance_monitor.resilience import RetryConfig, exponential_backoff, with_retry

FAST = RetryConfig(max_retries=2, base_delay=0.01, max_delay=0.01, jitter=False)


class FlakyCall:
    def __init__(self, failures: list[Exception], result: str = "ok"):
        self.failures = list(failures)
        self.result = result
        self.calls = 0

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures:
            raise self.failures.pop(0)
        return self.result


class TestRetryConfig:
    def test_defaults(self):
        config = RetryConfig()

        assert config.max_retries == 2
        assert config.base_delay == 1.0
        assert config.jitter is True

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"max_retries": -1},
            {"base_delay": 0},
            {"base_delay": 5.0, "max_delay": 1.0},
            {"exponential_base": 0.5},
            {"jitter_factor": 1.5},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            RetryConfig(**kwargs)


class TestExponentialBackoff:
    def test_config_delay(self):
        assert RetryConfig(base_delay=0.5, max_delay=1.5, jitter=False).delay_for(2) == 1.5

    def test_grows_and_caps(self):
        delays = [exponential_backoff(attempt, base_delay=1.0, max_delay=5.0, jitter=False) for attempt in range(4)]

        assert delays == [1.0, 2.0, 4.0, 5.0]

    def test_jitter_stays_in_band(self):
        for _ in range(20):
            delay = exponential_backoff(1, base_delay=1.0, jitter=True, jitter_factor=0.1)
            assert 1.8 <= delay <= 2.2


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        call = FlakyCall([])

        assert await with_retry(call, config=FAST) == "ok"
        assert call.calls == 1

    @pytest.mark.asyncio
    async def test_retries_timeouts(self):
        call = FlakyCall([BillingTimeoutError("packycode", 15.0)])
        seen = []

        result = await with_retry(call, config=FAST, on_retry=lambda attempt, err: seen.append(attempt))

        assert result == "ok"
        assert call.calls == 2
        assert seen == [1]

    @pytest.mark.asyncio
    async def test_retries_server_errors(self):
        call = FlakyCall([BillingAPIError("bad gateway", {"status": 502}), BillingAPIError("slow", {"status": 429})])

        assert await with_retry(call, config=FAST) == "ok"
        assert call.calls == 3

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self):
        call = FlakyCall([BillingAPIError("forbidden", {"status": 403})])

        with pytest.raises(BillingAPIError):
            await with_retry(call, config=FAST)

        assert call.calls == 1

    @pytest.mark.asyncio
    async def test_bad_payload_not_retried(self):
        call = FlakyCall([BillingResponseError("missing balance")])

        with pytest.raises(BillingResponseError):
            await with_retry(call, config=FAST)

        assert call.calls == 1

    @pytest.mark.asyncio
    async def test_exhaustion_raises_last_error(self):
        errors = [BillingTimeoutError("packycode", float(i + 1)) for i in range(3)]
        call = FlakyCall(errors)

        with pytest.raises(BillingTimeoutError) as exc_info:
            await with_retry(call, config=FAST)

        assert exc_info.value.details["timeout"] == 3.0
        assert call.calls == 3

    @pytest.mark.asyncio
    async def test_failing_callback_is_ignored(self):
        call = FlakyCall([BillingTimeoutError("yescode", 1.0)])

        def explode(attempt, error):
            raise RuntimeError("callback broke")

        assert await with_retry(call, config=FAST, on_retry=explode) == "ok"
