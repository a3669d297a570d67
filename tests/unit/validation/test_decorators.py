"""
Tests for Validation Decorators and tool input schemas.

- Valid input handling
- Invalid input detection
- Structured error responses
- Observability integration
"""

import pytest
from pydantic import ValidationError

from balance_monitor.errors import ErrorCode
from balance_monitor.observability import get_observability
from balance_monitor.validation import (
    ControlSchedulerInput,
    ForecastBalanceInput,
    GetSystemLogsInput,
    ObservationInput,
    RunDailyResetInput,
    validate_input,
)


@validate_input(GetSystemLogsInput)
async def get_logs(limit: int = 50, log_type: str | None = None):
    return {"limit": limit, "log_type": log_type}


class TestValidateInputDecorator:
    """Test @validate_input decorator."""

    @pytest.mark.asyncio
    async def test_defaults_are_filled(self):
        """Validated defaults reach the wrapped coroutine."""
        assert await get_logs() == {"limit": 50, "log_type": None}

    @pytest.mark.asyncio
    async def test_values_are_normalized(self):
        assert await get_logs(limit=10, log_type=" error ") == {"limit": 10, "log_type": "ERROR"}

    @pytest.mark.asyncio
    async def test_constraint_violation(self):
        result = await get_logs(limit=0)

        assert result["success"] is False
        assert result["error_code"] == ErrorCode.INVALID_INPUT
        assert result["message"] == "Input validation failed"
        assert result["details"]["function"] == "get_logs"
        errors = result["details"]["validation_errors"]
        assert errors[0]["field"] == "limit"
        assert errors[0]["type"] == "greater_than_equal"

    @pytest.mark.asyncio
    async def test_multiple_errors(self):
        result = await get_logs(limit=1000, log_type="DEBUG")

        fields = {error["field"] for error in result["details"]["validation_errors"]}
        assert fields == {"limit", "log_type"}

    @pytest.mark.asyncio
    async def test_missing_required_field(self):
        @validate_input(ControlSchedulerInput)
        async def control(action: str, api_secret: str | None = None):
            return action

        result = await control()

        assert result["success"] is False
        assert result["details"]["validation_errors"][0]["type"] == "missing"

    @pytest.mark.asyncio
    async def test_failure_counted(self):
        await get_logs(limit=-5)

        counters = get_observability().get_metrics()["counters"]
        assert counters["validation.failed{error_count=1,function=get_logs}"] == 1

    def test_preserves_metadata(self):
        assert get_logs.__name__ == "get_logs"


class TestToolSchemas:
    @pytest.mark.parametrize("action", ["init", "start", "stop", "restart"])
    def test_scheduler_actions(self, action):
        assert ControlSchedulerInput(action=action).action == action

    def test_unknown_scheduler_action(self):
        with pytest.raises(ValidationError):
            ControlSchedulerInput(action="pause")

    def test_secret_is_optional(self):
        assert RunDailyResetInput().api_secret is None
        assert RunDailyResetInput(api_secret="s").api_secret == "s"

    def test_log_type_values(self):
        assert GetSystemLogsInput(log_type="daily_reset").log_type == "DAILY_RESET"

        with pytest.raises(ValidationError):
            GetSystemLogsInput(log_type="verbose")

    def test_forecast_budget_non_negative(self):
        assert ForecastBalanceInput(observations=[], daily_budget=0).daily_budget == 0.0

        with pytest.raises(ValidationError):
            ForecastBalanceInput(observations=[], daily_budget=-1)

    def test_observation_parsing(self):
        payload = ForecastBalanceInput(
            observations=[{"timestamp": "2026-10-19T10:00:00+08:00", "balance": "24.5"}],
            daily_budget=25,
        )

        observation = payload.observations[0]
        assert observation.balance == 24.5
        assert observation.pay_as_you_go_balance == 0.0
        assert observation.hour_of_day is None
        assert observation.timestamp.utcoffset().total_seconds() == 8 * 3600

    @pytest.mark.parametrize("field,value", [("balance", -1.0), ("hour_of_day", 24.0)])
    def test_observation_bounds(self, field, value):
        values = {"timestamp": "2026-10-19T10:00:00", "balance": 1.0, field: value}

        with pytest.raises(ValidationError):
            ObservationInput(**values)
