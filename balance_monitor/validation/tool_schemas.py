"""
Balance Monitor - Tool Input Validation Schemas

Pydantic models for validating MCP tool inputs.
"""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator

from ..storage import LogType


class CheckStatusInput(BaseModel):
    """Input validation for check_status tool."""

    include_details: bool = Field(default=False, description="Include counters and timings")


class NoParametersInput(BaseModel):
    """Input validation for tools that take no parameters."""

    pass


class AuthorizedInput(BaseModel):
    """Base for state-changing tools; the secret is checked by the server."""

    api_secret: str | None = Field(default=None, description="Shared secret (required when API_SECRET is set)")


class RunDailyResetInput(AuthorizedInput):
    """Input validation for run_daily_reset tool."""

    pass


class ControlSchedulerInput(AuthorizedInput):
    """Input validation for control_scheduler tool."""

    action: Literal["init", "start", "stop", "restart"] = Field(..., description="Scheduler action")


class GetSystemLogsInput(BaseModel):
    """Input validation for get_system_logs tool."""

    limit: int = Field(default=50, ge=1, le=500, description="Maximum number of log entries (1-500)")
    log_type: str | None = Field(default=None, description="Filter by SUCCESS, ERROR, DAILY_RESET or NOTIFICATION")

    @field_validator("log_type")
    @classmethod
    def validate_log_type(cls, v: str | None) -> str | None:
        if v is None:
            return v
        upper = v.strip().upper()
        valid = [t.value for t in LogType]
        if upper not in valid:
            raise ValueError(f"log_type must be one of {', '.join(valid)}")
        return upper


class ObservationInput(BaseModel):
    """One ad-hoc balance sample."""

    timestamp: datetime = Field(..., description="Sample time (ISO 8601)")
    balance: float = Field(..., ge=0.0, description="Subscription balance")
    pay_as_you_go_balance: float = Field(default=0.0, ge=0.0, description="Secondary balance")
    hour_of_day: float | None = Field(
        default=None,
        ge=0.0,
        lt=24.0,
        description="Local hour with fractional minutes (derived from timestamp when omitted)",
    )


class ForecastBalanceInput(BaseModel):
    """Input validation for forecast_balance tool."""

    observations: list[ObservationInput] = Field(
        default_factory=list,
        max_length=2000,
        description="Balance samples for a single day",
    )
    daily_budget: float = Field(..., ge=0.0, description="Daily quota the balance started from")
