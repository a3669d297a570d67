"""
Balance Monitor - Input Validation Module

Pydantic-based validation for MCP tool inputs.
"""

from .decorators import validate_input
from .tool_schemas import (
    CheckStatusInput,
    ControlSchedulerInput,
    ForecastBalanceInput,
    GetSystemLogsInput,
    NoParametersInput,
    ObservationInput,
    RunDailyResetInput,
)

__all__ = [
    # Decorator
    "validate_input",
    # Tool input schemas
    "CheckStatusInput",
    "NoParametersInput",
    "RunDailyResetInput",
    "ControlSchedulerInput",
    "GetSystemLogsInput",
    "ObservationInput",
    "ForecastBalanceInput",
]
