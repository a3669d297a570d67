"""
Balance Monitor - Server

FastMCP server using stdio transport (Model Context Protocol).

- Single entrypoint for the monitor
- Graceful shutdown with resource cleanup
- Structured logging with trace IDs
- Configuration via typed Pydantic models only
- Scheduled jobs (collection, daily reset, expiry reminders) run inside the
  server process
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastmcp import FastMCP

from .config import load_config
from .errors import ErrorCode, make_error_response
from .observability import get_observability, initialize_observability
from .runtime import close_runtime, get_runtime, initialize_runtime
from .tools import MonitorTools
from .validation import (
    CheckStatusInput,
    ControlSchedulerInput,
    ForecastBalanceInput,
    GetSystemLogsInput,
    NoParametersInput,
    RunDailyResetInput,
    validate_input,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def server_lifespan(server: Any) -> Any:
    """Server lifespan manager (startup/shutdown)."""
    await initialize_server()
    yield
    await cleanup_server()


mcp = FastMCP("Balance Monitor", lifespan=server_lifespan)

_tools: MonitorTools | None = None


def _get_tools() -> MonitorTools | None:
    global _tools

    runtime = get_runtime()
    if runtime is None:
        return None
    if _tools is None or _tools.runtime is not runtime:
        _tools = MonitorTools(runtime)
    return _tools


def _not_ready() -> dict[str, Any]:
    return make_error_response(ErrorCode.FEATURE_DISABLED, "Monitor runtime is not initialized")


@mcp.tool()
@validate_input(CheckStatusInput)
async def check_status(include_details: bool = False) -> dict[str, Any]:
    """
    Check monitor health and status.

    Args:
        include_details: Include counters, timings and scheduler jobs

    Returns:
        Service status, billing provider and scheduler state
    """
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.check_status(include_details=include_details)


@mcp.tool()
@validate_input(NoParametersInput)
async def collect_usage() -> dict[str, Any]:
    """
    Fetch the current balance from the billing provider and store it.

    Also updates today's statistics and sends a threshold alert when a new
    usage threshold was crossed.
    """
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.collect_usage()


@mcp.tool()
@validate_input(RunDailyResetInput)
async def run_daily_reset(api_secret: str | None = None) -> dict[str, Any]:
    """
    Run the daily reset: send yesterday's summary and reset today's alert flags.

    Args:
        api_secret: Shared secret, required when API_SECRET is configured
    """
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.run_daily_reset(api_secret=api_secret)


@mcp.tool()
@validate_input(NoParametersInput)
async def check_expiry_notifications() -> dict[str, Any]:
    """Check token and subscription expiry and send reminders when due."""
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.check_expiry_notifications()


@mcp.tool()
@validate_input(NoParametersInput)
async def get_dashboard() -> dict[str, Any]:
    """
    Get the dashboard payload.

    Returns:
        Today's samples and stats, latest record, 30-day history, status
        block, consumption summary and today's prediction
    """
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.get_dashboard()


@mcp.tool()
@validate_input(NoParametersInput)
async def forecast_today() -> dict[str, Any]:
    """Forecast the rest of today's balance from today's stored samples."""
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.forecast_today()


@mcp.tool()
@validate_input(ForecastBalanceInput)
async def forecast_balance(observations: list[dict[str, Any]], daily_budget: float) -> dict[str, Any]:
    """
    Forecast a balance series supplied by the caller.

    Args:
        observations: Samples with timestamp, balance and optional
            pay_as_you_go_balance / hour_of_day
        daily_budget: Daily quota the balance started from

    Returns:
        Predicted points, depletion time, daily spend estimate and status
    """
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.forecast_balance(observations, daily_budget)


@mcp.tool()
@validate_input(NoParametersInput)
async def get_scheduler_status() -> dict[str, Any]:
    """Get scheduled jobs with their next and last run times."""
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.get_scheduler_status()


@mcp.tool()
@validate_input(ControlSchedulerInput)
async def control_scheduler(action: str, api_secret: str | None = None) -> dict[str, Any]:
    """
    Control the job scheduler.

    Args:
        action: One of init, start, stop, restart
        api_secret: Shared secret, required when API_SECRET is configured
    """
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.control_scheduler(action, api_secret=api_secret)


@mcp.tool()
@validate_input(GetSystemLogsInput)
async def get_system_logs(limit: int = 50, log_type: str | None = None) -> dict[str, Any]:
    """
    Get recent system log entries, newest first.

    Args:
        limit: Maximum number of entries (1-500)
        log_type: Optional filter (SUCCESS, ERROR, DAILY_RESET, NOTIFICATION)
    """
    tools = _get_tools()
    if tools is None:
        return _not_ready()
    return await tools.get_system_logs(limit=limit, log_type=log_type)


async def initialize_server() -> None:
    """Initialize server resources on startup."""
    logger.info("Initializing Balance Monitor server...")

    try:
        config = load_config()

        obs = initialize_observability(log_level=config.log_level)
        logger.info(f"Configuration loaded: environment={config.environment}")

        runtime = await initialize_runtime(config)

        obs.increment("server.startup")
        obs.event(
            "server_started",
            {
                "environment": config.environment,
                "billing_provider": config.billing.provider,
                "collection_enabled": runtime.collector is not None,
                "notifications_enabled": runtime.notifier is not None,
                "scheduler_enabled": config.scheduler.enabled,
            },
        )
        logger.info("Balance Monitor server initialized successfully")

    except Exception as e:
        logger.error(f"Failed to initialize server: {e}", exc_info=True)
        raise


async def cleanup_server() -> None:
    """Cleanup server resources on shutdown."""
    global _tools

    logger.info("Cleaning up Balance Monitor server...")

    try:
        await close_runtime()
        _tools = None

        obs = get_observability()
        obs.increment("server.shutdown")
        obs.event("server_stopped", {})
        logger.info("Balance Monitor server cleanup complete")

    except Exception as e:
        logger.error(f"Error during cleanup: {e}", exc_info=True)


def main() -> None:
    """CLI entry point for balance-monitor command."""
    mcp.run()


if __name__ == "__main__":
    main()
