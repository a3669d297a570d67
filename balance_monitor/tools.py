"""
Balance Monitor MCP Tools

Tool implementations behind the MCP server. Each method returns a plain
dict: ``{"success": True, ...}`` on success, or a structured error response
built by ``make_error_response``.
"""

import hmac
import logging
from datetime import datetime
from typing import Any

from .errors import ErrorCode, MonitorError, UnauthorizedError, extract_error_code, make_error_response
from .forecasting import Observation, forecast, prediction_status
from .observability import get_observability
from .runtime import MonitorRuntime
from .timeutils import hour_of_day, to_local

logger = logging.getLogger(__name__)

SERVICE_NAME = "balance-monitor"
VERSION = "1.0.0"


def _error_from_exception(e: Exception, tool: str) -> dict[str, Any]:
    if isinstance(e, MonitorError):
        return make_error_response(extract_error_code(e), e.message, {**e.details, "tool": tool})
    logger.error(f"Error in {tool}: {e}", exc_info=True)
    return make_error_response(ErrorCode.INTERNAL_ERROR, str(e), {"tool": tool})


class MonitorTools:
    """MCP tool handlers over one MonitorRuntime."""

    def __init__(self, runtime: MonitorRuntime):
        self.runtime = runtime

    def _authorize(self, api_secret: str | None) -> None:
        expected = self.runtime.config.security.api_secret
        if not expected:
            return
        if not api_secret or not hmac.compare_digest(api_secret, expected):
            raise UnauthorizedError("Invalid API secret")

    async def check_status(self, include_details: bool = False) -> dict[str, Any]:
        obs = get_observability()
        obs.increment("tools.check_status")
        runtime = self.runtime

        status: dict[str, Any] = {
            "success": True,
            "status": "healthy",
            "service": SERVICE_NAME,
            "version": VERSION,
            "environment": runtime.config.environment,
            "timezone": runtime.config.timezone,
            "billing_provider": runtime.client.name if runtime.client else None,
            "collection_enabled": runtime.collector is not None,
            "notifications_enabled": bool(runtime.notifier and runtime.notifier.enabled),
            "scheduler_running": runtime.scheduler.running,
        }

        latest = await runtime.repository.latest_record()
        status["last_collected_at"] = latest.timestamp_utc.isoformat() if latest else None

        if include_details:
            status["metrics"] = obs.get_metrics()
            status["scheduler"] = runtime.scheduler.status()

        return status

    async def collect_usage(self, now: datetime | None = None) -> dict[str, Any]:
        get_observability().increment("tools.collect_usage")
        collector = self.runtime.collector
        if collector is None:
            return make_error_response(
                ErrorCode.FEATURE_DISABLED,
                "Usage collection is disabled: no billing credential configured",
            )
        try:
            result = await collector.collect(now)
        except Exception as e:
            return _error_from_exception(e, "collect_usage")
        return {"success": True, **result.to_dict()}

    async def run_daily_reset(self, api_secret: str | None = None, now: datetime | None = None) -> dict[str, Any]:
        get_observability().increment("tools.run_daily_reset")
        try:
            self._authorize(api_secret)
            result = await self.runtime.daily_reset.run(now)
        except Exception as e:
            return _error_from_exception(e, "run_daily_reset")
        return {"success": True, "message": "Daily reset completed successfully", **result}

    async def check_expiry_notifications(self, now: datetime | None = None) -> dict[str, Any]:
        get_observability().increment("tools.check_expiry_notifications")
        try:
            result = await self.runtime.expiry.check(now)
        except Exception as e:
            return _error_from_exception(e, "check_expiry_notifications")
        return {"success": True, **result}

    async def get_dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        get_observability().increment("tools.get_dashboard")
        try:
            data = await self.runtime.dashboard.get_dashboard(now)
        except Exception as e:
            return _error_from_exception(e, "get_dashboard")
        return {"success": True, "data": data}

    async def forecast_today(self, now: datetime | None = None) -> dict[str, Any]:
        get_observability().increment("tools.forecast_today")
        try:
            data = await self.runtime.dashboard.forecast_today(now)
        except Exception as e:
            return _error_from_exception(e, "forecast_today")
        return {"success": True, **data}

    async def forecast_balance(self, observations: list[dict[str, Any]], daily_budget: float) -> dict[str, Any]:
        """Forecast from caller-supplied samples (naive timestamps are local time)."""
        get_observability().increment("tools.forecast_balance")
        tz = self.runtime.config.tz

        samples: list[Observation] = []
        for item in observations:
            timestamp = item["timestamp"]
            local = timestamp.replace(tzinfo=tz) if timestamp.tzinfo is None else to_local(timestamp, tz)
            hour = item.get("hour_of_day")
            samples.append(
                Observation(
                    timestamp=local,
                    hour_of_day=hour if hour is not None else hour_of_day(local, tz),
                    balance=item["balance"],
                    pay_as_you_go_balance=item.get("pay_as_you_go_balance") or 0.0,
                    daily_spent=daily_budget - item["balance"],
                )
            )

        try:
            result = forecast(samples, daily_budget)
        except Exception as e:
            logger.error(f"Prediction calculation failed: {e}", exc_info=True)
            return make_error_response(ErrorCode.FORECAST_UNAVAILABLE, "No forecast available", {"error": str(e)})

        # Without samples there is nothing to judge
        status = prediction_status(result if samples else None, daily_budget)
        return {
            "success": True,
            "status": status.value,
            "forecast": result.to_dict(),
        }

    async def get_scheduler_status(self) -> dict[str, Any]:
        scheduler = self.runtime.scheduler
        return {
            "success": True,
            "initialized": scheduler.initialized,
            "running": scheduler.running,
            "jobs": scheduler.status(),
        }

    async def control_scheduler(self, action: str, api_secret: str | None = None) -> dict[str, Any]:
        get_observability().increment("tools.control_scheduler", tags={"action": action})
        try:
            self._authorize(api_secret)
        except UnauthorizedError as e:
            return _error_from_exception(e, "control_scheduler")

        runtime = self.runtime
        if action == "init":
            runtime.scheduler.initialize()
        elif action == "start":
            runtime.start_scheduler()
        elif action == "stop":
            runtime.scheduler.stop()
        elif action == "restart":
            runtime.restart_scheduler()
        else:
            return make_error_response(
                ErrorCode.INVALID_PARAMETER_VALUE,
                "action must be one of init, start, stop, restart",
                {"parameter": "action", "provided_value": action},
            )

        logger.info(f"Scheduler action executed: {action}")
        return {
            "success": True,
            "message": f"Scheduler {action} completed",
            "running": runtime.scheduler.running,
            "jobs": runtime.scheduler.status(),
        }

    async def get_system_logs(self, limit: int = 50, log_type: str | None = None) -> dict[str, Any]:
        try:
            logs = await self.runtime.repository.recent_logs(limit=limit, log_type=log_type)
        except Exception as e:
            return _error_from_exception(e, "get_system_logs")
        return {"success": True, "count": len(logs), "logs": [entry.to_dict() for entry in logs]}
