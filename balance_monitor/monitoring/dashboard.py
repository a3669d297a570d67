"""
Dashboard data assembly.

Builds the payload a chart/card UI renders: today's records and aggregate,
the latest snapshot, recent daily history, status badges, day consumption
and the intraday forecast.
"""

import logging
import math
from datetime import datetime, timedelta
from typing import Any

from ..config.schemas import MonitorConfig
from ..forecasting import (
    ForecastPoint,
    Observation,
    day_consumption,
    forecast,
    prediction_status,
    subscription_status,
    usage_status,
)
from ..observability import get_observability
from ..storage import UsageRecord, UsageRepository
from ..timeutils import hour_of_day, local_day_bounds, now_utc, to_local

logger = logging.getLogger(__name__)


def records_to_observations(records: list[UsageRecord], config: MonitorConfig) -> list[Observation]:
    """Map stored records to forecaster input in local time."""
    tz = config.tz
    return [
        Observation(
            timestamp=to_local(record.timestamp_utc, tz),
            hour_of_day=hour_of_day(record.timestamp_utc, tz),
            balance=record.balance,
            pay_as_you_go_balance=record.pay_as_you_go_balance or 0.0,
            daily_spent=record.daily_budget - record.balance,
        )
        for record in records
    ]


def _observed_points(observations: list[Observation]) -> list[ForecastPoint]:
    return [
        ForecastPoint(
            hour_of_day=obs.hour_of_day,
            timestamp=obs.timestamp,
            balance=obs.balance,
            pay_as_you_go_balance=obs.pay_as_you_go_balance,
            is_predicted=False,
        )
        for obs in observations
    ]


def _percentage(used: float, budget: float) -> float:
    return used / budget * 100 if budget > 0 else 0.0


class DashboardService:
    """Read-only view over the snapshot store."""

    def __init__(self, repository: UsageRepository, config: MonitorConfig):
        self.repository = repository
        self.config = config

    async def forecast_today(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Forecast the rest of today from today's records.

        A forecaster failure is logged and reported as "no forecast
        available" rather than raised.
        """
        moment = now or now_utc()
        day_start, day_end = local_day_bounds(moment, self.config.tz)
        records = await self.repository.records_between(day_start, day_end)
        return self._forecast_payload(records, day_start)

    def _forecast_payload(self, records: list[UsageRecord], day_start: datetime) -> dict[str, Any]:
        if not records:
            return {
                "available": False,
                "reason": "no records today",
                "daily_budget": None,
                "status": prediction_status(None, 0.0).value,
                "forecast": None,
            }

        # Budget may change mid-day; the newest record wins
        daily_budget = records[-1].daily_budget
        observations = records_to_observations(records, self.config)

        try:
            with get_observability().trace("forecast"):
                result = forecast(observations, daily_budget, day_start=day_start)
        except Exception as e:
            logger.error(f"Prediction calculation failed: {e}", exc_info=True)
            return {
                "available": False,
                "reason": "no forecast available",
                "daily_budget": daily_budget,
                "status": prediction_status(None, daily_budget).value,
                "forecast": None,
            }

        return {
            "available": True,
            "daily_budget": daily_budget,
            "status": prediction_status(result, daily_budget).value,
            "forecast": result.to_dict(),
        }

    async def get_dashboard(self, now: datetime | None = None) -> dict[str, Any]:
        """Assemble the full dashboard payload."""
        moment = now or now_utc()
        tz = self.config.tz
        local_now = to_local(moment, tz)
        today = local_now.date()
        day_start, day_end = local_day_bounds(moment, tz)
        yesterday_start = day_start - timedelta(days=1)

        today_records = await self.repository.records_between(day_start, day_end)
        yesterday_records = await self.repository.records_between(yesterday_start, day_start)
        today_stats = await self.repository.get_daily_stats(today)
        latest = await self.repository.latest_record()
        history_start = today - timedelta(days=self.config.forecast.history_days - 1)
        history = await self.repository.daily_stats_between(history_start, today)

        return {
            "generated_at": local_now.isoformat(),
            "timezone": self.config.timezone,
            "today_records": [record.to_dict() for record in today_records],
            "today_stats": today_stats.to_dict() if today_stats else None,
            "latest_record": latest.to_dict() if latest else None,
            "daily_history": [stats.to_dict() for stats in history],
            "status": self._status(latest, local_now),
            "consumption": {
                "today": self._consumption(today_records),
                "yesterday": self._consumption(yesterday_records),
            },
            "prediction": self._forecast_payload(today_records, day_start),
        }

    def _consumption(self, records: list[UsageRecord]) -> dict[str, float]:
        if not records:
            consumed, expired = 0.0, 0.0
        else:
            points = _observed_points(records_to_observations(records, self.config))
            consumed, expired = day_consumption(points, records[0].daily_budget)
        return {"consumed": round(consumed, 4), "expired": round(expired, 4)}

    def _status(self, latest: UsageRecord | None, local_now: datetime) -> dict[str, Any]:
        if latest is None:
            return {
                "daily_usage_percentage": 0.0,
                "daily_usage": usage_status(0.0).value,
                "monthly_usage_percentage": 0.0,
                "monthly_usage": usage_status(0.0).value,
                "days_until_expiry": None,
                "subscription": subscription_status(None).value,
            }

        daily_pct = _percentage(latest.daily_spent, latest.daily_budget)
        monthly_pct = _percentage(latest.monthly_spent, latest.monthly_budget)

        days = None
        if latest.plan_expires_at_utc is not None:
            # Truncated toward zero, like a calendar "days left" counter
            days = math.trunc((latest.plan_expires_at_utc - local_now).total_seconds() / 86400)

        return {
            "daily_usage_percentage": round(daily_pct, 2),
            "daily_usage": usage_status(daily_pct).value,
            "monthly_usage_percentage": round(monthly_pct, 2),
            "monthly_usage": usage_status(monthly_pct).value,
            "days_until_expiry": days,
            "subscription": subscription_status(days).value,
        }
