"""
Daily reset job (runs shortly after local midnight).

Pushes yesterday's usage summary and opens today's aggregate row with the
threshold notification flags cleared.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Any

from ..config.schemas import MonitorConfig
from ..errors import StorageError
from ..notifications import BarkNotifier, notify_safely
from ..observability import get_observability
from ..storage import LogType, UsageRepository
from ..timeutils import now_utc, to_local

logger = logging.getLogger(__name__)


def format_summary(total_used: float, usage_percentage: float) -> str:
    return f"Yesterday's usage: ${total_used:.4f} ({usage_percentage:.1f}%)"


class DailyResetJob:
    """Yesterday's summary plus today's fresh aggregate."""

    def __init__(
        self,
        repository: UsageRepository,
        notifier: BarkNotifier | None,
        config: MonitorConfig,
        label: str = "Balance",
    ):
        self.repository = repository
        self.notifier = notifier
        self.config = config
        self.label = label

    async def run(self, now: datetime | None = None) -> dict[str, Any]:
        """
        Perform the reset.

        Returns:
            Result dict with the reset date and whether a summary was sent

        Raises:
            Whatever the storage layer raised, after logging and an error push
        """
        obs = get_observability()
        local_now = to_local(now or now_utc(), self.config.tz)
        today = local_now.date()
        yesterday = today - timedelta(days=1)

        try:
            with obs.trace("daily_reset"):
                summary = await self._send_summary(yesterday)
                await self._open_today(today)
        except Exception as e:
            obs.increment("daily_reset.failure")
            await self._record_failure(e)
            raise

        obs.increment("daily_reset.success")
        logger.info(f"Daily reset completed for {today}", extra={"date": today.isoformat()})

        return {
            "date": today.isoformat(),
            "summary_sent": summary is not None and summary["delivered"],
            "summary": summary,
        }

    async def _send_summary(self, yesterday: date) -> dict[str, Any] | None:
        stats = await self.repository.get_daily_stats(yesterday)
        if stats is None:
            logger.info(f"No stats for {yesterday}, skipping daily summary")
            return None

        body = format_summary(stats.total_used, stats.usage_percentage)
        delivered = await notify_safely(self.notifier, f"{self.label} Daily Summary", body)

        details = {
            "date": yesterday.isoformat(),
            "usage": stats.total_used,
            "percentage": stats.usage_percentage,
        }
        await self.repository.add_system_log(LogType.DAILY_RESET, "Daily reset completed and summary sent", details)

        return {**details, "message": body, "delivered": delivered}

    async def _open_today(self, today: date) -> None:
        if await self.repository.get_daily_stats(today) is not None:
            await self.repository.reset_daily_flags(today)
            return

        latest = await self.repository.latest_record()
        budget = latest.daily_budget if latest is not None else self.config.alerts.default_daily_budget
        await self.repository.upsert_daily_stats(
            today,
            start_balance=budget,
            end_balance=budget,
            total_used=0.0,
            usage_percentage=0.0,
        )

    async def _record_failure(self, error: Exception) -> None:
        logger.error(f"Error during daily reset: {error}", exc_info=True)
        try:
            await self.repository.add_system_log(
                LogType.ERROR,
                "Failed to perform daily reset",
                {"error": str(error), "error_type": type(error).__name__},
            )
        except StorageError as log_error:
            logger.error(f"Failed to write error log: {log_error}")

        await notify_safely(self.notifier, f"{self.label} Monitor Error", f"Daily reset failed: {error}")
