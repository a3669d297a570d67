"""
Usage collection job.

One run = one billing API poll:
1. Fetch the account snapshot
2. Store it as a usage record
3. Create or refresh today's daily aggregate
4. Push an alert for the highest newly crossed usage threshold
5. Write a SUCCESS system log

Any failure is logged to the system log, pushed as an error notification
(best effort) and re-raised as CollectionError.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from ..billing import BillingClient, BillingSnapshot, provider_label
from ..config.schemas import MonitorConfig
from ..errors import CollectionError, StorageError
from ..notifications import BarkNotifier, notify_safely
from ..observability import get_observability
from ..storage import DailyStats, LogType, UsageRepository
from ..timeutils import local_date, now_utc

logger = logging.getLogger(__name__)

CRITICAL_THRESHOLD = 0.95


@dataclass
class CollectionResult:
    """Outcome of a successful collection run."""

    record_id: int
    snapshot: BillingSnapshot
    usage_percentage: float
    notified_threshold: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "record_id": self.record_id,
            "usage_percentage": round(self.usage_percentage, 2),
            "notified_threshold": self.notified_threshold,
            "snapshot": self.snapshot.model_dump(mode="json"),
        }


def newly_crossed(usage_fraction: float, thresholds: list[float], stats: DailyStats) -> list[float]:
    """Thresholds reached by ``usage_fraction`` that have not been pushed today."""
    return [t for t in thresholds if usage_fraction >= t and not stats.has_notified(t)]


class UsageCollector:
    """Polls the billing API and records the result."""

    def __init__(
        self,
        client: BillingClient,
        repository: UsageRepository,
        notifier: BarkNotifier | None,
        config: MonitorConfig,
    ):
        self.client = client
        self.repository = repository
        self.notifier = notifier
        self.config = config
        self.label = provider_label(client.name)

    async def collect(self, now: datetime | None = None) -> CollectionResult:
        """
        Run one collection.

        Args:
            now: Poll time (defaults to the current UTC time)

        Raises:
            CollectionError: Wrapping the underlying billing/storage failure
        """
        obs = get_observability()
        moment = now or now_utc()

        with obs.trace("collect", tags={"provider": self.client.name}):
            try:
                result = await self._collect(moment)
            except Exception as e:
                obs.increment("collect.failure", tags={"provider": self.client.name})
                await self._record_failure(e)
                raise CollectionError(
                    f"Failed to fetch {self.label} usage data: {e}",
                    details={"provider": self.client.name, "error_type": type(e).__name__},
                ) from e

        obs.increment("collect.success", tags={"provider": self.client.name})
        obs.gauge("balance.current", result.snapshot.balance)
        obs.gauge("usage.percentage", result.usage_percentage)
        return result

    async def _collect(self, moment: datetime) -> CollectionResult:
        snapshot = await self.client.fetch_snapshot()
        record = await self.repository.add_usage_record(snapshot, moment)

        today = local_date(moment, self.config.tz)
        usage_percentage = snapshot.usage_percentage

        stats = await self.repository.get_daily_stats(today)
        if stats is None:
            stats = await self.repository.upsert_daily_stats(
                today,
                start_balance=snapshot.daily_budget,
                end_balance=snapshot.balance,
                total_used=snapshot.daily_spent,
                usage_percentage=usage_percentage,
            )
        else:
            stats = await self.repository.upsert_daily_stats(
                today,
                end_balance=snapshot.balance,
                total_used=snapshot.daily_spent,
                usage_percentage=usage_percentage,
            )

        notified = await self._check_thresholds(stats, usage_percentage)

        await self.repository.add_system_log(
            LogType.SUCCESS,
            f"Successfully fetched and recorded {self.label} usage data",
            {"user_id": snapshot.user_id, "balance": snapshot.balance, "record_id": record.id},
        )

        logger.info(
            f"Collected {self.label} usage: balance={snapshot.balance:.4f} usage={usage_percentage:.1f}%",
            extra={"record_id": record.id, "provider": snapshot.provider},
        )

        return CollectionResult(
            record_id=record.id,
            snapshot=snapshot,
            usage_percentage=usage_percentage,
            notified_threshold=notified,
        )

    async def _check_thresholds(self, stats: DailyStats, usage_percentage: float) -> float | None:
        """
        Alert once per threshold per day.

        When several thresholds are crossed between two polls only the
        highest is pushed; all of them are marked as notified.
        """
        crossed = newly_crossed(usage_percentage / 100, self.config.alerts.thresholds, stats)
        if not crossed:
            return None

        highest = max(crossed)
        severity = "Critical" if highest >= CRITICAL_THRESHOLD else "Alert"
        title = f"{self.label} Usage {severity}"
        body = f"Daily usage has reached {usage_percentage:.1f}% ({highest * 100:.0f}% threshold)"

        sent = await notify_safely(self.notifier, title, body)
        await self.repository.mark_threshold_notified(stats.day, crossed)

        if sent:
            await self.repository.add_system_log(
                LogType.NOTIFICATION,
                title,
                {"threshold": highest, "usage_percentage": usage_percentage},
            )
        logger.warning(f"{title}: {body}", extra={"threshold": highest, "delivered": sent})
        return highest

    async def _record_failure(self, error: Exception) -> None:
        logger.error(f"Error fetching {self.label} data: {error}", exc_info=True)

        try:
            await self.repository.add_system_log(
                LogType.ERROR,
                f"Failed to fetch {self.label} usage data",
                {"error": str(error), "error_type": type(error).__name__},
            )
        except StorageError as log_error:
            logger.error(f"Failed to write error log: {log_error}")

        await notify_safely(
            self.notifier,
            f"{self.label} Monitor Error",
            f"Failed to fetch usage data: {error}",
        )
