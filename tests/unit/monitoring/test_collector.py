"""
Tests for the usage collection job.
"""

from datetime import timedelta

import httpx
import pytest

from balance_monitor.errors import CollectionError
from balance_monitor.monitoring import UsageCollector
from balance_monitor.monitoring.collector import newly_crossed
from balance_monitor.observability import get_observability
from balance_monitor.storage import DailyStats, LogType


@pytest.fixture
def collector(billing_client, repository, notifier, config) -> UsageCollector:
    return UsageCollector(billing_client, repository, notifier, config)


def _spend(billing_api, spent: float) -> None:
    billing_api.payload["daily_spent_usd"] = f"{spent:.4f}"
    billing_api.payload["balance_usd"] = f"{25.0 - spent:.4f}"


class TestCollect:
    @pytest.mark.asyncio
    async def test_records_snapshot_and_stats(self, collector, repository, bark_inbox, now, today):
        result = await collector.collect(now)

        assert result.usage_percentage == pytest.approx(20.0)
        assert result.notified_threshold is None

        latest = await repository.latest_record()
        assert latest is not None and latest.id == result.record_id
        assert latest.timestamp_utc == now

        stats = await repository.get_daily_stats(today)
        assert stats is not None
        assert stats.start_balance == 25.0
        assert stats.end_balance == 20.0
        assert stats.total_used == 5.0

        logs = await repository.recent_logs(log_type=LogType.SUCCESS)
        assert logs[0].message == "Successfully fetched and recorded PackyCode usage data"
        assert bark_inbox.messages == []

    @pytest.mark.asyncio
    async def test_second_poll_keeps_start_balance(self, collector, repository, billing_api, now, today):
        await collector.collect(now)
        _spend(billing_api, 8.0)

        await collector.collect(now + timedelta(minutes=5))

        stats = await repository.get_daily_stats(today)
        assert stats.start_balance == 25.0
        assert stats.end_balance == 17.0
        assert stats.total_used == 8.0

    @pytest.mark.asyncio
    async def test_local_day_key(self, collector, repository, now, today):
        """16:30 UTC is already the next day in Shanghai."""
        late = now.replace(hour=16, minute=30)

        await collector.collect(late)

        assert await repository.get_daily_stats(today) is None
        assert await repository.get_daily_stats(today + timedelta(days=1)) is not None

    @pytest.mark.asyncio
    async def test_updates_metrics(self, collector, now):
        await collector.collect(now)

        metrics = get_observability().get_metrics()
        assert metrics["counters"]["collect.success{provider=packycode}"] == 1
        assert metrics["gauges"]["balance.current"] == 20.0


class TestThresholdAlerts:
    @pytest.mark.asyncio
    async def test_alert_once_per_threshold(self, collector, repository, billing_api, bark_inbox, now, today):
        _spend(billing_api, 13.0)

        first = await collector.collect(now)
        second = await collector.collect(now + timedelta(minutes=5))

        assert first.notified_threshold == 0.5
        assert second.notified_threshold is None
        assert bark_inbox.messages == [
            {
                "title": "PackyCode Usage Alert",
                "body": "Daily usage has reached 52.0% (50% threshold)",
                "group": "balance-monitor",
                "sound": "alarm",
                "badge": 1,
            }
        ]
        stats = await repository.get_daily_stats(today)
        assert stats.notified == [0.5]

        notifications = await repository.recent_logs(log_type="NOTIFICATION")
        assert [entry.message for entry in notifications] == ["PackyCode Usage Alert"]

    @pytest.mark.asyncio
    async def test_highest_crossed_threshold_only(self, collector, repository, billing_api, bark_inbox, now, today):
        _spend(billing_api, 24.0)

        result = await collector.collect(now)

        assert result.notified_threshold == 0.95
        assert bark_inbox.titles == ["PackyCode Usage Critical"]
        assert "96.0% (95% threshold)" in bark_inbox.messages[0]["body"]

        stats = await repository.get_daily_stats(today)
        assert stats.notified == [0.5, 0.8, 0.95]

    @pytest.mark.asyncio
    async def test_failed_push_still_marks_threshold(self, collector, repository, billing_api, bark_inbox, now, today):
        bark_inbox.status = 500
        _spend(billing_api, 21.0)

        result = await collector.collect(now)

        assert result.notified_threshold == 0.8
        stats = await repository.get_daily_stats(today)
        assert stats.notified == [0.5, 0.8]
        assert await repository.recent_logs(log_type="NOTIFICATION") == []

    def test_newly_crossed(self, today):
        stats = DailyStats(day=today, notified_thresholds="[0.5]")

        assert newly_crossed(0.85, [0.5, 0.8, 0.95], stats) == [0.8]
        assert newly_crossed(0.4, [0.5, 0.8, 0.95], stats) == []


class TestCollectFailure:
    @pytest.mark.asyncio
    async def test_api_error_is_logged_and_pushed(self, collector, repository, billing_api, bark_inbox, now):
        billing_api.responses.append(httpx.Response(401, text="unauthorized"))

        with pytest.raises(CollectionError) as exc_info:
            await collector.collect(now)

        assert exc_info.value.details["error_type"] == "BillingAPIError"
        assert await repository.latest_record() is None

        errors = await repository.recent_logs(log_type="ERROR")
        assert errors[0].message == "Failed to fetch PackyCode usage data"
        assert bark_inbox.titles == ["PackyCode Monitor Error"]

        metrics = get_observability().get_metrics()
        assert metrics["counters"]["collect.failure{provider=packycode}"] == 1

    @pytest.mark.asyncio
    async def test_failure_without_notifier(self, billing_client, repository, billing_api, config, now):
        collector = UsageCollector(billing_client, repository, None, config)
        billing_api.responses.append(httpx.Response(200, text="not json"))

        with pytest.raises(CollectionError):
            await collector.collect(now)

        assert len(await repository.recent_logs(log_type="ERROR")) == 1
