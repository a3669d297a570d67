"""
Balance Monitor - Usage Repository

Query and write helpers over the snapshot database. Every method opens its
own short session; SQLAlchemy failures surface as StorageError.
"""

import json
import logging
from collections.abc import Iterable
from datetime import date, datetime
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..billing.base import BillingSnapshot
from ..errors import StorageError
from .database import MonitorDatabase
from .db_models import DailyStats, LogType, SystemLog, UsageRecord, to_db_time

logger = logging.getLogger(__name__)


class UsageRepository:
    """Persistence for usage records, daily aggregates and system logs."""

    def __init__(self, db: MonitorDatabase):
        self.db = db

    # Usage records

    async def add_usage_record(self, snapshot: BillingSnapshot, timestamp: datetime) -> UsageRecord:
        """Store one poll result."""
        record = UsageRecord(
            timestamp=to_db_time(timestamp),
            provider=snapshot.provider,
            balance=snapshot.balance,
            pay_as_you_go_balance=snapshot.pay_as_you_go_balance,
            total_spent=snapshot.total_spent,
            daily_spent=snapshot.daily_spent,
            monthly_spent=snapshot.monthly_spent,
            daily_budget=snapshot.daily_budget,
            monthly_budget=snapshot.monthly_budget,
            total_quota=snapshot.total_quota,
            used_quota=snapshot.used_quota,
            remaining_quota=snapshot.remaining_quota,
            plan_type=snapshot.plan_type,
            plan_expires_at=to_db_time(snapshot.plan_expires_at) if snapshot.plan_expires_at else None,
        )
        try:
            async with self.db.get_session() as session:
                session.add(record)
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to store usage record: {e}") from e

        return record

    async def records_between(self, start: datetime, end: datetime) -> list[UsageRecord]:
        """Records with ``start <= timestamp < end``, oldest first."""
        query = (
            select(UsageRecord)
            .where(UsageRecord.timestamp >= to_db_time(start), UsageRecord.timestamp < to_db_time(end))
            .order_by(UsageRecord.timestamp.asc(), UsageRecord.id.asc())
        )
        return list(await self._scalars(query, "usage records"))

    async def latest_record(self) -> UsageRecord | None:
        query = select(UsageRecord).order_by(UsageRecord.timestamp.desc(), UsageRecord.id.desc()).limit(1)
        rows = await self._scalars(query, "latest usage record")
        return rows[0] if rows else None

    # Daily stats

    async def get_daily_stats(self, day: date) -> DailyStats | None:
        rows = await self._scalars(select(DailyStats).where(DailyStats.day == day), "daily stats")
        return rows[0] if rows else None

    async def upsert_daily_stats(
        self,
        day: date,
        *,
        start_balance: float | None = None,
        end_balance: float | None = None,
        total_used: float | None = None,
        usage_percentage: float | None = None,
    ) -> DailyStats:
        """
        Create or update the aggregate row for ``day``.

        On update, fields passed as None keep their stored value. On create,
        a missing ``start_balance`` defaults to ``end_balance``.
        """
        try:
            async with self.db.get_session() as session:
                result = await session.execute(select(DailyStats).where(DailyStats.day == day))
                stats = result.scalars().first()

                if stats is None:
                    stats = DailyStats(
                        day=day,
                        start_balance=start_balance if start_balance is not None else (end_balance or 0.0),
                        end_balance=end_balance or 0.0,
                        total_used=total_used or 0.0,
                        usage_percentage=usage_percentage or 0.0,
                        notified_thresholds="[]",
                    )
                    session.add(stats)
                    logger.debug(f"Created daily stats for {day}")
                else:
                    if start_balance is not None:
                        stats.start_balance = start_balance
                    if end_balance is not None:
                        stats.end_balance = end_balance
                    if total_used is not None:
                        stats.total_used = total_used
                    if usage_percentage is not None:
                        stats.usage_percentage = usage_percentage

                await session.commit()
                return stats
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to upsert daily stats for {day}: {e}", details={"day": day.isoformat()}) from e

    async def mark_threshold_notified(self, day: date, thresholds: Iterable[float]) -> DailyStats:
        """Add thresholds to the day's notified set."""
        try:
            async with self.db.get_session() as session:
                result = await session.execute(select(DailyStats).where(DailyStats.day == day))
                stats = result.scalars().first()
                if stats is None:
                    raise StorageError(f"No daily stats for {day}", details={"day": day.isoformat()})

                notified = set(stats.notified)
                notified.update(float(t) for t in thresholds)
                stats.notified_thresholds = json.dumps(sorted(notified))
                await session.commit()
                return stats
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to mark thresholds for {day}: {e}") from e

    async def reset_daily_flags(self, day: date) -> bool:
        """Clear notification flags; False when the day has no row."""
        try:
            async with self.db.get_session() as session:
                result = await session.execute(select(DailyStats).where(DailyStats.day == day))
                stats = result.scalars().first()
                if stats is None:
                    return False
                stats.notified_thresholds = "[]"
                await session.commit()
                return True
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to reset flags for {day}: {e}") from e

    async def daily_stats_between(self, start_day: date, end_day: date) -> list[DailyStats]:
        """Aggregates for ``start_day <= day <= end_day``, oldest first."""
        query = (
            select(DailyStats)
            .where(DailyStats.day >= start_day, DailyStats.day <= end_day)
            .order_by(DailyStats.day.asc())
        )
        return list(await self._scalars(query, "daily stats range"))

    # System logs

    async def add_system_log(
        self,
        log_type: LogType | str,
        message: str,
        details: dict[str, Any] | str | None = None,
    ) -> SystemLog:
        if isinstance(details, dict):
            details = json.dumps(details, default=str)
        elif isinstance(details, str):
            details = json.dumps({"message": details})

        entry = SystemLog(
            type=LogType(log_type).value,
            message=message,
            details=details,
        )
        try:
            async with self.db.get_session() as session:
                session.add(entry)
                await session.commit()
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to write system log: {e}") from e
        return entry

    async def recent_logs(self, limit: int = 50, log_type: LogType | str | None = None) -> list[SystemLog]:
        query = select(SystemLog).order_by(SystemLog.timestamp.desc(), SystemLog.id.desc()).limit(limit)
        if log_type is not None:
            query = query.where(SystemLog.type == LogType(log_type).value)
        return list(await self._scalars(query, "system logs"))

    async def _scalars(self, query: Any, what: str) -> list[Any]:
        try:
            async with self.db.get_session() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to load {what}: {e}") from e
