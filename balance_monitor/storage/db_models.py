"""
Balance Monitor - Database Models

SQLAlchemy models for the usage snapshot store.

Timestamps are stored as naive UTC (SQLite has no zone-aware type);
``to_db_time``/``from_db_time`` convert at the boundary. Daily rows are
keyed by the *local* calendar date of the configured timezone.
"""

import json
from datetime import UTC, date, datetime
from enum import Enum
from typing import Any

from sqlalchemy import Date, Float, Index, Integer, String, Text
from sqlalchemy.ext.asyncio import AsyncAttrs
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def to_db_time(value: datetime) -> datetime:
    """Normalise to naive UTC for storage (naive input is taken as UTC)."""
    if value.tzinfo is not None:
        value = value.astimezone(UTC)
    return value.replace(tzinfo=None)


def from_db_time(value: datetime) -> datetime:
    return value.replace(tzinfo=UTC) if value.tzinfo is None else value


def _utcnow() -> datetime:
    return to_db_time(datetime.now(UTC))


class LogType(str, Enum):
    """System log categories."""

    SUCCESS = "SUCCESS"
    ERROR = "ERROR"
    DAILY_RESET = "DAILY_RESET"
    NOTIFICATION = "NOTIFICATION"


class Base(AsyncAttrs, DeclarativeBase):
    """Base class for all database models."""

    pass


class UsageRecord(Base):
    """
    One billing API poll.

    Append-only; the forecaster reads today's rows in timestamp order.
    """

    __tablename__ = "usage_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(nullable=False, index=True, default=_utcnow)
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    balance: Mapped[float] = mapped_column(Float, nullable=False)
    pay_as_you_go_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    daily_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    monthly_spent: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    daily_budget: Mapped[float] = mapped_column(Float, nullable=False)
    monthly_budget: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_quota: Mapped[int | None] = mapped_column(Integer, nullable=True)
    used_quota: Mapped[int | None] = mapped_column(Integer, nullable=True)
    remaining_quota: Mapped[int | None] = mapped_column(Integer, nullable=True)
    plan_type: Mapped[str | None] = mapped_column(String(64), nullable=True)
    plan_expires_at: Mapped[datetime | None] = mapped_column(nullable=True)

    @property
    def timestamp_utc(self) -> datetime:
        return from_db_time(self.timestamp)

    @property
    def plan_expires_at_utc(self) -> datetime | None:
        return from_db_time(self.plan_expires_at) if self.plan_expires_at else None

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "timestamp": self.timestamp_utc.isoformat(),
            "provider": self.provider,
            "balance": self.balance,
            "pay_as_you_go_balance": self.pay_as_you_go_balance,
            "total_spent": self.total_spent,
            "daily_spent": self.daily_spent,
            "monthly_spent": self.monthly_spent,
            "daily_budget": self.daily_budget,
            "monthly_budget": self.monthly_budget,
            "total_quota": self.total_quota,
            "used_quota": self.used_quota,
            "remaining_quota": self.remaining_quota,
            "plan_type": self.plan_type,
            "plan_expires_at": self.plan_expires_at_utc.isoformat() if self.plan_expires_at_utc else None,
        }


class DailyStats(Base):
    """
    Per-day aggregate, one row per local date.

    ``notified_thresholds`` is a JSON list of the alert fractions already
    pushed today; the daily reset clears it.
    """

    __tablename__ = "daily_stats"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    day: Mapped[date] = mapped_column("date", Date, nullable=False, unique=True)
    start_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    end_balance: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    total_used: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    usage_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    notified_thresholds: Mapped[str] = mapped_column(Text, nullable=False, default="[]")  # JSON list
    created_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(nullable=False, default=_utcnow, onupdate=_utcnow)

    @property
    def notified(self) -> list[float]:
        return [float(t) for t in json.loads(self.notified_thresholds or "[]")]

    def has_notified(self, threshold: float) -> bool:
        return any(abs(t - threshold) < 1e-9 for t in self.notified)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.day.isoformat(),
            "start_balance": self.start_balance,
            "end_balance": self.end_balance,
            "total_used": self.total_used,
            "usage_percentage": self.usage_percentage,
            "notified_thresholds": self.notified,
            "updated_at": from_db_time(self.updated_at).isoformat(),
        }


class SystemLog(Base):
    """Audit trail of job runs."""

    __tablename__ = "system_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(nullable=False, index=True, default=_utcnow)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON string

    __table_args__ = (Index("idx_system_log_type_timestamp", "type", "timestamp"),)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": from_db_time(self.timestamp).isoformat(),
            "type": self.type,
            "message": self.message,
            "details": json.loads(self.details) if self.details else None,
        }
