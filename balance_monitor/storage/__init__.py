"""
Balance Monitor - Storage

Async SQLite persistence (SQLAlchemy + aiosqlite) for usage snapshots,
daily aggregates and the system log.
"""

from .database import MonitorDatabase
from .db_models import DailyStats, LogType, SystemLog, UsageRecord, from_db_time, to_db_time
from .repository import UsageRepository

__all__ = [
    "MonitorDatabase",
    "UsageRepository",
    "UsageRecord",
    "DailyStats",
    "SystemLog",
    "LogType",
    "to_db_time",
    "from_db_time",
]
