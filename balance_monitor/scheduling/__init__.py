"""
Balance Monitor - Scheduling

Recurring collection, daily reset and expiry-check jobs.
"""

from .scheduler import DAILY_RESET, DATA_COLLECTION, NOTIFICATION_CHECK, MonitorScheduler

__all__ = ["MonitorScheduler", "DATA_COLLECTION", "DAILY_RESET", "NOTIFICATION_CHECK"]
