"""
Balance Monitor - Monitoring

Scheduled jobs (collection, daily reset, expiry reminders) and the
dashboard read model.
"""

from .collector import CollectionResult, UsageCollector
from .daily_reset import DailyResetJob
from .dashboard import DashboardService, records_to_observations
from .expiry import ExpiryNotifier, days_until, jwt_expiration, should_remind

__all__ = [
    "UsageCollector",
    "CollectionResult",
    "DailyResetJob",
    "ExpiryNotifier",
    "DashboardService",
    "records_to_observations",
    "days_until",
    "jwt_expiration",
    "should_remind",
]
