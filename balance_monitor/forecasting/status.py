"""
Status derivation for the dashboard.

Maps forecasts, usage percentages and subscription expiry into the coarse
labels the dashboard renders as badges.
"""

from collections.abc import Sequence
from enum import Enum

from .models import ForecastPoint, ForecastResult

# Forecast spend above this share of the budget triggers a reminder
REMINDER_RATIO = 0.8


class PredictionStatus(str, Enum):
    NONE = "none"
    NORMAL = "normal"
    REMINDER = "reminder"
    WARNING = "warning"


class UsageStatus(str, Enum):
    NORMAL = "normal"
    ATTENTION = "attention"
    WARNING = "warning"
    URGENT = "urgent"


class SubscriptionStatus(str, Enum):
    SUFFICIENT = "sufficient"
    RUNNING_LOW = "running_low"
    EXPIRING_SOON = "expiring_soon"
    EXPIRING = "expiring"
    UNKNOWN = "unknown"


def prediction_status(result: ForecastResult | None, daily_budget: float) -> PredictionStatus:
    if result is None:
        return PredictionStatus.NONE
    if result.will_exceed_budget or result.predicted_end_time:
        return PredictionStatus.WARNING
    if result.predicted_spent > daily_budget * REMINDER_RATIO:
        return PredictionStatus.REMINDER
    return PredictionStatus.NORMAL


def usage_status(percentage: float) -> UsageStatus:
    if percentage >= 95:
        return UsageStatus.URGENT
    if percentage >= 80:
        return UsageStatus.WARNING
    if percentage >= 50:
        return UsageStatus.ATTENTION
    return UsageStatus.NORMAL


def subscription_status(days_until_expiry: int | None) -> SubscriptionStatus:
    """Label a subscription by whole days left (None when no expiry is known)."""
    if days_until_expiry is None:
        return SubscriptionStatus.UNKNOWN
    if days_until_expiry <= 3:
        return SubscriptionStatus.EXPIRING
    if days_until_expiry <= 7:
        return SubscriptionStatus.EXPIRING_SOON
    if days_until_expiry <= 30:
        return SubscriptionStatus.RUNNING_LOW
    return SubscriptionStatus.SUFFICIENT


def day_consumption(points: Sequence[ForecastPoint], daily_budget: float) -> tuple[float, float]:
    """
    Split a day's budget into what was consumed and what expired unused.

    Uses the final point of the series (observed or predicted). An empty
    series means nothing was consumed and nothing expired.

    Returns:
        (consumed, expired)
    """
    if not points:
        return 0.0, 0.0

    final_balance = points[-1].balance or 0.0
    consumed = daily_budget - final_balance
    expired = max(final_balance, 0.0)
    return consumed, expired
