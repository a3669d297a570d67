"""
Forecasting data types.

Observations come from the collector (one per 5-minute poll); forecast points
and results are request-scoped and never persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Confidence(str, Enum):
    """How much history backed a forecast."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass(frozen=True)
class Observation:
    """
    A single recorded balance sample for the current day.

    Attributes:
        timestamp: When the sample was taken
        hour_of_day: Local hour with fractional minutes, in [0, 24)
        balance: Subscription balance
        pay_as_you_go_balance: Secondary balance (0 when not tracked)
        daily_spent: Budget minus balance, when the caller knows the budget
    """

    timestamp: datetime
    hour_of_day: float
    balance: float
    pay_as_you_go_balance: float = 0.0
    daily_spent: float | None = None


@dataclass(frozen=True)
class ForecastPoint:
    """One point of the observed-then-predicted balance series."""

    hour_of_day: float
    timestamp: datetime
    balance: float | None
    pay_as_you_go_balance: float | None
    is_predicted: bool

    @property
    def hour(self) -> str:
        """Wall-clock label (HH:mm)."""
        return self.timestamp.strftime("%H:%M")

    def to_dict(self) -> dict[str, Any]:
        return {
            "hour_of_day": self.hour_of_day,
            "hour": self.hour,
            "timestamp": self.timestamp.isoformat(),
            "balance": self.balance,
            "pay_as_you_go_balance": self.pay_as_you_go_balance,
            "is_predicted": self.is_predicted,
        }


@dataclass
class ForecastResult:
    """Outcome of a single forecast run."""

    predicted_spent: float
    predicted_end_time: str | None
    will_exceed_budget: bool
    prediction_series: list[ForecastPoint] = field(default_factory=list)
    confidence: Confidence = Confidence.LOW
    strategy: str | None = None

    @property
    def predicted_points(self) -> list[ForecastPoint]:
        return [point for point in self.prediction_series if point.is_predicted]

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-friendly dictionary."""
        return {
            "predicted_spent": self.predicted_spent,
            "predicted_end_time": self.predicted_end_time,
            "will_exceed_budget": self.will_exceed_budget,
            "confidence": self.confidence.value,
            "strategy": self.strategy,
            "prediction_series": [point.to_dict() for point in self.prediction_series],
        }
