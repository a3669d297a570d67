"""
Balance Monitor - Forecasting

Short-horizon forecaster for the daily subscription balance:
- Holt / AR / moving-average fallback chain
- Dual-balance lockstep projection
- Dashboard status derivation
"""

from .forecaster import STEP_MINUTES, forecast, sample_step_scale
from .models import Confidence, ForecastPoint, ForecastResult, Observation
from .status import (
    PredictionStatus,
    SubscriptionStatus,
    UsageStatus,
    day_consumption,
    prediction_status,
    subscription_status,
    usage_status,
)
from .strategies import (
    AUTOREGRESSIVE,
    DEFAULT_STRATEGIES,
    EXPONENTIAL_SMOOTHING,
    MOVING_AVERAGE,
    Strategy,
    autoregressive_prediction,
    exponential_smoothing_prediction,
    moving_average_prediction,
)

__all__ = [
    "forecast",
    "sample_step_scale",
    "STEP_MINUTES",
    "Observation",
    "ForecastPoint",
    "ForecastResult",
    "Confidence",
    "Strategy",
    "DEFAULT_STRATEGIES",
    "EXPONENTIAL_SMOOTHING",
    "AUTOREGRESSIVE",
    "MOVING_AVERAGE",
    "exponential_smoothing_prediction",
    "autoregressive_prediction",
    "moving_average_prediction",
    "PredictionStatus",
    "UsageStatus",
    "SubscriptionStatus",
    "prediction_status",
    "usage_status",
    "subscription_status",
    "day_consumption",
]
