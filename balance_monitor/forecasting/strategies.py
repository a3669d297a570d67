"""
Balance Prediction Strategies

Three pure extrapolation functions tried in priority order by the forecaster:

1. Holt double exponential smoothing (level + trend)
2. Simplified autoregressive model on first differences
3. Moving average of recent first differences

Every strategy shares the same contract:

    strategy(history, steps, step_scale) -> list[float] | None

- ``None`` means "not applicable" (too little history).
- Forecasts always start from the last *actual* value, never from a smoothed
  level, so the predicted path is continuous with the observed one.
- Values are clamped at 0 and the list ends at the first value <= 0.
- ``step_scale`` converts a per-sample change into a per-forecast-step change
  (1.0 when samples arrive at the forecast cadence).
"""

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass

from .models import Confidence

logger = logging.getLogger(__name__)

# Holt smoothing parameters
ALPHA = 0.3  # level
BETA = 0.1  # trend

AR_MAX_ORDER = 3
AR_RECENT_WINDOW = 5
MA_WINDOW = 3

StrategyFn = Callable[[Sequence[float], int, float], list[float] | None]


@dataclass(frozen=True)
class Strategy:
    """
    A named prediction function plus the confidence it earns.

    ``high_confidence_points`` upgrades the confidence to HIGH once the
    history reaches that many samples.
    """

    name: str
    predict: StrategyFn
    confidence: Confidence
    high_confidence_points: int | None = None

    def confidence_for(self, history_size: int) -> Confidence:
        if self.high_confidence_points is not None and history_size >= self.high_confidence_points:
            return Confidence.HIGH
        return self.confidence


def holt_trend(history: Sequence[float], alpha: float = ALPHA, beta: float = BETA) -> float:
    """
    Learn the per-sample trend with Holt's linear method.

    Walks the history once; the smoothed level is discarded, only the final
    trend estimate is returned.
    """
    level = history[0]
    trend = history[1] - history[0] if len(history) > 1 else 0.0

    for value in history[1:]:
        prev_level = level
        level = alpha * value + (1 - alpha) * (level + trend)
        trend = beta * (level - prev_level) + (1 - beta) * trend

    logger.debug(f"Holt smoothing: level={level:.4f} trend={trend:.6f} points={len(history)}")
    return trend


def exponential_smoothing_prediction(
    history: Sequence[float],
    steps: int,
    step_scale: float = 1.0,
) -> list[float] | None:
    """Holt double exponential smoothing forecast."""
    if len(history) < 2:
        return None

    trend = holt_trend(history) * step_scale
    last_actual = history[-1]

    predictions: list[float] = []
    for i in range(1, steps + 1):
        value = max(0.0, last_actual + trend * i)
        predictions.append(value)
        if value <= 0:
            logger.debug(f"Exponential smoothing predicted depletion at step {i}")
            break

    return predictions


def first_differences(history: Sequence[float]) -> list[float]:
    return [history[i] - history[i - 1] for i in range(1, len(history))]


def fit_ar_coefficients(diffs: Sequence[float], order: int) -> list[float] | None:
    """
    Estimate AR coefficients on the most recent residual pairs.

    Each lag gets its own least-squares slope (sum(x*y) / sum(x*x)) over the
    last AR_RECENT_WINDOW rows; a lag with no variation gets 0.

    Returns:
        One coefficient per lag, or None when there are no complete rows
    """
    rows: list[list[float]] = []
    targets: list[float] = []
    for t in range(order, len(diffs)):
        rows.append([diffs[t - lag] for lag in range(1, order + 1)])
        targets.append(diffs[t])

    if not rows:
        return None

    window = min(AR_RECENT_WINDOW, len(rows))
    recent_rows = rows[-window:]
    recent_targets = targets[-window:]

    phi: list[float] = []
    for j in range(order):
        numerator = sum(row[j] * y for row, y in zip(recent_rows, recent_targets, strict=True))
        denominator = sum(row[j] * row[j] for row in recent_rows)
        phi.append(numerator / denominator if denominator != 0 else 0.0)

    return phi


def autoregressive_prediction(
    history: Sequence[float],
    steps: int,
    step_scale: float = 1.0,
) -> list[float] | None:
    """Simplified AR(p) forecast on first differences, p = min(3, n - 1)."""
    if len(history) < 4:
        return None

    order = min(AR_MAX_ORDER, len(history) - 1)
    diffs = first_differences(history)
    phi = fit_ar_coefficients(diffs, order)
    if phi is None:
        logger.debug("Insufficient rows for AR estimation")
        return None

    logger.debug(f"AR({order}) coefficients: {[round(p, 4) for p in phi]}")

    recent_diffs = list(diffs[-order:])
    current = history[-1]
    predictions: list[float] = []

    for i in range(steps):
        predicted_diff = sum(phi[j] * recent_diffs[-1 - j] for j in range(order))
        current = max(0.0, current + predicted_diff * step_scale)
        predictions.append(current)
        recent_diffs = [*recent_diffs[1:], predicted_diff]

        if current <= 0:
            logger.debug(f"AR predicted depletion at step {i + 1}")
            break

    return predictions


def moving_average_prediction(
    history: Sequence[float],
    steps: int,
    step_scale: float = 1.0,
) -> list[float] | None:
    """Linear extrapolation of the mean change over the last few samples."""
    if len(history) < 3:
        return None

    window = min(MA_WINDOW, len(history))
    recent = history[-window:]
    avg_change = sum(first_differences(recent)) / (len(recent) - 1)

    current = history[-1]
    predictions: list[float] = []
    for i in range(1, steps + 1):
        current = max(0.0, current + avg_change * step_scale)
        predictions.append(current)
        if current <= 0:
            logger.debug(f"Moving average predicted depletion at step {i}")
            break

    return predictions


EXPONENTIAL_SMOOTHING = Strategy(
    "exponential_smoothing",
    exponential_smoothing_prediction,
    confidence=Confidence.MEDIUM,
    high_confidence_points=5,
)
AUTOREGRESSIVE = Strategy("autoregressive", autoregressive_prediction, confidence=Confidence.MEDIUM)
MOVING_AVERAGE = Strategy("moving_average", moving_average_prediction, confidence=Confidence.LOW)

# Priority order for the fallback chain
DEFAULT_STRATEGIES: tuple[Strategy, ...] = (
    EXPONENTIAL_SMOOTHING,
    AUTOREGRESSIVE,
    MOVING_AVERAGE,
)
