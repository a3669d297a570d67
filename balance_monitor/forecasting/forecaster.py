"""
Intraday Balance Forecaster

Predicts the rest-of-day trajectory of the subscription balance (and the
pay-as-you-go balance alongside it) from today's 5-minute snapshots.

The computation is pure: no clock reads, no I/O. The caller supplies the
observations, the daily budget and, optionally, the local midnight that
anchors hour-of-day values to wall-clock timestamps.
"""

import logging
import math
import statistics
from collections.abc import Sequence
from datetime import datetime, timedelta

from .models import Confidence, ForecastPoint, ForecastResult, Observation
from .strategies import DEFAULT_STRATEGIES, Strategy

logger = logging.getLogger(__name__)

STEP_MINUTES = 5
STEP_HOURS = STEP_MINUTES / 60
HOURS_PER_DAY = 24
DEPLETION_EPSILON = 0.01

# Float slack when comparing accumulated hour offsets against midnight
_HOUR_TOLERANCE = 1e-9


def _at_hour(day_start: datetime, hour_of_day: float) -> datetime:
    """Wall-clock instant for an hour-of-day offset, rounded to the second."""
    return day_start + timedelta(seconds=round(hour_of_day * 3600))


def _resolve_day_start(last: Observation, day_start: datetime | None) -> datetime:
    if day_start is not None:
        return day_start
    return last.timestamp.replace(hour=0, minute=0, second=0, microsecond=0)


def sample_step_scale(observations: Sequence[Observation], step_minutes: int = STEP_MINUTES) -> float:
    """
    Ratio between the forecast step and the observed sampling interval.

    Uses the median gap between consecutive samples so a single missed poll
    does not distort the rate. Returns 1.0 when the gap is unknown.
    """
    gaps = [
        (later.timestamp - earlier.timestamp).total_seconds() / 60
        for earlier, later in zip(observations, observations[1:])
    ]
    gaps = [gap for gap in gaps if gap > 0]
    if not gaps:
        return 1.0
    return step_minutes / statistics.median(gaps)


def _insufficient_data_result(last: Observation, daily_budget: float) -> ForecastResult:
    return ForecastResult(
        predicted_spent=max(0.0, daily_budget - last.balance),
        predicted_end_time=None,
        will_exceed_budget=last.balance <= 0,
        prediction_series=[],
        confidence=Confidence.LOW,
    )


def _lockstep(primary: list[float], secondary: list[float] | None) -> tuple[list[float], list[float]]:
    """
    Align two truncated prediction lists.

    Each list already ends at its own depletion point; the pair continues
    until both are depleted, with the depleted side held at 0.
    """
    secondary = secondary or []
    length = max(len(primary), len(secondary))
    padded_primary = primary + [0.0] * (length - len(primary))
    padded_secondary = secondary + [0.0] * (length - len(secondary))
    return padded_primary, padded_secondary


def _run_chain(
    strategies: Sequence[Strategy],
    balances: list[float],
    pay_as_you_go: list[float],
    steps: int,
    step_scale: float,
) -> tuple[Strategy, list[float], list[float]] | None:
    for strategy in strategies:
        try:
            primary = strategy.predict(balances, steps, step_scale)
            if not primary:
                logger.debug(f"Strategy {strategy.name} not applicable ({len(balances)} points)")
                continue
            secondary = strategy.predict(pay_as_you_go, steps, step_scale)
        except (ArithmeticError, ValueError) as e:
            logger.warning(f"Strategy {strategy.name} failed, trying next: {e}")
            continue

        primary, secondary = _lockstep(primary, secondary)
        return strategy, primary, secondary

    return None


def forecast(
    observations: Sequence[Observation],
    daily_budget: float,
    *,
    day_start: datetime | None = None,
    strategies: Sequence[Strategy] = DEFAULT_STRATEGIES,
) -> ForecastResult:
    """
    Forecast the remaining-day balance trajectory.

    Args:
        observations: Today's samples, any order
        daily_budget: Daily quota the subscription balance started from
        day_start: Local midnight of the forecast day (defaults to midnight of
            the last observation's timestamp)
        strategies: Fallback chain, tried in order

    Returns:
        ForecastResult with the observed + predicted series, the predicted
        spend, optional depletion time and a confidence tier
    """
    if not observations:
        return ForecastResult(
            predicted_spent=0.0,
            predicted_end_time=None,
            will_exceed_budget=False,
            prediction_series=[],
            confidence=Confidence.LOW,
        )

    ordered = sorted(observations, key=lambda obs: obs.timestamp)
    last = ordered[-1]
    anchor = _resolve_day_start(last, day_start)

    balances = [obs.balance for obs in ordered]
    pay_as_you_go = [obs.pay_as_you_go_balance or 0.0 for obs in ordered]

    remaining_minutes = (HOURS_PER_DAY - last.hour_of_day) * 60
    step_count = max(0, math.ceil(remaining_minutes / STEP_MINUTES))
    step_scale = sample_step_scale(ordered)

    logger.debug(
        f"Forecasting from {len(ordered)} points: last hour={last.hour_of_day:.3f} "
        f"steps={step_count} step_scale={step_scale:.4f} budget={daily_budget}"
    )

    outcome = _run_chain(strategies, balances, pay_as_you_go, step_count, step_scale)
    if outcome is None:
        logger.debug("No strategy produced predictions, reporting current balance")
        return _insufficient_data_result(last, daily_budget)

    strategy, predicted, predicted_secondary = outcome
    confidence = strategy.confidence_for(len(ordered))

    series: list[ForecastPoint] = [
        ForecastPoint(
            hour_of_day=obs.hour_of_day,
            timestamp=obs.timestamp,
            balance=obs.balance,
            pay_as_you_go_balance=obs.pay_as_you_go_balance,
            is_predicted=False,
        )
        for obs in ordered
    ]

    for i, (value, secondary_value) in enumerate(zip(predicted, predicted_secondary, strict=True), start=1):
        hour = last.hour_of_day + STEP_HOURS * i
        if hour >= HOURS_PER_DAY - _HOUR_TOLERANCE:
            break
        series.append(
            ForecastPoint(
                hour_of_day=hour,
                timestamp=_at_hour(anchor, hour),
                balance=value,
                pay_as_you_go_balance=secondary_value,
                is_predicted=True,
            )
        )

    series.sort(key=lambda point: point.hour_of_day)

    final_balance = predicted[-1]
    predicted_spent = max(0.0, daily_budget - final_balance)
    will_exceed_budget = final_balance <= 0

    predicted_end_time = None
    if will_exceed_budget:
        depletion_index = next(
            (idx for idx, value in enumerate(predicted) if value <= DEPLETION_EPSILON),
            None,
        )
        if depletion_index is not None:
            depletion_hour = last.hour_of_day + STEP_HOURS * (depletion_index + 1)
            if depletion_hour <= HOURS_PER_DAY + _HOUR_TOLERANCE:
                predicted_end_time = _at_hour(anchor, depletion_hour).strftime("%H:%M")

    logger.debug(
        f"Forecast via {strategy.name}: spent={predicted_spent:.2f} exceed={will_exceed_budget} "
        f"end={predicted_end_time} points={len(series)} confidence={confidence.value}"
    )

    return ForecastResult(
        predicted_spent=predicted_spent,
        predicted_end_time=predicted_end_time,
        will_exceed_budget=will_exceed_budget,
        prediction_series=series,
        confidence=confidence,
        strategy=strategy.name,
    )
