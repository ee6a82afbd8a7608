from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Mapping, Optional

from .stats import SIGNIFICANT_THRESHOLD, VariationResult, evaluate_significance

if TYPE_CHECKING:
    from .sanity import Experiment

logger = logging.getLogger(__name__)

DEFAULT_MINIMUM_DURATION = 14
MIN_ALLOWED_DURATION = 7    # one week
MAX_ALLOWED_DURATION = 90   # three months

# 1 - 0.15: reaching p <= 0.15 from p = 1 fills the power half of the bar.
POWER_PROGRESS_SPAN = 0.85

SECONDS_PER_DAY = 24 * 60 * 60


class LimitingFactor(str, Enum):
    MINIMUM_DURATION = "minimum_duration"
    STATISTICAL_POWER = "statistical_power"


def _as_utc(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts.astimezone(timezone.utc)


def elapsed_days(start_date: datetime, now: Optional[datetime] = None) -> int:
    """Whole days since start_date, floored. Start dates in the future give 0."""
    if now is None:
        now = datetime.now(timezone.utc)
    seconds = (_as_utc(now) - _as_utc(start_date)).total_seconds()
    return max(0, math.floor(seconds / SECONDS_PER_DAY))


@dataclass(frozen=True)
class ExperimentTiming:
    start_date: Optional[datetime]
    elapsed_days: int = 0
    minimum_duration_days: int = DEFAULT_MINIMUM_DURATION

    def __post_init__(self):
        if self.elapsed_days < 0:
            raise ValueError("elapsed_days must be >= 0")
        if not (MIN_ALLOWED_DURATION <= self.minimum_duration_days <= MAX_ALLOWED_DURATION):
            raise ValueError(
                f"minimum_duration_days must be in [{MIN_ALLOWED_DURATION}, {MAX_ALLOWED_DURATION}]"
            )

    @classmethod
    def from_start(
        cls,
        start_date: Optional[datetime],
        now: Optional[datetime] = None,
        minimum_duration_days: int = DEFAULT_MINIMUM_DURATION,
    ) -> "ExperimentTiming":
        days = elapsed_days(start_date, now) if start_date is not None else 0
        return cls(start_date=start_date, elapsed_days=days, minimum_duration_days=minimum_duration_days)


@dataclass(frozen=True)
class ForecastResult:
    days_remaining: int
    completion_percent: int
    limiting_factor: LimitingFactor
    samples_per_day: float
    total_samples: int
    p_value: float
    power_estimable: bool = True

    @property
    def label(self) -> str:
        # Always surfaced as an estimate; never a gating decision.
        if self.days_remaining == 0:
            return f"Estimated complete ({self.completion_percent}%)"
        unit = "day" if self.days_remaining == 1 else "days"
        return f"Estimated ~{self.days_remaining} {unit} remaining ({self.completion_percent}% complete)"


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def estimate_time_remaining(
    timing: ExperimentTiming,
    metric_results: Optional[Mapping[str, VariationResult]],
) -> Optional[ForecastResult]:
    """
    Heuristic days-remaining forecast: the later of the minimum-duration floor
    and a rough sample-count extrapolation toward p <= 0.15.

    Returns None when there is no start date, fewer than two variations,
    or no elapsed day to derive a run rate from.
    """
    if timing.start_date is None:
        return None
    if not metric_results or len(metric_results) < 2:
        return None
    if timing.elapsed_days == 0:
        return None

    elapsed = timing.elapsed_days
    minimum = timing.minimum_duration_days

    total_samples = sum(v.sample_count for v in metric_results.values())
    samples_per_day = total_samples / elapsed
    p_value = evaluate_significance(metric_results, SIGNIFICANT_THRESHOLD).p_value

    minimum_days_remaining = max(0, minimum - elapsed)

    stat_sig_days_remaining = 0
    power_estimable = True
    if p_value > SIGNIFICANT_THRESHOLD:
        if samples_per_day > 0:
            p_value_ratio = p_value / SIGNIFICANT_THRESHOLD
            additional_samples = math.ceil(total_samples * (p_value_ratio - 1) * 0.5)
            stat_sig_days_remaining = math.ceil(additional_samples / samples_per_day)
        else:
            # no traffic yet: only the minimum-duration figure is meaningful
            power_estimable = False
            logger.debug("zero run rate after %d days, skipping power estimate", elapsed)

    if minimum_days_remaining >= stat_sig_days_remaining:
        limiting_factor = LimitingFactor.MINIMUM_DURATION
    else:
        limiting_factor = LimitingFactor.STATISTICAL_POWER
    days_remaining = max(minimum_days_remaining, stat_sig_days_remaining)

    if limiting_factor is LimitingFactor.MINIMUM_DURATION:
        if days_remaining == 0 and power_estimable:
            completion = 100
        else:
            completion = min(99, _round_half_up(elapsed / minimum * 100))
    else:
        duration_progress = min(1.0, elapsed / minimum) * 0.5
        power_progress = min(1.0, max(0.0, (1 - p_value) / POWER_PROGRESS_SPAN)) * 0.5
        completion = min(99, _round_half_up((duration_progress + power_progress) * 100))

    return ForecastResult(
        days_remaining=int(days_remaining),
        completion_percent=int(completion),
        limiting_factor=limiting_factor,
        samples_per_day=float(samples_per_day),
        total_samples=int(total_samples),
        p_value=p_value,
        power_estimable=power_estimable,
    )


def forecast_experiment(
    experiment: "Experiment",
    now: Optional[datetime] = None,
    minimum_duration_days: int = DEFAULT_MINIMUM_DURATION,
) -> Optional[ForecastResult]:
    """Forecast from the experiment's start date and its first metric."""
    if experiment.earliest is None or not experiment.metrics:
        return None
    timing = ExperimentTiming.from_start(experiment.earliest, now, minimum_duration_days)
    return estimate_time_remaining(timing, experiment.metrics[0].results)
