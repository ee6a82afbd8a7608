"""
abdash/stats.py

Significance engine for conversion experiments.

Dependencies:
  - numpy

What's included:
  - VariationResult / Lift: one arm's counts, plus the upstream lift passthrough
  - normal_cdf: Abramowitz-Stegun approximation of the standard normal CDF
  - evaluate_significance: pooled two-proportion z-test -> SignificanceVerdict
  - Banding helpers used by the dashboard labels and colours

The normal CDF is kept as the polynomial approximation (not scipy.stats.norm)
so p-values match the dashboard's historical numbers.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

import numpy as np

logger = logging.getLogger(__name__)

HIGHLY_SIGNIFICANT_THRESHOLD = 0.05
SIGNIFICANT_THRESHOLD = 0.15


# -------------------------
# Inputs
# -------------------------

@dataclass(frozen=True)
class Lift:
    """Lift as reported by the experimentation platform. Never recomputed here."""
    value: Optional[float] = None
    is_significant: bool = False
    lift_status: Optional[str] = None
    significance: Optional[float] = None


@dataclass(frozen=True)
class VariationResult:
    sample_count: int
    conversion_count: int
    is_baseline: bool = False
    name: Optional[str] = None
    lift: Optional[Lift] = None

    @property
    def conversion_rate(self) -> float:
        if self.sample_count <= 0:
            return 0.0
        return self.conversion_count / self.sample_count


# -------------------------
# Normal CDF
# -------------------------

def normal_cdf(x):
    """
    Standard normal CDF, Abramowitz & Stegun 26.2.17.

    Accepts a scalar (returns float) or an array (returns ndarray).
    Absolute error is ~7.5e-8.
    """
    arr = np.asarray(x, dtype=float)
    t = 1.0 / (1.0 + 0.2316419 * np.abs(arr))
    d = 0.3989423 * np.exp(-arr * arr / 2)
    prob = d * t * (0.3193815 + t * (-0.3565638 + t * (1.781478 + t * (-1.821256 + t * 1.330274))))
    prob = np.where(arr > 0, 1 - prob, prob)
    if prob.ndim == 0:
        return float(prob)
    return prob


# -------------------------
# Verdict
# -------------------------

@dataclass(frozen=True)
class SignificanceVerdict:
    is_significant: bool
    p_value: float
    confidence_percent: float
    z: float = 0.0


NEUTRAL_VERDICT = SignificanceVerdict(is_significant=False, p_value=1.0, confidence_percent=0.0)


def _pick_arms(results: Mapping[str, VariationResult]):
    # First baseline and first non-baseline in iteration order; extra arms are ignored.
    variations = list(results.values())
    baseline = next((v for v in variations if v.is_baseline), None)
    variation = next((v for v in variations if not v.is_baseline), None)
    return baseline, variation


def evaluate_significance(
    results: Optional[Mapping[str, VariationResult]],
    threshold: float = SIGNIFICANT_THRESHOLD,
) -> SignificanceVerdict:
    """
    Pooled two-proportion z-test between the baseline and the first
    non-baseline variation.

    Insufficient or degenerate input returns NEUTRAL_VERDICT (p=1).
    is_significant uses a strict p_value < threshold.
    """
    if not (0 < threshold < 1):
        raise ValueError("threshold must be in (0,1)")

    if not results or len(results) < 2:
        return NEUTRAL_VERDICT

    baseline, variation = _pick_arms(results)
    if baseline is None or variation is None:
        return NEUTRAL_VERDICT

    n1, n2 = baseline.sample_count, variation.sample_count
    x1, x2 = baseline.conversion_count, variation.conversion_count
    if n1 <= 0 or n2 <= 0:
        logger.debug("empty arm (n1=%d, n2=%d), neutral verdict", n1, n2)
        return NEUTRAL_VERDICT

    p1 = x1 / n1
    p2 = x2 / n2
    p_pooled = (x1 + x2) / (n1 + n2)
    variance = p_pooled * (1 - p_pooled) * (1 / n1 + 1 / n2)
    if not variance > 0:
        return NEUTRAL_VERDICT
    se = math.sqrt(variance)

    z = abs(p1 - p2) / se
    p_value = 2 * (1 - normal_cdf(z))
    if not math.isfinite(p_value):
        return NEUTRAL_VERDICT
    p_value = min(1.0, max(0.0, p_value))

    return SignificanceVerdict(
        is_significant=p_value < threshold,
        p_value=p_value,
        confidence_percent=(1 - p_value) * 100,
        z=float(z),
    )


# -------------------------
# Banding (dashboard labels)
# -------------------------

class SignificanceBand(Enum):
    HIGHLY_SIGNIFICANT = ("Highly Significant", "green")
    SIGNIFICANT = ("Significant", "yellow")
    NOT_SIGNIFICANT = ("Not Significant", "red")

    @property
    def label(self) -> str:
        return self.value[0]

    @property
    def color(self) -> str:
        return self.value[1]


def significance_band(p_value: float) -> SignificanceBand:
    if p_value <= HIGHLY_SIGNIFICANT_THRESHOLD:
        return SignificanceBand.HIGHLY_SIGNIFICANT
    if p_value <= SIGNIFICANT_THRESHOLD:
        return SignificanceBand.SIGNIFICANT
    return SignificanceBand.NOT_SIGNIFICANT


def lift_label(is_significant: bool, lift_status: Optional[str]) -> str:
    """Label for the platform's own significance call."""
    if is_significant:
        return "Significant Improvement" if lift_status == "better" else "Significant Decline"
    return "Not Significant"


def lift_color(is_significant: bool, lift_status: Optional[str]) -> str:
    if is_significant:
        return "green" if lift_status == "better" else "red"
    return "yellow"
