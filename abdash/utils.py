"""
abdash/utils.py

Reporting helpers used by the CLI:
  - Per-variation metrics table (pandas)
  - Per-experiment report dict (verdicts + forecast)
  - Formatting for console output
"""

from __future__ import annotations

import logging
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

import pandas as pd

from .power import DEFAULT_MINIMUM_DURATION, elapsed_days, forecast_experiment
from .sanity import Experiment, check_results
from .stats import (
    SIGNIFICANT_THRESHOLD,
    SignificanceBand,
    evaluate_significance,
    lift_label,
    significance_band,
)

logger = logging.getLogger(__name__)

TABLE_COLUMNS = [
    "experiment", "metric", "variation", "is_baseline", "samples", "conversions",
    "conversion_rate", "lift", "platform_significance", "platform_label",
    "p_value", "significance",
]


# -------------------------
# Tables
# -------------------------

def metrics_table(experiment: Experiment) -> pd.DataFrame:
    """
    One row per metric x variation. Platform lift columns are passed through
    as reported; p_value / significance come from the local z-test.
    """
    rows: List[Dict[str, Any]] = []
    for metric in experiment.metrics:
        verdict = evaluate_significance(metric.results, SIGNIFICANT_THRESHOLD)
        band = significance_band(verdict.p_value)
        for variation_id, res in metric.results.items():
            lift = res.lift
            rows.append({
                "experiment": experiment.name,
                "metric": metric.name,
                "variation": res.name or variation_id,
                "is_baseline": res.is_baseline,
                "samples": res.sample_count,
                "conversions": res.conversion_count,
                "conversion_rate": res.conversion_rate,
                "lift": lift.value if lift else None,
                "platform_significance": lift.significance if lift else None,
                "platform_label": lift_label(lift.is_significant, lift.lift_status) if lift else None,
                "p_value": verdict.p_value,
                "significance": band.label,
            })
    return pd.DataFrame(rows, columns=TABLE_COLUMNS)


# -------------------------
# Report dicts
# -------------------------

def experiment_report(
    experiment: Experiment,
    now: Optional[datetime] = None,
    minimum_duration_days: int = DEFAULT_MINIMUM_DURATION,
) -> Dict[str, Any]:
    metrics = []
    for metric in experiment.metrics:
        check = check_results(metric.results)
        if check.ambiguous:
            logger.info(
                "experiment %s, metric %r: %d treatment arms, comparing the first only",
                experiment.id, metric.name, check.n_treatment,
            )
        verdict = evaluate_significance(metric.results, SIGNIFICANT_THRESHOLD)
        band = significance_band(verdict.p_value)
        metrics.append({
            "metric": metric.name,
            "verdict": as_report_dict(verdict),
            "highly_significant": band is SignificanceBand.HIGHLY_SIGNIFICANT,
            "band": band.label,
            "compared_arms_only": check.ambiguous,
        })

    forecast = forecast_experiment(experiment, now=now, minimum_duration_days=minimum_duration_days)
    running_days = elapsed_days(experiment.earliest, now) if experiment.earliest else None

    return {
        "id": experiment.id,
        "name": experiment.name,
        "type": experiment.type,
        "running_days": running_days,
        "shareable_link": experiment.shareable_link,
        "metrics": metrics,
        "forecast": None if forecast is None else {**as_report_dict(forecast), "label": forecast.label},
    }


def as_report_dict(obj) -> Dict:
    """
    Convert dataclass or dict-like result to a plain JSON-friendly dict.
    """
    if is_dataclass(obj):
        return {k: (v.value if isinstance(v, Enum) else v) for k, v in asdict(obj).items()}
    if isinstance(obj, dict):
        return obj
    raise TypeError("Expected dataclass or dict.")


# -------------------------
# Formatting
# -------------------------

def fmt_pct(x: float, digits: int = 2) -> str:
    return f"{100.0 * x:.{digits}f}%"


def fmt_pvalue(p: float) -> str:
    if p < 1e-4:
        return "<1e-4"
    return f"{p:.4f}"


def fmt_days(days: Optional[int]) -> str:
    if days is None:
        return "unknown"
    if days == 0:
        return "<1 day"
    return f"{days} day" if days == 1 else f"{days} days"
