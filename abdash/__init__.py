"""
abdash: significance verdicts and time-remaining estimates for running
A/B tests and personalization campaigns.

Public API is re-exported here for convenience.
"""

from importlib.metadata import PackageNotFoundError, version as _version

# ---- Version ----
try:
    __version__ = _version("abdash")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"

# ---- Re-exports ----
# Significance
from .stats import (  # noqa: F401
    Lift,
    VariationResult,
    SignificanceVerdict,
    SignificanceBand,
    normal_cdf,
    evaluate_significance,
    significance_band,
)

# Time remaining
from .power import (  # noqa: F401
    ExperimentTiming,
    ForecastResult,
    LimitingFactor,
    estimate_time_remaining,
    forecast_experiment,
)

# Payloads
from .sanity import (  # noqa: F401
    Experiment,
    Metric,
    Campaign,
    load_payload,
    check_results,
)

__all__ = [
    "__version__",
    # stats
    "Lift",
    "VariationResult",
    "SignificanceVerdict",
    "SignificanceBand",
    "normal_cdf",
    "evaluate_significance",
    "significance_band",
    # power
    "ExperimentTiming",
    "ForecastResult",
    "LimitingFactor",
    "estimate_time_remaining",
    "forecast_experiment",
    # sanity
    "Experiment",
    "Metric",
    "Campaign",
    "load_payload",
    "check_results",
]
