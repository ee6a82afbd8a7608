from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Sequence

import numpy as np


def _rng(seed: Optional[int] = None) -> np.random.Generator:
    return np.random.default_rng(seed)


def simulate_experiment(
    experiment_id: str = "1",
    name: str = "Simulated experiment",
    days: int = 10,
    daily_samples: int = 400,
    p_baseline: float = 0.10,
    uplifts_pp: Sequence[float] = (0.01,),   # absolute uplift per treatment arm
    metric_name: str = "purchase",
    experiment_type: str = "a/b",
    now: Optional[datetime] = None,
    seed: Optional[int] = 42,
    rng: Optional[np.random.Generator] = None,
) -> Dict[str, Any]:
    """
    Return one raw experiment record in the platform's results shape:
    {"id", "name", "type", "status", "earliest", "variations", "metrics": [{"name", "results"}]}

    Traffic is split evenly across arms; conversions are binomial draws.
    """
    if days < 0 or daily_samples < 0:
        raise ValueError("days and daily_samples must be >= 0")
    rates = [p_baseline] + [p_baseline + u for u in uplifts_pp]
    if any(not (0.0 <= p <= 1.0) for p in rates):
        raise ValueError("conversion rates must be in [0,1]")

    rng = rng or _rng(seed)
    now = now or datetime.now(timezone.utc)
    n_arms = len(rates)
    per_arm = (days * daily_samples) // n_arms

    results: Dict[str, Dict[str, Any]] = {}
    variations = []
    for i, p in enumerate(rates):
        variation_id = f"{experiment_id}-{i}"
        arm_name = "Original" if i == 0 else f"Variation #{i}"
        conversions = int(rng.binomial(per_arm, p)) if per_arm > 0 else 0
        results[variation_id] = {
            "name": arm_name,
            "samples": per_arm,
            "value": conversions,
            "is_baseline": i == 0,
        }
        variations.append({"variation_id": variation_id, "name": arm_name})

    return {
        "id": experiment_id,
        "name": name,
        "type": experiment_type,
        "status": "running",
        "earliest": (now - timedelta(days=days)).isoformat(),
        "variations": variations,
        "metrics": [{"name": metric_name, "results": results}],
    }


def simulate_payload(
    n_experiments: int = 5,
    seed: Optional[int] = 7,
    now: Optional[datetime] = None,
    max_days: int = 30,
) -> List[Dict[str, Any]]:
    """Several experiments with random age, traffic and effect size."""
    rng = _rng(seed)
    now = now or datetime.now(timezone.utc)
    out = []
    for i in range(n_experiments):
        p = float(rng.uniform(0.02, 0.2))
        uplift = float(np.clip(rng.normal(0.0, 0.01), -p, 1.0 - p))
        out.append(simulate_experiment(
            experiment_id=str(1000 + i),
            name=f"Simulated experiment {i + 1}",
            days=int(rng.integers(1, max_days + 1)),
            daily_samples=int(rng.integers(50, 2000)),
            p_baseline=p,
            uplifts_pp=(uplift,),
            now=now,
            rng=rng,
        ))
    return out
