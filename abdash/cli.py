from __future__ import annotations

import argparse
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import Settings, coerce_minimum_duration
from .log import setup_logging
from .sanity import Payload, load_payload, parse_timestamp, payload_from_obj
from .search import search
from .simulate import simulate_payload
from .utils import experiment_report, fmt_days, fmt_pct, fmt_pvalue, metrics_table

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="abdash",
        description="Significance and time-remaining estimates for running experiments.",
    )
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--input", type=str, help="Path to an experiments JSON payload")
    src.add_argument("--demo", action="store_true", help="Use a simulated payload")
    ap.add_argument("--minimum-duration", type=str, default=None,
                    help="Minimum run length in days (clamped to 7..90)")
    ap.add_argument("--query", type=str, default=None, help="Filter experiments by name/metric/variation")
    ap.add_argument("--now", type=str, default=None, help="Reference time (ISO-8601), default: current time")
    ap.add_argument("--seed", type=int, default=7, help="Seed for --demo")
    ap.add_argument("--out-json", type=str, default=None, help="Write a JSON report to this path")
    ap.add_argument("--log-level", type=str, default=None)
    return ap


def run(
    payload: Payload,
    minimum_duration_days: int,
    query: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    found = search(payload, query)
    experiments = found.experiments + found.personalization_campaigns
    reports: List[Dict[str, Any]] = [
        experiment_report(exp, now=now, minimum_duration_days=minimum_duration_days)
        for exp in experiments
    ]
    return {
        "inputs": {
            "minimum_duration_days": minimum_duration_days,
            "query": query,
            "now": now.isoformat() if now else None,
        },
        "total_results": found.total_results,
        "campaigns": [{"id": c.id, "name": c.name} for c in found.campaigns],
        "experiments": reports,
    }


def _print_summary(payload: Payload, report: Dict[str, Any]) -> None:
    by_id = {e.id: e for e in payload.a_b_tests + payload.personalization_campaigns}
    print(f"Minimum duration: {report['inputs']['minimum_duration_days']} days")
    print(f"Results: {report['total_results']}")
    for exp_report in report["experiments"]:
        print(f"\n== {exp_report['name']} ({exp_report['id']})")
        print(f"Running for: {fmt_days(exp_report['running_days'])}")
        table = metrics_table(by_id[exp_report["id"]])
        if not table.empty:
            table["conversion_rate"] = table["conversion_rate"].map(fmt_pct)
            print(table.to_string(index=False))
        for m in exp_report["metrics"]:
            print(f"{m['metric']}: {m['band']} (p={fmt_pvalue(m['verdict']['p_value'])})")
        forecast = exp_report["forecast"]
        print(forecast["label"] if forecast else "Estimated time remaining: unavailable")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings.from_env()
    setup_logging(args.log_level or settings.log_level, settings.log_file)
    logger.debug("settings: %r", settings)

    minimum = settings.minimum_duration_days
    if args.minimum_duration is not None:
        minimum = coerce_minimum_duration(args.minimum_duration, fallback=minimum)

    now = parse_timestamp(args.now) if args.now else None
    if now is None:
        now = datetime.now(timezone.utc)

    if args.demo:
        payload = payload_from_obj(simulate_payload(seed=args.seed, now=now))
    else:
        try:
            payload = load_payload(args.input)
        except (OSError, ValueError) as e:
            # json.JSONDecodeError is a ValueError
            logger.error("could not read %s: %s", args.input, e)
            print(f"error: could not read {args.input}: {e}")
            return 2

    report = run(payload, minimum_duration_days=minimum, query=args.query, now=now)
    _print_summary(payload, report)

    if args.out_json:
        out = Path(args.out_json)
        out.parent.mkdir(parents=True, exist_ok=True)
        out.write_text(json.dumps(report, indent=2, default=str), encoding="utf-8")
        print(f"\nWrote report: {out}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
