# tests/test_sanity.py
import json
import logging
from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from abdash.sanity import (
    Payload,
    check_results,
    experiment_from_dict,
    load_payload,
    metric_from_dict,
    parse_timestamp,
    payload_from_obj,
    split_by_type,
    variation_from_dict,
)
from abdash.stats import Lift, VariationResult


def _raw_experiment(exp_id="1", exp_type="a/b", status="running", **extra):
    d = {
        "id": exp_id,
        "name": f"Checkout test {exp_id}",
        "type": exp_type,
        "status": status,
        "earliest": "2024-03-01T08:00:00Z",
        "variations": [{"variation_id": "11", "name": "Original"}, {"variation_id": "12", "name": "Green button"}],
        "metrics": [{
            "name": "Purchases",
            "results": {
                "11": {"samples": 1000, "value": 100, "is_baseline": True},
                "12": {"samples": 1000, "value": 150, "is_baseline": False,
                       "lift": {"value": 0.5, "is_significant": True, "lift_status": "better", "significance": 99.2}},
            },
        }],
    }
    d.update(extra)
    return d


def test_variation_from_dict_basic():
    res = variation_from_dict({"samples": 500, "value": 40.0, "is_baseline": True}, name="11")
    assert res == VariationResult(sample_count=500, conversion_count=40, is_baseline=True, name="11")


def test_variation_lift_is_passed_through():
    raw = {"samples": 10, "value": 1, "lift": {"value": -0.1, "is_significant": False,
                                                "lift_status": "worse", "significance": 12.5}}
    res = variation_from_dict(raw)
    assert res.lift == Lift(value=-0.1, is_significant=False, lift_status="worse", significance=12.5)
    assert not res.is_baseline


@pytest.mark.parametrize("raw", [
    {"value": 1},
    {"samples": -1, "value": 0},
    {"samples": 10, "value": 11},
    {"samples": 10.5, "value": 1},
    {"samples": "lots", "value": 1},
])
def test_variation_from_dict_rejects_bad_counts(raw):
    with pytest.raises(ValidationError):
        variation_from_dict(raw)


def test_metric_error_names_variation():
    with pytest.raises(ValueError, match="variation '12'"):
        metric_from_dict({"name": "Clicks", "results": {"12": {"samples": 1, "value": 5}}})


def test_experiment_from_dict():
    exp = experiment_from_dict(_raw_experiment())
    assert exp.id == "1"
    assert exp.earliest == datetime(2024, 3, 1, 8, tzinfo=timezone.utc)
    assert exp.variations == ("Original", "Green button")
    assert len(exp.metrics) == 1
    assert exp.metrics[0].results["12"].lift.lift_status == "better"


def test_experiment_skips_bad_metric(caplog):
    raw = _raw_experiment()
    raw["metrics"].append({"name": "Broken", "results": {"x": {"samples": 1, "value": 2}}})
    with caplog.at_level(logging.WARNING, logger="abdash.sanity"):
        exp = experiment_from_dict(raw)
    assert [m.name for m in exp.metrics] == ["Purchases"]
    assert "skipping metric" in caplog.text


def test_experiment_requires_id():
    with pytest.raises(ValidationError):
        experiment_from_dict({"name": "no id"})


def test_parse_timestamp():
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("not a date") is None
    assert parse_timestamp("2024-01-02T03:04:05+00:00") == datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


def test_split_by_type_keeps_running_only():
    exps = [
        experiment_from_dict(_raw_experiment("1")),
        experiment_from_dict(_raw_experiment("2", exp_type="personalization")),
        experiment_from_dict(_raw_experiment("3", status="paused")),
    ]
    out = split_by_type(exps)
    assert [e.id for e in out["a_b_tests"]] == ["1"]
    assert [e.id for e in out["personalization_campaigns"]] == ["2"]


def test_payload_from_list_skips_bad_records():
    payload = payload_from_obj([_raw_experiment("1"), {"name": "missing id"}])
    assert [e.id for e in payload.a_b_tests] == ["1"]
    assert payload.personalization_campaigns == []


def test_payload_from_processed_shape():
    obj = {
        "a_b_tests": [_raw_experiment("1")],
        "personalization_campaigns": [_raw_experiment("2", exp_type="personalization", campaign_id=77)],
        "campaigns": [{"id": 77, "name": "Homepage", "status": "running"},
                      {"id": 78, "name": "Old", "status": "archived"}],
    }
    payload = payload_from_obj(obj)
    assert payload.personalization_campaigns[0].campaign_id == "77"
    assert [c.id for c in payload.campaigns] == ["77"]


def test_payload_rejects_scalars():
    with pytest.raises(ValueError):
        payload_from_obj("nope")


def test_load_payload(tmp_path):
    path = tmp_path / "experiments.json"
    path.write_text(json.dumps([_raw_experiment("5")]), encoding="utf-8")
    payload = load_payload(path)
    assert isinstance(payload, Payload)
    assert payload.a_b_tests[0].name == "Checkout test 5"


def test_check_results_flags_extra_arms():
    results = {
        "a": VariationResult(10, 1, is_baseline=True),
        "b": VariationResult(10, 2),
        "c": VariationResult(10, 3),
    }
    check = check_results(results)
    assert check.comparable
    assert check.ambiguous
    assert check.n_treatment == 2

    empty = check_results(None)
    assert not empty.comparable
    assert not empty.ambiguous


def test_numeric_ids_and_string_counts_are_coerced():
    raw = _raw_experiment(exp_id=42, campaign_id=7)
    raw["metrics"][0]["results"]["11"]["samples"] = "1000"
    exp = experiment_from_dict(raw)
    assert exp.id == "42"
    assert exp.campaign_id == "7"
    assert exp.metrics[0].results["11"].sample_count == 1000


def test_bad_start_timestamp_is_absent(caplog):
    with caplog.at_level(logging.WARNING, logger="abdash.sanity"):
        exp = experiment_from_dict(_raw_experiment(earliest="last tuesday"))
    assert exp.earliest is None
    assert "unparsable start timestamp" in caplog.text
    assert experiment_from_dict(_raw_experiment(earliest="")).earliest is None


def test_metric_name_falls_back_to_event_name():
    assert metric_from_dict({"event_name": "add_to_cart", "results": {}}).name == "add_to_cart"
    assert metric_from_dict({"results": {}}).name == "metric"


def test_variation_name_alias():
    res = variation_from_dict({"samples": 5, "value": 1, "variation_name": "Blue"}, name="13")
    assert res.name == "Blue"
