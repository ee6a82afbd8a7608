"""
abdash/sanity.py

Parsing and sanity checks for experimentation-platform payloads:
  - per-variation results (samples / conversions / baseline flag / lift)
  - metrics, experiments, campaigns
  - running-experiment split (A/B tests vs personalization experiences)
  - baseline/arm checks before a comparison

Records are pydantic models; the engine itself only sees VariationResult.
"""

import json
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    InstanceOf,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)

from .stats import Lift, VariationResult

logger = logging.getLogger(__name__)

_TIMESTAMP = TypeAdapter(datetime)


# -------------------------
# Raw variation records
# -------------------------

class LiftRecord(BaseModel):
    """Lift block as sent by the platform."""
    value: Optional[float] = None
    is_significant: bool = False
    lift_status: Optional[str] = None
    significance: Optional[float] = None

    def to_lift(self) -> Lift:
        return Lift(
            value=self.value,
            is_significant=self.is_significant,
            lift_status=self.lift_status,
            significance=self.significance,
        )


class VariationRecord(BaseModel):
    samples: int = Field(..., ge=0, description="Units exposed")
    value: int = Field(..., ge=0, description="Units converted")
    is_baseline: bool = False
    name: Optional[str] = Field(None, validation_alias=AliasChoices("name", "variation_name"))
    lift: Optional[LiftRecord] = None

    @field_validator("lift", mode="before")
    @classmethod
    def _empty_lift_is_absent(cls, v):
        return v or None

    @model_validator(mode="after")
    def _conversions_within_samples(self):
        if self.value > self.samples:
            raise ValueError(f"conversions ({self.value}) exceed samples ({self.samples})")
        return self

    def to_result(self, name: Optional[str] = None) -> VariationResult:
        return VariationResult(
            sample_count=self.samples,
            conversion_count=self.value,
            is_baseline=self.is_baseline,
            name=self.name if self.name is not None else name,
            lift=self.lift.to_lift() if self.lift else None,
        )


# -------------------------
# Records
# -------------------------

class Metric(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = "metric"
    results: Dict[str, InstanceOf[VariationResult]] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _fill_name(cls, data):
        if isinstance(data, Mapping) and not data.get("name"):
            data = {**data, "name": data.get("event_name") or "metric"}
        return data

    @field_validator("results", mode="before")
    @classmethod
    def _parse_results(cls, v):
        out = {}
        for variation_id, raw in (v or {}).items():
            if isinstance(raw, VariationResult):
                out[str(variation_id)] = raw
                continue
            try:
                out[str(variation_id)] = VariationRecord.model_validate(raw).to_result(name=str(variation_id))
            except ValidationError as e:
                raise ValueError(f"variation {variation_id!r}: {e}") from e
        return out


class Experiment(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    name: str = ""
    description: Optional[str] = None
    type: Optional[str] = None
    status: Optional[str] = None
    earliest: Optional[datetime] = None
    metrics: Tuple[Metric, ...] = ()
    variations: Tuple[str, ...] = ()
    campaign_id: Optional[str] = None
    shareable_link: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _drop_bad_metrics(cls, data):
        if not isinstance(data, Mapping) or not data.get("metrics"):
            return data
        metrics = []
        for raw in data["metrics"]:
            try:
                metrics.append(Metric.model_validate(raw))
            except ValidationError as e:
                logger.warning("experiment %s: skipping metric: %s", data.get("id"), e)
        return {**data, "metrics": metrics}

    @field_validator("name", mode="before")
    @classmethod
    def _name_or_blank(cls, v):
        return v or ""

    @field_validator("variations", mode="before")
    @classmethod
    def _variation_names(cls, v):
        return [str(x.get("name", "")) if isinstance(x, Mapping) else str(x) for x in v or []]

    @field_validator("earliest", mode="wrap")
    @classmethod
    def _unparsable_start_is_absent(cls, v, handler):
        if v == "":
            return None
        try:
            return handler(v)
        except ValidationError:
            logger.warning("unparsable start timestamp %r, treating as absent", v)
            return None


class Campaign(BaseModel):
    model_config = ConfigDict(frozen=True, coerce_numbers_to_str=True)

    id: str
    name: str = ""
    description: Optional[str] = None
    status: Optional[str] = None


class Payload(BaseModel):
    a_b_tests: List[Experiment] = Field(default_factory=list)
    personalization_campaigns: List[Experiment] = Field(default_factory=list)
    campaigns: List[Campaign] = Field(default_factory=list)


# -------------------------
# Parsers
# -------------------------

def parse_timestamp(raw: Any) -> Optional[datetime]:
    """ISO-8601 -> datetime. Absent or unparsable values give None."""
    if raw is None or raw == "":
        return None
    try:
        return _TIMESTAMP.validate_python(raw)
    except ValidationError:
        logger.warning("unparsable timestamp %r, treating as absent", raw)
        return None


def variation_from_dict(d: Mapping[str, Any], name: Optional[str] = None) -> VariationResult:
    return VariationRecord.model_validate(d).to_result(name=name)


def metric_from_dict(d: Mapping[str, Any]) -> Metric:
    return Metric.model_validate(d)


def experiment_from_dict(d: Mapping[str, Any]) -> Experiment:
    return Experiment.model_validate(d)


def campaign_from_dict(d: Mapping[str, Any]) -> Campaign:
    return Campaign.model_validate(d)


def _parse_many(records: Optional[Iterable[Mapping[str, Any]]], model, kind: str) -> list:
    out = []
    for raw in records or []:
        try:
            out.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning("skipping %s record: %s", kind, e)
    return out


# -------------------------
# Payload shape
# -------------------------

def split_by_type(experiments: Iterable[Experiment]) -> Dict[str, List[Experiment]]:
    """Keep running experiments, split into A/B tests and personalization experiences."""
    out: Dict[str, List[Experiment]] = {"a_b_tests": [], "personalization_campaigns": []}
    for exp in experiments:
        if exp.status != "running":
            continue
        key = "a_b_tests" if exp.type == "a/b" else "personalization_campaigns"
        out[key].append(exp)
    return out


def payload_from_obj(obj: Union[List[Any], Mapping[str, Any]]) -> Payload:
    """
    Accepts either a raw list of experiments (as returned by the experiments
    endpoint) or the processed {"a_b_tests", "personalization_campaigns",
    "campaigns"} shape.
    """
    if isinstance(obj, list):
        split = split_by_type(_parse_many(obj, Experiment, "experiment"))
        return Payload(a_b_tests=split["a_b_tests"],
                       personalization_campaigns=split["personalization_campaigns"])
    if isinstance(obj, Mapping):
        campaigns = [c for c in _parse_many(obj.get("campaigns"), Campaign, "campaign")
                     if c.status in (None, "running")]
        return Payload(
            a_b_tests=_parse_many(obj.get("a_b_tests"), Experiment, "experiment"),
            personalization_campaigns=_parse_many(obj.get("personalization_campaigns"), Experiment, "experiment"),
            campaigns=campaigns,
        )
    raise ValueError(f"Unsupported payload type: {type(obj).__name__}")


def load_payload(path: Union[str, Path]) -> Payload:
    text = Path(path).read_text(encoding="utf-8")
    return payload_from_obj(json.loads(text))


# -------------------------
# Comparison checks
# -------------------------

@dataclass(frozen=True)
class ResultsCheck:
    n_variations: int
    n_baseline: int
    n_treatment: int

    @property
    def comparable(self) -> bool:
        return self.n_baseline >= 1 and self.n_treatment >= 1

    @property
    def ambiguous(self) -> bool:
        """More than one treatment arm: only the first one is compared."""
        return self.n_treatment > 1


def check_results(results: Optional[Mapping[str, VariationResult]]) -> ResultsCheck:
    results = results or {}
    n_baseline = sum(1 for v in results.values() if v.is_baseline)
    return ResultsCheck(
        n_variations=len(results),
        n_baseline=n_baseline,
        n_treatment=len(results) - n_baseline,
    )
