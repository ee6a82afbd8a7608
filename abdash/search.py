from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional

from .sanity import Campaign, Experiment, Payload


@dataclass(frozen=True)
class SearchResults:
    experiments: List[Experiment] = field(default_factory=list)
    campaigns: List[Campaign] = field(default_factory=list)
    personalization_campaigns: List[Experiment] = field(default_factory=list)
    total_results: int = 0


def _contains(text: Optional[str], query: str) -> bool:
    return bool(text) and query in text.lower()


def experiment_matches(experiment: Experiment, query: str) -> bool:
    """Case-insensitive match on name, description, metric and variation names."""
    q = query.lower()
    if _contains(experiment.name, q) or _contains(experiment.description, q):
        return True
    if any(_contains(m.name, q) for m in experiment.metrics):
        return True
    return any(_contains(v, q) for v in experiment.variations)


def filter_experiments(experiments: Iterable[Experiment], query: Optional[str]) -> List[Experiment]:
    experiments = list(experiments)
    if not query:
        return experiments
    return [e for e in experiments if experiment_matches(e, query)]


def filter_campaigns(
    campaigns: Iterable[Campaign],
    experiences: Iterable[Experiment],
    query: Optional[str],
) -> List[Campaign]:
    """A campaign matches on its own name/description or through any of its experiences."""
    campaigns = list(campaigns)
    if not query:
        return campaigns
    q = query.lower()
    experiences = list(experiences)

    out = []
    for campaign in campaigns:
        if _contains(campaign.name, q) or _contains(campaign.description, q):
            out.append(campaign)
            continue
        linked = (e for e in experiences if e.campaign_id == campaign.id)
        if any(experiment_matches(e, q) for e in linked):
            out.append(campaign)
    return out


def search(payload: Payload, query: Optional[str]) -> SearchResults:
    experiments = filter_experiments(payload.a_b_tests, query)
    experiences = filter_experiments(payload.personalization_campaigns, query)
    campaigns = filter_campaigns(payload.campaigns, payload.personalization_campaigns, query)

    # experiences only count toward the total while searching
    total = len(experiments) + len(campaigns) + (len(experiences) if query else 0)
    return SearchResults(
        experiments=experiments,
        campaigns=campaigns,
        personalization_campaigns=experiences,
        total_results=total,
    )
