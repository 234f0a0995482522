"""
Governance Analytics Core.

Pure, synchronous functions over typed governance records:
- power tallies per proposal
- opinion dispersion weighting
- validator voting similarity (common / base / comprehensive)
- category and topic distributions
- multi-dimensional filtering with participation and power metrics
"""
from .power_tally import build_power_tallies, merge_power_tallies, parse_voting_power
from .dispersion import EPSILON, opinion_dispersion_index
from .similarity import (
    build_vote_map,
    build_vote_maps,
    calculate_similarity,
    rank_validators_by_similarity,
    similarity_breakdown,
)
from .distributions import (
    aggregate_distributions,
    build_category_hierarchy,
    merge_distribution_summaries,
)
from .filters import (
    apply_filters,
    approval_rate_distribution,
    proposal_approval_rate,
    sort_validator_metrics,
)

__all__ = [
    "build_power_tallies",
    "merge_power_tallies",
    "parse_voting_power",
    "EPSILON",
    "opinion_dispersion_index",
    "build_vote_map",
    "build_vote_maps",
    "calculate_similarity",
    "rank_validators_by_similarity",
    "similarity_breakdown",
    "aggregate_distributions",
    "build_category_hierarchy",
    "merge_distribution_summaries",
    "apply_filters",
    "approval_rate_distribution",
    "proposal_approval_rate",
    "sort_validator_metrics",
]
