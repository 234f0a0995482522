"""
Category and topic rollups.

Three passes: proposals seed the buckets and count passes, votes fill the
count and voting-power distributions, then pass rates are derived. All
accumulation is commutative (power sums go through ``math.fsum``) so the
output does not depend on the order records arrive in, and per-chain
summaries can be merged into an all-chains summary afterwards.
"""
import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Literal, Optional, Set

from src.data_models.governance_schemas import (
    DISTRIBUTION_OPTIONS,
    CategoryDistribution,
    CategoryHierarchyNode,
    DistributionSummary,
    Proposal,
    TopicDistribution,
    TopicNode,
    Vote,
    VoteOption,
)

from .power_tally import parse_voting_power

logger = logging.getLogger(__name__)

HierarchyBasis = Literal["vote_power", "vote_count"]


def compute_pass_rate(pass_count: int, count: int) -> float:
    """Percentage of passed proposals, 0 for an empty bucket."""
    if count <= 0:
        return 0.0
    return pass_count / count * 100


@dataclass
class _Bucket:
    count: int = 0
    pass_count: int = 0
    vote_counts: Dict[str, int] = field(
        default_factory=lambda: {option.value: 0 for option in DISTRIBUTION_OPTIONS}
    )
    powers: Dict[str, List[float]] = field(
        default_factory=lambda: {option.value: [] for option in DISTRIBUTION_OPTIONS}
    )

    def add_proposal(self, passed: bool) -> None:
        self.count += 1
        if passed:
            self.pass_count += 1

    def add_vote(self, option: VoteOption, power: Optional[float]) -> None:
        self.vote_counts[option.value] += 1
        if power is not None:
            self.powers[option.value].append(power)

    def power_distribution(self) -> Dict[str, float]:
        return {option: math.fsum(values) for option, values in self.powers.items()}


def aggregate_distributions(proposals: Iterable[Proposal], votes: Iterable[Vote]) -> DistributionSummary:
    """
    Build per-category and per-topic distributions.

    Missing labels fall back to "Unknown". Votes on proposals outside the set
    and votes with an OTHER option are ignored. A vote with unparsable power
    still counts in voteDistribution but adds nothing to
    votingPowerDistribution.
    """
    proposals_by_id: Dict[str, Proposal] = {}
    category_buckets: Dict[str, _Bucket] = {}
    topic_buckets: Dict[str, _Bucket] = {}
    topic_categories: Dict[str, Set[str]] = {}

    for proposal in proposals:
        proposals_by_id[proposal.proposal_id] = proposal
        category = proposal.category_label
        topic = proposal.topic_label

        category_buckets.setdefault(category, _Bucket()).add_proposal(proposal.passed)
        topic_buckets.setdefault(topic, _Bucket()).add_proposal(proposal.passed)
        topic_categories.setdefault(topic, set()).add(category)

    ignored = 0
    for vote in votes:
        proposal = proposals_by_id.get(vote.proposal_id)
        if proposal is None or vote.option not in DISTRIBUTION_OPTIONS:
            ignored += 1
            continue
        power = parse_voting_power(vote.voting_power)
        category_buckets[proposal.category_label].add_vote(vote.option, power)
        topic_buckets[proposal.topic_label].add_vote(vote.option, power)

    logger.debug(
        f"[Distributions] {len(category_buckets)} categories, {len(topic_buckets)} topics, "
        f"{ignored} votes ignored"
    )

    categories = {
        name: CategoryDistribution(
            count=bucket.count,
            pass_count=bucket.pass_count,
            pass_rate=compute_pass_rate(bucket.pass_count, bucket.count),
            vote_distribution=dict(bucket.vote_counts),
            voting_power_distribution=bucket.power_distribution(),
        )
        for name, bucket in category_buckets.items()
    }
    topics = {
        name: TopicDistribution(
            count=bucket.count,
            pass_count=bucket.pass_count,
            pass_rate=compute_pass_rate(bucket.pass_count, bucket.count),
            vote_distribution=dict(bucket.vote_counts),
            voting_power_distribution=bucket.power_distribution(),
            # Alphabetically first owner keeps the result order-independent
            category=min(topic_categories[name]),
        )
        for name, bucket in topic_buckets.items()
    }
    return DistributionSummary(categories=categories, topics=topics)


def merge_distribution_summaries(*summaries: DistributionSummary) -> DistributionSummary:
    """Combine summaries built over disjoint proposal sets (e.g. one per chain)."""
    categories: Dict[str, CategoryDistribution] = {}
    topics: Dict[str, TopicDistribution] = {}

    for name in sorted({name for summary in summaries for name in summary.categories}):
        parts = [summary.categories[name] for summary in summaries if name in summary.categories]
        count, pass_count, vote_dist, power_dist = _merge_parts(parts)
        categories[name] = CategoryDistribution(
            count=count,
            pass_count=pass_count,
            pass_rate=compute_pass_rate(pass_count, count),
            vote_distribution=vote_dist,
            voting_power_distribution=power_dist,
        )

    for name in sorted({name for summary in summaries for name in summary.topics}):
        parts = [summary.topics[name] for summary in summaries if name in summary.topics]
        count, pass_count, vote_dist, power_dist = _merge_parts(parts)
        topics[name] = TopicDistribution(
            count=count,
            pass_count=pass_count,
            pass_rate=compute_pass_rate(pass_count, count),
            vote_distribution=vote_dist,
            voting_power_distribution=power_dist,
            category=min(part.category for part in parts),
        )

    return DistributionSummary(categories=categories, topics=topics)


def _merge_parts(parts: List[CategoryDistribution]):
    options = [option.value for option in DISTRIBUTION_OPTIONS]
    count = sum(part.count for part in parts)
    pass_count = sum(part.pass_count for part in parts)
    vote_dist = {option: sum(part.vote_distribution.get(option, 0) for part in parts) for option in options}
    power_dist = {
        option: math.fsum(part.voting_power_distribution.get(option, 0.0) for part in parts)
        for option in options
    }
    return count, pass_count, vote_dist, power_dist


def build_category_hierarchy(
    proposals: Iterable[Proposal],
    votes: Iterable[Vote],
    basis: HierarchyBasis = "vote_power",
) -> List[CategoryHierarchyNode]:
    """
    Category → topic tree for the filter panel, largest categories first.

    With ``vote_power`` the distributions sum parsable voting power per
    option; with ``vote_count`` they sum each proposal's final tally counts.
    """
    proposals = list(proposals)
    votes_by_proposal: Dict[str, List[Vote]] = {}
    if basis == "vote_power":
        for vote in votes:
            votes_by_proposal.setdefault(vote.proposal_id, []).append(vote)

    stats: Dict[str, dict] = {}
    for proposal in proposals:
        category = stats.setdefault(
            proposal.category_label, {"count": 0, "passed": 0, "dist": {}, "topics": {}}
        )
        topic = category["topics"].setdefault(proposal.topic_label, {"count": 0, "passed": 0, "dist": {}})

        for node in (category, topic):
            node["count"] += 1
            if proposal.passed:
                node["passed"] += 1

        for key, value in _proposal_distribution(proposal, votes_by_proposal, basis).items():
            for node in (category, topic):
                node["dist"].setdefault(key, []).append(value)

    hierarchy = []
    for name, data in stats.items():
        topics = [
            TopicNode(
                name=topic_name,
                count=topic_data["count"],
                pass_rate=compute_pass_rate(topic_data["passed"], topic_data["count"]),
                vote_distribution={k: math.fsum(v) for k, v in topic_data["dist"].items()},
            )
            for topic_name, topic_data in data["topics"].items()
        ]
        topics.sort(key=lambda node: (-node.count, node.name))
        hierarchy.append(
            CategoryHierarchyNode(
                name=name,
                count=data["count"],
                pass_rate=compute_pass_rate(data["passed"], data["count"]),
                vote_distribution={k: math.fsum(v) for k, v in data["dist"].items()},
                topics=topics,
            )
        )

    hierarchy.sort(key=lambda node: (-node.count, node.name))
    return hierarchy


def _proposal_distribution(
    proposal: Proposal,
    votes_by_proposal: Dict[str, List[Vote]],
    basis: HierarchyBasis,
) -> Dict[str, float]:
    if basis == "vote_count":
        # final tally keys look like "yes_count", "no_with_veto_count"
        return {
            key.replace("_count", "").upper(): float(value or 0)
            for key, value in proposal.final_tally.items()
        }

    distribution: Dict[str, float] = {}
    for vote in votes_by_proposal.get(proposal.proposal_id, []):
        if vote.option not in DISTRIBUTION_OPTIONS:
            continue
        power = parse_voting_power(vote.voting_power)
        if power is None:
            continue
        distribution[vote.option.value] = distribution.get(vote.option.value, 0.0) + power
    return distribution
