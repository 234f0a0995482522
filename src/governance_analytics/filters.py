"""
Multi-dimensional filtering over one chain's records.

Proposal-level filters (chain, categories, topics, submit time, approval
rate) narrow the proposal scope first. Validator metrics are then derived
from that scope, and validator-level filters (search, voting power,
participation) are applied last. The pinned validator always survives the
validator-level filters and is flagged instead.
"""
import logging
import math
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from src.data_models.governance_schemas import (
    ApprovalRateBasis,
    FilterResult,
    FilterSpec,
    Proposal,
    Validator,
    ValidatorMetrics,
    ValidatorSortKey,
    Vote,
    VoteOption,
)

from .power_tally import parse_voting_power

logger = logging.getLogger(__name__)

_APPROVAL_EXCLUDED = (VoteOption.ABSTAIN, VoteOption.NO_VOTE)


# ==================
# Proposal scope
# ==================

def proposal_approval_rate(
    proposal: Proposal,
    proposal_votes: Iterable[Vote],
    basis: ApprovalRateBasis = "vote_power",
    exclude_abstain_no_vote: bool = False,
) -> Optional[float]:
    """
    Yes-rate of a proposal in percent, None when there is nothing to divide by.

    ``vote_power`` divides YES power by the power of every vote cast;
    ``vote_count`` reads the proposal's final tally counts.
    """
    if basis == "vote_count":
        tally = proposal.final_tally
        yes = float(tally.get("yes_count") or 0)
        abstain = float(tally.get("abstain_count") or 0)
        total = (
            yes
            + float(tally.get("no_count") or 0)
            + float(tally.get("no_with_veto_count") or 0)
            + abstain
        )
        if exclude_abstain_no_vote:
            total -= abstain
    else:
        yes_powers: List[float] = []
        total_powers: List[float] = []
        for vote in proposal_votes:
            if exclude_abstain_no_vote and vote.option in _APPROVAL_EXCLUDED:
                continue
            power = parse_voting_power(vote.voting_power)
            if power is None:
                continue
            total_powers.append(power)
            if vote.option is VoteOption.YES:
                yes_powers.append(power)
        yes = math.fsum(yes_powers)
        total = math.fsum(total_powers)

    if total <= 0:
        return None
    return yes / total * 100


def approval_rate_distribution(
    proposals: Iterable[Proposal],
    votes: Iterable[Vote],
    basis: ApprovalRateBasis = "vote_power",
    exclude_abstain_no_vote: bool = False,
) -> List[float]:
    """Approval rate of every proposal, 0 where undefined (histogram input)."""
    votes_by_proposal = _group_votes_by_proposal(votes)
    rates = []
    for proposal in proposals:
        rate = proposal_approval_rate(
            proposal,
            votes_by_proposal.get(proposal.proposal_id, []),
            basis=basis,
            exclude_abstain_no_vote=exclude_abstain_no_vote,
        )
        rates.append(rate if rate is not None else 0.0)
    return rates


def scope_proposals(
    proposals: Iterable[Proposal],
    votes: Iterable[Vote],
    spec: FilterSpec,
) -> List[Proposal]:
    """Apply the proposal-level filters of a spec. Votes must already belong to spec.chain."""
    categories = set(spec.categories)
    topics = set(spec.topics)
    approval_active = tuple(spec.approval_rate_range) != (0.0, 100.0)
    votes_by_proposal = _group_votes_by_proposal(votes) if approval_active else {}

    scoped = []
    for proposal in proposals:
        if proposal.chain != spec.chain:
            continue
        if categories and proposal.category_label not in categories:
            continue
        if topics and proposal.topic_label not in topics:
            continue
        if spec.submit_time_range is not None:
            lo, hi = spec.submit_time_range
            if proposal.submit_time is None or not lo <= proposal.submit_time <= hi:
                continue
        if approval_active:
            rate = proposal_approval_rate(
                proposal,
                votes_by_proposal.get(proposal.proposal_id, []),
                basis=spec.approval_rate_basis,
                exclude_abstain_no_vote=spec.exclude_abstain_no_vote,
            )
            lo, hi = spec.approval_rate_range
            # Proposals without a rate only survive a range starting at 0
            if rate is None:
                if lo > 0:
                    continue
            elif not lo <= rate <= hi:
                continue
        scoped.append(proposal)
    return scoped


# ==================
# Validator metrics
# ==================

def eligible_proposal_ids(
    proposal_ids: Iterable[str],
    votes: Iterable[Vote],
    count_no_vote_as_participation: bool = True,
) -> Set[str]:
    """
    Proposals that count toward the participation denominator.

    When NO_VOTE does not count as participation, a proposal whose recorded
    votes are all NO_VOTE (or that has none) is not eligible for anyone.
    """
    proposal_ids = set(proposal_ids)
    if count_no_vote_as_participation:
        return proposal_ids

    with_real_votes = {
        vote.proposal_id
        for vote in votes
        if vote.proposal_id in proposal_ids and vote.option is not VoteOption.NO_VOTE
    }
    return proposal_ids & with_real_votes


def compute_validator_metrics(
    validators: Sequence[Validator],
    proposals: Sequence[Proposal],
    votes: Iterable[Vote],
    count_no_vote_as_participation: bool = True,
    consider_active_period_only: bool = False,
) -> List[ValidatorMetrics]:
    """Metrics for every validator over the given proposal scope, ranked by average power."""
    submit_times = {proposal.proposal_id: proposal.submit_time for proposal in proposals}
    scoped_votes = [vote for vote in votes if vote.proposal_id in submit_times]
    eligible = eligible_proposal_ids(submit_times, scoped_votes, count_no_vote_as_participation)

    votes_by_validator: Dict[str, List[Vote]] = {}
    for vote in scoped_votes:
        votes_by_validator.setdefault(vote.validator_id, []).append(vote)

    metrics = []
    for validator in validators:
        own_votes = votes_by_validator.get(validator.validator_id, [])
        powers = [
            power
            for power in (
                parse_voting_power(vote.voting_power)
                for vote in own_votes
                if vote.option is not VoteOption.NO_VOTE
            )
            if power is not None
        ]
        total_power = math.fsum(powers)

        denominator = eligible
        if consider_active_period_only:
            denominator = _active_period(own_votes, eligible, submit_times)
        participated = {
            vote.proposal_id
            for vote in own_votes
            if count_no_vote_as_participation or vote.option is not VoteOption.NO_VOTE
        }
        participation = len(participated & denominator) / len(denominator) * 100 if denominator else 0.0

        metrics.append(
            ValidatorMetrics(
                validator_id=validator.validator_id,
                chain=validator.chain,
                moniker=validator.moniker,
                address=validator.address,
                avg_power=total_power / len(powers) if powers else 0.0,
                total_power=total_power,
                vote_count=len(own_votes),
                participation_rate=participation,
            )
        )

    return _rank_by_power(metrics)


def _active_period(
    own_votes: List[Vote],
    eligible: Set[str],
    submit_times: Dict[str, Optional[float]],
) -> Set[str]:
    voted_times = [
        submit_times[vote.proposal_id] for vote in own_votes if submit_times.get(vote.proposal_id) is not None
    ]
    if not voted_times:
        return set()
    first = min(voted_times)
    return {
        proposal_id
        for proposal_id in eligible
        if submit_times.get(proposal_id) is not None and submit_times[proposal_id] >= first
    }


def _rank_by_power(metrics: List[ValidatorMetrics]) -> List[ValidatorMetrics]:
    """Competition ranking (1, 2, 2, 4) by avg power, plus the matching percentile."""
    ordered = sorted(metrics, key=lambda m: (-m.avg_power, m.validator_id))
    total = len(ordered)
    ranked = []
    rank = 0
    previous = None
    for position, metric in enumerate(ordered, start=1):
        if metric.avg_power != previous:
            rank = position
            previous = metric.avg_power
        percentile = 100.0 if total == 1 else 100 * (total - rank) / (total - 1)
        ranked.append(metric.model_copy(update={"power_rank": rank, "power_percentile": percentile}))
    return ranked


def _matches_validator_filters(metric: ValidatorMetrics, spec: FilterSpec) -> bool:
    term = spec.search_term.strip().lower()
    if term and term not in (metric.moniker or "").lower():
        return False

    if spec.voting_power_range is not None:
        lo, hi = spec.voting_power_range
        value = metric.power_percentile if spec.voting_power_mode == "percentile" else metric.power_rank
        if not lo <= value <= hi:
            return False

    lo, hi = spec.participation_rate_range
    return lo <= metric.participation_rate <= hi


def _dynamic_ranges(metrics: List[ValidatorMetrics]) -> Tuple[Tuple[float, float], Tuple[float, float]]:
    if not metrics:
        return (0.0, 100.0), (0.0, 0.0)
    rates = [m.participation_rate for m in metrics]
    participation = (float(math.floor(min(rates))), float(math.ceil(max(rates))))
    powered = [m.avg_power for m in metrics if m.avg_power > 0]
    avg_power = (min(powered), max(powered)) if powered else (0.0, 0.0)
    return participation, avg_power


# ==================
# Entry points
# ==================

def apply_filters(
    proposals: Iterable[Proposal],
    validators: Iterable[Validator],
    votes: Iterable[Vote],
    spec: FilterSpec,
) -> FilterResult:
    """
    Narrow one chain's records by a FilterSpec.

    Returns the scoped proposals, the validators that pass every filter (plus
    the pinned one, flagged when it would otherwise be dropped) ordered by
    power rank, and the votes cast on scoped proposals.
    """
    chain_validators = [validator for validator in validators if validator.chain == spec.chain]
    # Proposal ids repeat across chains, so votes are scoped through the chain's validators
    chain_validator_ids = {validator.validator_id for validator in chain_validators}
    votes = [vote for vote in votes if vote.validator_id in chain_validator_ids]
    scoped = scope_proposals(proposals, votes, spec)
    scoped_ids = {proposal.proposal_id for proposal in scoped}
    scoped_votes = [vote for vote in votes if vote.proposal_id in scoped_ids]

    metrics = compute_validator_metrics(
        chain_validators,
        scoped,
        scoped_votes,
        count_no_vote_as_participation=spec.count_no_vote_as_participation,
        consider_active_period_only=spec.consider_active_period_only,
    )

    visible = []
    for metric in metrics:
        if _matches_validator_filters(metric, spec):
            visible.append(metric)
        elif metric.validator_id == spec.pinned_validator_id:
            visible.append(metric.model_copy(update={"is_pinned_and_filtered_out": True}))

    participation_range, avg_power_range = _dynamic_ranges(metrics)
    eligible = eligible_proposal_ids(scoped_ids, scoped_votes, spec.count_no_vote_as_participation)

    logger.debug(
        f"[FilterQuery] chain={spec.chain} proposals={len(scoped)} "
        f"validators={len(visible)}/{len(metrics)} votes={len(scoped_votes)}"
    )
    return FilterResult(
        chain=spec.chain,
        proposals=scoped,
        validators=visible,
        votes=scoped_votes,
        eligible_proposal_count=len(eligible),
        participation_rate_dynamic_range=participation_range,
        avg_power_dynamic_range=avg_power_range,
    )


def sort_validator_metrics(
    metrics: Iterable[ValidatorMetrics],
    key: ValidatorSortKey = "voting_power",
) -> List[ValidatorMetrics]:
    """Order validators for display. Ties fall back to validator id."""
    if key == "vote_count":
        return sorted(metrics, key=lambda m: (-m.vote_count, m.validator_id))
    if key == "name":
        return sorted(metrics, key=lambda m: ((m.moniker or "").lower(), m.validator_id))
    return sorted(metrics, key=lambda m: (-m.avg_power, m.validator_id))


def _group_votes_by_proposal(votes: Iterable[Vote]) -> Dict[str, List[Vote]]:
    grouped: Dict[str, List[Vote]] = {}
    for vote in votes:
        grouped.setdefault(vote.proposal_id, []).append(vote)
    return grouped
