"""
Pairwise validator voting similarity.

The score is a weighted agreement rate over a comparison universe of
proposals. Each proposal's weight combines how contested it was (opinion
dispersion), how recent it is (optional), and a bonus when both validators
agreed on a minority position.

Argument order is fixed across the codebase: the reference validator (the one
pinned for inspection) is always ``base`` and the validator being scored is
always ``target``. Only the ``base`` mode is asymmetric, but callers never
swap the two.
"""
import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from src.data_models.governance_schemas import (
    PowerTally,
    Proposal,
    SimilarityMode,
    SimilarityOptions,
    Vote,
    VoteOption,
)

from .dispersion import opinion_dispersion_index

logger = logging.getLogger(__name__)

NOT_VOTED: Optional[VoteOption] = None

FULL_AGREEMENT = 1.0
PARTIAL_ABSTAIN_AGREEMENT = 0.25
MINORITY_THRESHOLD = 0.30

VoteMap = Mapping[str, VoteOption]


@dataclass(frozen=True)
class ProposalContribution:
    """How one proposal entered a similarity score."""
    proposal_id: str
    base_option: Optional[VoteOption]
    target_option: Optional[VoteOption]
    agreement: float
    dispersion: float
    recency: float
    contrarian_bonus: float

    @property
    def weight(self) -> float:
        return (self.dispersion + self.contrarian_bonus) * self.recency


def build_vote_maps(votes: Iterable[Vote]) -> Dict[str, Dict[str, VoteOption]]:
    """
    Group votes into {validator_id: {proposal_id: option}}, latest vote wins.

    Votes with equal timestamps are ordered by option name so the result does
    not depend on input order.
    """
    maps: Dict[str, Dict[str, VoteOption]] = {}
    seen_at: Dict[Tuple[str, str], Tuple[float, str]] = {}
    for vote in votes:
        key = (vote.validator_id, vote.proposal_id)
        stamp = (vote.timestamp if vote.timestamp is not None else float("-inf"), vote.option.value)
        if key in seen_at and stamp < seen_at[key]:
            continue
        seen_at[key] = stamp
        maps.setdefault(vote.validator_id, {})[vote.proposal_id] = vote.option
    return maps


def build_vote_map(votes: Iterable[Vote], validator_id: str) -> Dict[str, VoteOption]:
    """Vote map for a single validator."""
    return build_vote_maps(v for v in votes if v.validator_id == validator_id).get(validator_id, {})


def proposal_recency_ranks(proposals: Iterable[Proposal]) -> Dict[str, int]:
    """1-based rank of each proposal by submission time, oldest first."""
    ordered = sorted(
        proposals,
        key=lambda p: (p.submit_time is not None, p.submit_time or 0.0, p.proposal_id),
    )
    return {proposal.proposal_id: rank for rank, proposal in enumerate(ordered, start=1)}


def agreement_score(
    base_option: Optional[VoteOption],
    target_option: Optional[VoteOption],
    match_abstain_in_similarity: bool = False,
) -> float:
    """1.0 for a match, 0.25 when exactly one side abstained, 0.0 otherwise."""
    if base_option is NOT_VOTED and target_option is NOT_VOTED:
        return 0.0
    if base_option == target_option:
        if base_option is VoteOption.ABSTAIN and not match_abstain_in_similarity:
            return 0.0
        return FULL_AGREEMENT
    if (base_option is VoteOption.ABSTAIN) != (target_option is VoteOption.ABSTAIN):
        return PARTIAL_ABSTAIN_AGREEMENT
    return 0.0


def contrarian_bonus(option: Optional[VoteOption], tally: PowerTally) -> float:
    """Extra weight for a jointly held position backed by under 30% of the power."""
    if option is NOT_VOTED:
        return 0.0
    share = tally.share_of(option)
    if share is None or share >= MINORITY_THRESHOLD:
        return 0.0
    return 1 - share


def comparison_universe(
    base_votes: VoteMap,
    target_votes: VoteMap,
    known_proposal_ids: Iterable[str],
    mode: Union[SimilarityMode, str] = SimilarityMode.COMMON,
) -> set:
    """Proposals considered for a given mode, restricted to the known scope."""
    known = set(known_proposal_ids)
    base_ids = {pid for pid in base_votes if pid in known}
    target_ids = {pid for pid in target_votes if pid in known}

    mode = SimilarityMode(mode)
    if mode is SimilarityMode.COMMON:
        return base_ids & target_ids
    if mode is SimilarityMode.BASE:
        return base_ids
    return base_ids | target_ids


def similarity_breakdown(
    base_votes: VoteMap,
    target_votes: VoteMap,
    proposals: Sequence[Proposal],
    power_tallies: Mapping[str, PowerTally],
    apply_recency_weight: bool = False,
    match_abstain_in_similarity: bool = False,
    mode: Union[SimilarityMode, str] = SimilarityMode.COMMON,
) -> List[ProposalContribution]:
    """Per-proposal contributions in proposal id order."""
    ranks = proposal_recency_ranks(proposals)
    total_known = len(ranks)
    universe = comparison_universe(base_votes, target_votes, ranks, mode)

    contributions: List[ProposalContribution] = []
    for proposal_id in sorted(universe):
        base_option = base_votes.get(proposal_id, NOT_VOTED)
        target_option = target_votes.get(proposal_id, NOT_VOTED)
        if base_option is NOT_VOTED and target_option is NOT_VOTED:
            continue

        tally = power_tallies.get(proposal_id) or PowerTally()
        agreement = agreement_score(base_option, target_option, match_abstain_in_similarity)
        contributions.append(
            ProposalContribution(
                proposal_id=proposal_id,
                base_option=base_option,
                target_option=target_option,
                agreement=agreement,
                dispersion=opinion_dispersion_index(tally),
                recency=ranks[proposal_id] / total_known if apply_recency_weight else 1.0,
                contrarian_bonus=contrarian_bonus(base_option, tally) if agreement == FULL_AGREEMENT else 0.0,
            )
        )
    return contributions


def calculate_similarity(
    base_votes: VoteMap,
    target_votes: VoteMap,
    proposals: Sequence[Proposal],
    power_tallies: Mapping[str, PowerTally],
    apply_recency_weight: bool = False,
    match_abstain_in_similarity: bool = False,
    mode: Union[SimilarityMode, str] = SimilarityMode.COMMON,
) -> float:
    """
    Weighted agreement between two validators.

    Args:
        base_votes: {proposal_id: option} for the reference validator
        target_votes: {proposal_id: option} for the validator being scored
        proposals: every proposal in the current scope; also defines the
            recency ranking, independent of the mode
        power_tallies: {proposal_id: PowerTally} for the same scope
        apply_recency_weight: weight proposal rank r by r/n
        match_abstain_in_similarity: count ABSTAIN == ABSTAIN as agreement
        mode: "common", "base" or "comprehensive"

    Returns:
        Σ(agreement × weight) / Σ(weight), 0 for an empty universe.
    """
    proposals = list(proposals)
    contributions = similarity_breakdown(
        base_votes,
        target_votes,
        proposals,
        power_tallies,
        apply_recency_weight=apply_recency_weight,
        match_abstain_in_similarity=match_abstain_in_similarity,
        mode=mode,
    )
    if not contributions:
        return 0.0

    # Same record on both sides
    if dict(base_votes) == dict(target_votes):
        return 1.0

    weighted_agreement = 0.0
    total_weight = 0.0
    for contribution in contributions:
        weight = contribution.weight
        weighted_agreement += contribution.agreement * weight
        total_weight += weight

    if total_weight <= 0:
        return 0.0
    return weighted_agreement / total_weight


def rank_validators_by_similarity(
    base_validator_id: str,
    validator_ids: Iterable[str],
    votes: Iterable[Vote],
    proposals: Sequence[Proposal],
    power_tallies: Mapping[str, PowerTally],
    options: Optional[SimilarityOptions] = None,
) -> List[Tuple[str, float]]:
    """Score every validator against the base one, most similar first."""
    options = options or SimilarityOptions()
    proposals = list(proposals)
    vote_maps = build_vote_maps(votes)
    base_votes = vote_maps.get(base_validator_id, {})

    scores = [
        (
            validator_id,
            calculate_similarity(
                base_votes,
                vote_maps.get(validator_id, {}),
                proposals,
                power_tallies,
                apply_recency_weight=options.apply_recency_weight,
                match_abstain_in_similarity=options.match_abstain_in_similarity,
                mode=options.mode,
            ),
        )
        for validator_id in validator_ids
    ]
    scores.sort(key=lambda item: (-item[1], item[0]))
    logger.debug(f"[Similarity] Ranked {len(scores)} validators against {base_validator_id}")
    return scores
