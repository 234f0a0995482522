"""
Per-proposal power tallies.

A tally is a pure function of a proposal and the votes cast on it: the
voting power behind YES, NO, NO_WITH_VETO and ABSTAIN. NO_VOTE and OTHER
never carry power, and neither does a vote whose power cannot be parsed.
"""
import logging
import math
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional

from src.data_models.governance_schemas import PowerTally, TALLY_OPTIONS, Vote, VoteOption

logger = logging.getLogger(__name__)


def parse_voting_power(raw: Any) -> Optional[float]:
    """Return a finite non-negative power, or None when the value is unusable."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        power = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(power) or power < 0:
        return None
    return power


def build_power_tallies(votes: Iterable[Vote], proposal_ids: Iterable[str]) -> Dict[str, PowerTally]:
    """
    Sum voting power per option for every known proposal.

    Votes on proposals outside ``proposal_ids`` are ignored. Every known
    proposal gets an entry, all zeros when nothing qualified.
    """
    known = set(proposal_ids)
    buckets: Dict[str, Dict[VoteOption, List[float]]] = defaultdict(lambda: defaultdict(list))
    skipped = 0

    for vote in votes:
        if vote.proposal_id not in known:
            skipped += 1
            continue
        if vote.option not in TALLY_OPTIONS:
            continue
        power = parse_voting_power(vote.voting_power)
        if power is None:
            skipped += 1
            continue
        buckets[vote.proposal_id][vote.option].append(power)

    tallies = {proposal_id: _to_tally(buckets.get(proposal_id, {})) for proposal_id in known}
    logger.debug(f"[PowerTally] Built {len(tallies)} tallies, skipped {skipped} votes")
    return tallies


def _to_tally(bucket: Dict[VoteOption, List[float]]) -> PowerTally:
    # fsum keeps the result independent of vote order
    return PowerTally(
        yes=math.fsum(bucket.get(VoteOption.YES, ())),
        no=math.fsum(bucket.get(VoteOption.NO, ())),
        veto=math.fsum(bucket.get(VoteOption.NO_WITH_VETO, ())),
        abstain=math.fsum(bucket.get(VoteOption.ABSTAIN, ())),
    )


def merge_power_tallies(*partials: Dict[str, PowerTally]) -> Dict[str, PowerTally]:
    """Merge tallies computed over disjoint vote shards."""
    merged: Dict[str, PowerTally] = {}
    for partial in partials:
        for proposal_id, tally in partial.items():
            current = merged.get(proposal_id)
            if current is None:
                merged[proposal_id] = tally
                continue
            merged[proposal_id] = PowerTally(
                yes=current.yes + tally.yes,
                no=current.no + tally.no,
                veto=current.veto + tally.veto,
                abstain=current.abstain + tally.abstain,
            )
    return merged
