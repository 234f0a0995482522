"""Opinion Dispersion Index: a normalized Herfindahl-Hirschman index over a power tally."""
from src.data_models.governance_schemas import PowerTally

EPSILON = 0.01
_BUCKETS = 4
_MAX_DISPERSION = 1 - 1 / _BUCKETS


def opinion_dispersion_index(tally: PowerTally) -> float:
    """
    Score how evenly power is split across YES/NO/NO_WITH_VETO/ABSTAIN.

    0 + EPSILON when all power sits in one bucket, 1 + EPSILON for a perfect
    four-way split. A tally without power still returns EPSILON so the
    proposal keeps a nonzero weight downstream.
    """
    total = tally.total
    if total <= 0:
        return EPSILON

    hhi = sum((part / total) ** 2 for part in (tally.yes, tally.no, tally.veto, tally.abstain))
    odi = (1 - hhi) / _MAX_DISPERSION
    # Clamp float noise at the extremes
    odi = min(max(odi, 0.0), 1.0)
    return odi + EPSILON
