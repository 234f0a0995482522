"""
Governance analytics service.

Ties the record loader, the pure analytics functions and the memo cache
together. Every call takes an explicit chain and filter/similarity request;
derived results are memoized by a hash of that request.
"""
from typing import Dict, List, Optional, Tuple

from src.config.common_settings import (
    ANALYSIS_CACHE_MAX_ENTRIES,
    ANALYSIS_CACHE_TTL_MINUTES,
    GOVERNANCE_DATA_DIR,
    SUPPORTED_CHAINS,
)
from src.data_models.governance_schemas import (
    CategoryHierarchyNode,
    ChainDataset,
    DistributionSummary,
    FilterResult,
    FilterSpec,
    PowerTally,
    SimilarityOptions,
    ValidatorMetrics,
    ValidatorSortKey,
)
from src.governance_analytics import (
    aggregate_distributions,
    apply_filters,
    build_category_hierarchy,
    build_power_tallies,
    build_vote_map,
    calculate_similarity,
    rank_validators_by_similarity,
    sort_validator_metrics,
)
from src.governance_analytics.exceptions import (
    ChainDataNotFoundError,
    InvalidFilterError,
    ValidatorNotFoundError,
)
from src.services.analysis_cache import AnalysisCache, build_cache_key
from src.services.governance_loader import GovernanceDataLoader
from src.utils.logger import logger


class GovernanceAnalyticsService:
    """Entry points used by the API router and the precompute script."""

    def __init__(
        self,
        loader: Optional[GovernanceDataLoader] = None,
        cache: Optional[AnalysisCache] = None,
        supported_chains: Optional[List[str]] = None,
    ):
        self.loader = loader or GovernanceDataLoader(GOVERNANCE_DATA_DIR)
        self.cache = cache or AnalysisCache(
            ttl_minutes=ANALYSIS_CACHE_TTL_MINUTES,
            max_entries=ANALYSIS_CACHE_MAX_ENTRIES,
        )
        self.supported_chains = [c.lower() for c in (supported_chains or SUPPORTED_CHAINS)]

    # ------------------------------------------------------------------
    # Chains
    # ------------------------------------------------------------------

    def list_chains(self) -> List[str]:
        """Supported chains that actually have data."""
        available = set(self.loader.available_chains())
        return [chain for chain in self.supported_chains if chain in available]

    def _dataset(self, chain: str) -> ChainDataset:
        chain = (chain or "").lower()
        if chain not in self.supported_chains:
            raise ChainDataNotFoundError(chain)
        return self.loader.load_chain(chain)

    # ------------------------------------------------------------------
    # Filtering
    # ------------------------------------------------------------------

    def filter_validators(
        self,
        spec: FilterSpec,
        sort_key: ValidatorSortKey = "voting_power",
    ) -> FilterResult:
        """Apply a filter spec to its chain, validators ordered by sort_key."""
        spec = spec.model_copy(update={"chain": spec.chain.lower()})
        dataset = self._dataset(spec.chain)

        if spec.pinned_validator_id and not any(
            v.validator_id == spec.pinned_validator_id for v in dataset.validators
        ):
            raise ValidatorNotFoundError(spec.pinned_validator_id, spec.chain)

        key = build_cache_key("filter", {"spec": spec.model_dump(mode="json"), "sort": sort_key})

        def compute() -> FilterResult:
            result = apply_filters(dataset.proposals, dataset.validators, dataset.votes, spec)
            return result.model_copy(update={"validators": sort_validator_metrics(result.validators, sort_key)})

        result = self.cache.get_or_compute(key, compute)
        logger.info(
            f"[GovernanceService] filter chain={spec.chain}: "
            f"{len(result.proposals)} proposals, {len(result.validators)} validators"
        )
        return result

    def _scope(self, spec: FilterSpec) -> Tuple[FilterResult, Dict[str, PowerTally]]:
        result = self.filter_validators(spec)
        tallies = build_power_tallies(result.votes, [p.proposal_id for p in result.proposals])
        return result, tallies

    # ------------------------------------------------------------------
    # Similarity
    # ------------------------------------------------------------------

    def similarity(
        self,
        spec: FilterSpec,
        base_validator_id: str,
        target_validator_id: str,
        options: Optional[SimilarityOptions] = None,
    ) -> float:
        """Similarity of target to base over the filtered proposal scope."""
        options = options or SimilarityOptions()
        result, tallies = self._scope(spec)
        self._require_validators(result.chain, base_validator_id, target_validator_id)

        return calculate_similarity(
            build_vote_map(result.votes, base_validator_id),
            build_vote_map(result.votes, target_validator_id),
            result.proposals,
            tallies,
            apply_recency_weight=options.apply_recency_weight,
            match_abstain_in_similarity=options.match_abstain_in_similarity,
            mode=options.mode,
        )

    def rank_similar_validators(
        self,
        spec: FilterSpec,
        base_validator_id: str,
        options: Optional[SimilarityOptions] = None,
        limit: Optional[int] = None,
    ) -> List[Tuple[ValidatorMetrics, float]]:
        """Visible validators ranked by similarity to the base validator."""
        options = options or SimilarityOptions()
        self._require_validators(spec.chain.lower(), base_validator_id)
        if limit is not None and limit < 1:
            raise InvalidFilterError("limit must be a positive integer")

        key = build_cache_key(
            "similarity_rank",
            {
                "spec": spec.model_dump(mode="json"),
                "base": base_validator_id,
                "options": options.model_dump(mode="json"),
            },
        )

        def compute() -> List[Tuple[ValidatorMetrics, float]]:
            result, tallies = self._scope(spec)
            by_id = {metric.validator_id: metric for metric in result.validators}
            ranked = rank_validators_by_similarity(
                base_validator_id,
                list(by_id),
                result.votes,
                result.proposals,
                tallies,
                options,
            )
            return [(by_id[validator_id], score) for validator_id, score in ranked]

        ranked = self.cache.get_or_compute(key, compute)
        return ranked[:limit] if limit is not None else list(ranked)

    def _require_validators(self, chain: str, *validator_ids: str) -> None:
        known = {v.validator_id for v in self._dataset(chain).validators}
        for validator_id in validator_ids:
            if validator_id not in known:
                raise ValidatorNotFoundError(validator_id, chain)

    # ------------------------------------------------------------------
    # Distributions
    # ------------------------------------------------------------------

    def category_summary(self, chain: str) -> DistributionSummary:
        """Category/topic distributions over every record of a chain."""
        dataset = self._dataset(chain)
        key = build_cache_key("category_summary", {"chain": dataset.chain})
        return self.cache.get_or_compute(
            key, lambda: aggregate_distributions(dataset.proposals, dataset.votes)
        )

    def category_hierarchy(self, chain: str, basis: str = "vote_power") -> List[CategoryHierarchyNode]:
        """Category → topic tree for a chain."""
        if basis not in ("vote_power", "vote_count"):
            raise InvalidFilterError(f"Unknown hierarchy basis '{basis}'")
        dataset = self._dataset(chain)
        key = build_cache_key("category_hierarchy", {"chain": dataset.chain, "basis": basis})
        return self.cache.get_or_compute(
            key, lambda: build_category_hierarchy(dataset.proposals, dataset.votes, basis)
        )


_service: Optional[GovernanceAnalyticsService] = None


def get_governance_service() -> GovernanceAnalyticsService:
    """Process-wide service instance (FastAPI dependency)."""
    global _service
    if _service is None:
        _service = GovernanceAnalyticsService()
    return _service
