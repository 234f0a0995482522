from typing import List, Optional

from fastapi import Depends, HTTPException, Query
from pydantic import BaseModel, Field

from src.config.common_settings import DEFAULT_CHAIN
from src.data_models.governance_schemas import FilterSpec, SimilarityOptions, ValidatorSortKey
from src.governance_analytics.exceptions import GovernanceAnalyticsError
from src.services.governance_service import GovernanceAnalyticsService, get_governance_service
from src.utils.logger import logger


class FilterRequest(BaseModel):
    """Filter one chain and return the visible validators with their metrics."""
    spec: FilterSpec = Field(..., description="Filter specification; chain is required")
    sort_key: ValidatorSortKey = Field("voting_power", description="vote_count, name or voting_power")


class SimilarityRequest(BaseModel):
    """Similarity of one validator (target) to a reference validator (base)."""
    spec: FilterSpec = Field(..., description="Scope the comparison is computed over")
    base_validator_id: str = Field(..., min_length=1, description="Reference validator")
    target_validator_id: str = Field(..., min_length=1, description="Validator being scored")
    options: SimilarityOptions = Field(default_factory=SimilarityOptions)


class SimilarityRankRequest(BaseModel):
    """Rank every visible validator by similarity to a reference validator."""
    spec: FilterSpec = Field(..., description="Scope the comparison is computed over")
    base_validator_id: str = Field(..., min_length=1, description="Reference validator")
    options: SimilarityOptions = Field(default_factory=SimilarityOptions)
    limit: Optional[int] = Field(None, ge=1, description="Return only the top N validators")


def _to_http(e: Exception, action: str) -> HTTPException:
    if isinstance(e, GovernanceAnalyticsError):
        if e.code >= 500:
            logger.error(f"[GovernanceAPI] {action} failed: {e.message}")
        return HTTPException(status_code=e.code, detail=e.to_dict())
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    logger.error(f"[GovernanceAPI] {action} failed: {e}", exc_info=True)
    return HTTPException(status_code=500, detail=str(e))


def list_chains(service: GovernanceAnalyticsService = Depends(get_governance_service)) -> dict:
    """Chains with governance data."""
    try:
        return {"chains": service.list_chains()}
    except Exception as e:
        raise _to_http(e, "list chains")


def get_category_summary(
    chain: str = Query(DEFAULT_CHAIN, min_length=1),
    service: GovernanceAnalyticsService = Depends(get_governance_service),
) -> dict:
    """Category and topic distributions for a chain."""
    try:
        return service.category_summary(chain).to_json_dict()
    except Exception as e:
        raise _to_http(e, "category summary")


def get_category_hierarchy(
    chain: str = Query(DEFAULT_CHAIN, min_length=1),
    basis: str = Query("vote_power", description="vote_power or vote_count"),
    service: GovernanceAnalyticsService = Depends(get_governance_service),
) -> List[dict]:
    """Category → topic tree for a chain."""
    try:
        return [node.model_dump(by_alias=True) for node in service.category_hierarchy(chain, basis)]
    except Exception as e:
        raise _to_http(e, "category hierarchy")


def filter_validators(
    payload: FilterRequest,
    service: GovernanceAnalyticsService = Depends(get_governance_service),
) -> dict:
    """Apply a filter spec and return scoped proposals and validator metrics."""
    try:
        result = service.filter_validators(payload.spec, payload.sort_key)
        return {
            "chain": result.chain,
            "proposal_count": len(result.proposals),
            "vote_count": len(result.votes),
            "eligible_proposal_count": result.eligible_proposal_count,
            "validators": [metric.model_dump() for metric in result.validators],
            "participation_rate_dynamic_range": list(result.participation_rate_dynamic_range),
            "avg_power_dynamic_range": list(result.avg_power_dynamic_range),
        }
    except Exception as e:
        raise _to_http(e, "filter")


def get_similarity(
    payload: SimilarityRequest,
    service: GovernanceAnalyticsService = Depends(get_governance_service),
) -> dict:
    """Weighted voting similarity between two validators."""
    try:
        score = service.similarity(
            payload.spec, payload.base_validator_id, payload.target_validator_id, payload.options
        )
        return {
            "base_validator_id": payload.base_validator_id,
            "target_validator_id": payload.target_validator_id,
            "mode": payload.options.mode.value,
            "similarity": score,
        }
    except Exception as e:
        raise _to_http(e, "similarity")


def rank_similarity(
    payload: SimilarityRankRequest,
    service: GovernanceAnalyticsService = Depends(get_governance_service),
) -> dict:
    """Validators ordered by similarity to the base validator."""
    try:
        ranked = service.rank_similar_validators(
            payload.spec, payload.base_validator_id, payload.options, payload.limit
        )
        return {
            "base_validator_id": payload.base_validator_id,
            "mode": payload.options.mode.value,
            "results": [
                {"validator_id": metric.validator_id, "moniker": metric.moniker, "similarity": score}
                for metric, score in ranked
            ],
        }
    except Exception as e:
        raise _to_http(e, "similarity rank")


def get_analysis_cache_stats(service: GovernanceAnalyticsService = Depends(get_governance_service)) -> dict:
    """Memo cache statistics for monitoring."""
    try:
        return service.cache.get_cache_stats()
    except Exception as e:
        raise _to_http(e, "cache stats")


def invalidate_analysis_cache(service: GovernanceAnalyticsService = Depends(get_governance_service)) -> dict:
    """Drop every memoized result."""
    try:
        return {"invalidated": service.cache.invalidate()}
    except Exception as e:
        raise _to_http(e, "cache invalidation")
