from fastapi import APIRouter

from src.routers.routes_governance import (
    filter_validators,
    get_analysis_cache_stats,
    get_category_hierarchy,
    get_category_summary,
    get_similarity,
    invalidate_analysis_cache,
    list_chains,
    rank_similarity,
)

governance_router = APIRouter(prefix="/governance", tags=["governance-analytics"])
governance_router.add_api_route("/chains", list_chains, methods=["GET"])
governance_router.add_api_route("/category-summary", get_category_summary, methods=["GET"])
governance_router.add_api_route("/category-hierarchy", get_category_hierarchy, methods=["GET"])
governance_router.add_api_route("/filter", filter_validators, methods=["POST"])
governance_router.add_api_route("/similarity", get_similarity, methods=["POST"])
governance_router.add_api_route("/similarity/rank", rank_similarity, methods=["POST"])

router = APIRouter()
router.include_router(governance_router)
router.add_api_route("/admin/cache-stats", get_analysis_cache_stats, methods=["GET"])
router.add_api_route("/admin/invalidate-cache", invalidate_analysis_cache, methods=["GET", "POST"])
