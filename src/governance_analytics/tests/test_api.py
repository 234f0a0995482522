"""Tests for the governance API routes."""
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.config.common_settings import DEFAULT_CHAIN
from src.routers import router
from src.services.analysis_cache import AnalysisCache
from src.services.governance_loader import GovernanceDataLoader
from src.services.governance_service import GovernanceAnalyticsService, get_governance_service


@pytest.fixture
def service(governance_data_dir):
    return GovernanceAnalyticsService(
        loader=GovernanceDataLoader(str(governance_data_dir)),
        cache=AnalysisCache(ttl_minutes=5, max_entries=32),
        supported_chains=["cosmos", "osmosis"],
    )


@pytest.fixture
def client(service):
    app = FastAPI()
    app.include_router(router)
    app.dependency_overrides[get_governance_service] = lambda: service
    return TestClient(app)


class TestChainRoutes:

    def test_list_chains(self, client):
        response = client.get("/governance/chains")
        assert response.status_code == 200
        assert response.json() == {"chains": ["cosmos", "osmosis"]}

    def test_category_summary(self, client):
        response = client.get("/governance/category-summary", params={"chain": "cosmos"})
        assert response.status_code == 200
        economics = response.json()["categories"]["Economics"]
        assert economics["passRate"] == 50.0
        assert economics["voteDistribution"]["NO_VOTE"] == 1

    def test_chain_defaults_to_configured_chain(self, client):
        default = client.get("/governance/category-summary")
        explicit = client.get("/governance/category-summary", params={"chain": DEFAULT_CHAIN})
        assert default.status_code == 200
        assert default.json() == explicit.json()

    def test_unknown_chain_is_404(self, client):
        response = client.get("/governance/category-summary", params={"chain": "terra"})
        assert response.status_code == 404
        assert response.json()["detail"]["error_code"] == 404

    def test_category_hierarchy(self, client):
        response = client.get("/governance/category-hierarchy", params={"chain": "cosmos", "basis": "vote_count"})
        assert response.status_code == 200
        names = [node["name"] for node in response.json()]
        assert names == ["Economics", "Software Upgrade"]
        assert "passRate" in response.json()[0]

    def test_bad_hierarchy_basis_is_400(self, client):
        response = client.get("/governance/category-hierarchy", params={"chain": "cosmos", "basis": "seats"})
        assert response.status_code == 400


class TestFilterRoute:

    def test_filter(self, client):
        response = client.post("/governance/filter", json={"spec": {"chain": "cosmos", "search_term": "alpha"}})
        assert response.status_code == 200
        body = response.json()
        assert body["proposal_count"] == 4
        assert [v["validator_id"] for v in body["validators"]] == ["v1"]
        assert body["participation_rate_dynamic_range"] == [75.0, 100.0]

    def test_invalid_spec_is_rejected(self, client):
        response = client.post(
            "/governance/filter",
            json={"spec": {"chain": "cosmos", "participation_rate_range": [90, 10]}},
        )
        assert response.status_code == 422

    def test_unknown_pinned_validator_is_404(self, client):
        response = client.post(
            "/governance/filter",
            json={"spec": {"chain": "cosmos", "pinned_validator_id": "ghost"}},
        )
        assert response.status_code == 404


class TestSimilarityRoutes:

    def test_similarity(self, client):
        response = client.post("/governance/similarity", json={
            "spec": {"chain": "cosmos"},
            "base_validator_id": "v2",
            "target_validator_id": "v2",
            "options": {"mode": "base", "apply_recency_weight": True},
        })
        assert response.status_code == 200
        assert response.json()["similarity"] == 1.0
        assert response.json()["mode"] == "base"

    def test_rank(self, client):
        response = client.post("/governance/similarity/rank", json={
            "spec": {"chain": "cosmos"},
            "base_validator_id": "v1",
            "limit": 2,
        })
        assert response.status_code == 200
        results = response.json()["results"]
        assert len(results) == 2
        assert results[0]["validator_id"] == "v1"

    def test_unexpected_error_is_500(self, client, service):
        with patch.object(service, "similarity", side_effect=RuntimeError("boom")):
            response = client.post("/governance/similarity", json={
                "spec": {"chain": "cosmos"},
                "base_validator_id": "v1",
                "target_validator_id": "v2",
            })
        assert response.status_code == 500


class TestAdminRoutes:

    def test_cache_stats_and_invalidation(self, client):
        client.get("/governance/category-summary", params={"chain": "cosmos"})
        stats = client.get("/admin/cache-stats").json()
        assert stats["memory_cache_entries"] == 1

        response = client.post("/admin/invalidate-cache")
        assert response.json() == {"invalidated": 1}
