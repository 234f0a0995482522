"""Unit tests for the filter query engine."""
import pytest
from pydantic import ValidationError

from src.data_models.governance_schemas import FilterSpec

from ..filters import (
    apply_filters,
    approval_rate_distribution,
    compute_validator_metrics,
    eligible_proposal_ids,
    proposal_approval_rate,
    scope_proposals,
    sort_validator_metrics,
)
from .conftest import make_proposal, make_validator, make_vote


def _by_id(result):
    return {metric.validator_id: metric for metric in result.validators}


class TestFilterSpec:

    def test_defaults(self):
        spec = FilterSpec(chain="cosmos")
        assert spec.count_no_vote_as_participation is True
        assert spec.approval_rate_range == (0.0, 100.0)
        assert spec.voting_power_mode == "percentile"

    def test_chain_is_required(self):
        with pytest.raises(ValidationError):
            FilterSpec(chain="")

    def test_inverted_range_rejected(self):
        with pytest.raises(ValidationError):
            FilterSpec(chain="cosmos", participation_rate_range=(80, 20))


class TestValidatorMetrics:

    def test_default_metrics(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        metrics = _by_id(apply_filters(proposals, validators, votes, FilterSpec(chain="cosmos")))

        assert metrics["v1"].avg_power == 100.0
        assert metrics["v1"].total_power == 300.0
        assert metrics["v1"].vote_count == 4
        assert metrics["v1"].participation_rate == 100.0
        assert metrics["v3"].avg_power == 10.0
        assert metrics["v3"].participation_rate == 75.0

        assert [metrics[v].power_rank for v in ("v1", "v2", "v3")] == [1, 2, 3]
        assert [metrics[v].power_percentile for v in ("v1", "v2", "v3")] == [100.0, 50.0, 0.0]

    def test_all_no_vote_proposal_leaves_denominator(self, cosmos_records):
        """p4 only has NO_VOTE records, so it stops counting for everybody."""
        proposals, validators, votes = cosmos_records
        spec = FilterSpec(chain="cosmos", count_no_vote_as_participation=False)
        result = apply_filters(proposals, validators, votes, spec)
        metrics = _by_id(result)

        assert result.eligible_proposal_count == 3
        assert metrics["v1"].participation_rate == 100.0
        # ABSTAIN is still participation
        assert metrics["v2"].participation_rate == 100.0
        assert metrics["v3"].participation_rate == pytest.approx(100 / 3)

    def test_eligible_ids(self, cosmos_records):
        proposals, _, votes = cosmos_records
        ids = [p.proposal_id for p in proposals] + ["silent"]
        assert eligible_proposal_ids(ids, votes, True) == {"p1", "p2", "p3", "p4", "silent"}
        assert eligible_proposal_ids(ids, votes, False) == {"p1", "p2", "p3"}

    def test_active_period_only(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        validators = validators + [make_validator("v4", moniker="Late Joiner")]
        votes = votes + [make_vote("p3", "v4", "YES", 5)]

        full = _by_id(apply_filters(proposals, validators, votes, FilterSpec(chain="cosmos")))
        active = _by_id(apply_filters(
            proposals, validators, votes, FilterSpec(chain="cosmos", consider_active_period_only=True)
        ))
        assert full["v4"].participation_rate == 25.0
        assert active["v4"].participation_rate == 50.0
        assert active["v1"].participation_rate == 100.0

    def test_validator_without_votes(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        validators = validators + [make_validator("idle")]
        metrics = _by_id(apply_filters(
            proposals, validators, votes, FilterSpec(chain="cosmos", consider_active_period_only=True)
        ))
        assert metrics["idle"].participation_rate == 0.0
        assert metrics["idle"].avg_power == 0.0
        assert metrics["idle"].power_rank == 4

    def test_competition_ranking_and_percentile(self):
        proposals = [make_proposal("p1")]
        validators = [make_validator(v) for v in ("a", "b", "c", "d")]
        votes = [
            make_vote("p1", "a", "YES", 100),
            make_vote("p1", "b", "YES", 50),
            make_vote("p1", "c", "NO", 50),
            make_vote("p1", "d", "NO", 10),
        ]
        metrics = {m.validator_id: m for m in compute_validator_metrics(validators, proposals, votes)}
        assert [metrics[v].power_rank for v in "abcd"] == [1, 2, 2, 4]
        assert metrics["b"].power_percentile == pytest.approx(200 / 3)
        assert metrics["d"].power_percentile == 0.0

    def test_single_validator_is_top_percentile(self):
        metrics = compute_validator_metrics([make_validator("solo")], [make_proposal("p1")], [])
        assert metrics[0].power_rank == 1
        assert metrics[0].power_percentile == 100.0

    def test_unparsable_power_is_left_out_of_average(self):
        proposals = [make_proposal("p1"), make_proposal("p2")]
        votes = [make_vote("p1", "v1", "YES", 30), make_vote("p2", "v1", "NO", "n/a")]
        metrics = compute_validator_metrics([make_validator("v1")], proposals, votes)
        assert metrics[0].avg_power == 30.0
        assert metrics[0].vote_count == 2
        assert metrics[0].participation_rate == 100.0


class TestValidatorFilters:

    def test_search_term(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        result = apply_filters(proposals, validators, votes, FilterSpec(chain="cosmos", search_term="  BETA "))
        assert [m.validator_id for m in result.validators] == ["v2"]

    def test_pinned_validator_survives_filters(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        spec = FilterSpec(chain="cosmos", search_term="beta", pinned_validator_id="v3")
        metrics = _by_id(apply_filters(proposals, validators, votes, spec))

        assert set(metrics) == {"v2", "v3"}
        assert metrics["v3"].is_pinned_and_filtered_out is True
        assert metrics["v2"].is_pinned_and_filtered_out is False

    def test_pinned_validator_that_passes_is_not_flagged(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        spec = FilterSpec(chain="cosmos", pinned_validator_id="v1")
        metrics = _by_id(apply_filters(proposals, validators, votes, spec))
        assert metrics["v1"].is_pinned_and_filtered_out is False

    def test_voting_power_percentile_range(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        spec = FilterSpec(chain="cosmos", voting_power_range=(40, 100))
        assert set(_by_id(apply_filters(proposals, validators, votes, spec))) == {"v1", "v2"}

    def test_voting_power_rank_range(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        spec = FilterSpec(chain="cosmos", voting_power_mode="rank", voting_power_range=(2, 3))
        assert set(_by_id(apply_filters(proposals, validators, votes, spec))) == {"v2", "v3"}

    def test_participation_range(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        spec = FilterSpec(chain="cosmos", participation_rate_range=(80, 100))
        assert set(_by_id(apply_filters(proposals, validators, votes, spec))) == {"v1", "v2"}

    def test_dynamic_ranges_cover_every_validator(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        spec = FilterSpec(chain="cosmos", search_term="alpha")
        result = apply_filters(proposals, validators, votes, spec)
        assert len(result.validators) == 1
        assert result.participation_rate_dynamic_range == (75.0, 100.0)
        assert result.avg_power_dynamic_range == (10.0, 100.0)


class TestProposalScope:

    def test_chain_is_exact(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        proposals = proposals + [make_proposal("o1", chain="osmosis")]
        validators = validators + [make_validator("ov", chain="osmosis")]
        votes = votes + [make_vote("o1", "ov", "YES", 1)]

        result = apply_filters(proposals, validators, votes, FilterSpec(chain="cosmos"))
        assert [p.proposal_id for p in result.proposals] == ["p1", "p2", "p3", "p4"]
        assert "ov" not in _by_id(result)
        assert all(vote.proposal_id != "o1" for vote in result.votes)

    def test_shared_proposal_id_across_chains(self):
        proposals = [make_proposal("1", chain="cosmos"), make_proposal("1", chain="osmosis")]
        validators = [make_validator("c1"), make_validator("o1", chain="osmosis")]
        votes = [make_vote("1", "c1", "NO_VOTE", 10), make_vote("1", "o1", "YES", 1000)]

        spec = FilterSpec(chain="cosmos", count_no_vote_as_participation=False)
        result = apply_filters(proposals, validators, votes, spec)
        assert [(v.validator_id, v.option.value) for v in result.votes] == [("c1", "NO_VOTE")]
        assert result.eligible_proposal_count == 0
        assert _by_id(result)["c1"].avg_power == 0.0

        spec = FilterSpec(chain="cosmos", approval_rate_range=(50, 100))
        assert apply_filters(proposals, validators, votes, spec).proposals == []

    def test_categories_and_topics(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        result = apply_filters(proposals, validators, votes, FilterSpec(chain="cosmos", categories=["Economics"]))
        assert [p.proposal_id for p in result.proposals] == ["p1", "p2"]
        assert _by_id(result)["v3"].participation_rate == 100.0

        result = apply_filters(proposals, validators, votes, FilterSpec(chain="cosmos", topics=["Inflation"]))
        assert [p.proposal_id for p in result.proposals] == ["p1"]

    def test_submit_time_range(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        proposals = proposals + [make_proposal("undated")]
        spec = FilterSpec(chain="cosmos", submit_time_range=(1500, 3500))
        assert [p.proposal_id for p in scope_proposals(proposals, votes, spec)] == ["p2", "p3"]

    def test_approval_rate_range(self, cosmos_records):
        proposals, _, votes = cosmos_records
        spec = FilterSpec(chain="cosmos", approval_rate_range=(50, 100))
        assert [p.proposal_id for p in scope_proposals(proposals, votes, spec)] == ["p1", "p3"]

    def test_undefined_approval_rate_kept_only_from_zero(self, cosmos_records):
        proposals, _, votes = cosmos_records
        from_zero = FilterSpec(chain="cosmos", approval_rate_range=(0, 10), exclude_abstain_no_vote=True)
        assert [p.proposal_id for p in scope_proposals(proposals, votes, from_zero)] == ["p2", "p4"]

        above_zero = FilterSpec(chain="cosmos", approval_rate_range=(1, 100), exclude_abstain_no_vote=True)
        assert [p.proposal_id for p in scope_proposals(proposals, votes, above_zero)] == ["p1", "p3"]


class TestApprovalRate:

    def test_vote_power_basis(self, cosmos_records):
        proposals, _, votes = cosmos_records
        p1_votes = [v for v in votes if v.proposal_id == "p1"]
        assert proposal_approval_rate(proposals[0], p1_votes) == pytest.approx(93.75)

    def test_excluding_abstain_and_no_vote(self, cosmos_records):
        proposals, _, votes = cosmos_records
        p2_votes = [v for v in votes if v.proposal_id == "p2"]
        p4_votes = [v for v in votes if v.proposal_id == "p4"]
        assert proposal_approval_rate(proposals[1], p2_votes) == 0.0
        assert proposal_approval_rate(proposals[3], p4_votes) == 0.0
        assert proposal_approval_rate(proposals[3], p4_votes, exclude_abstain_no_vote=True) is None

    def test_vote_count_basis(self, cosmos_records):
        proposals, _, _ = cosmos_records
        assert proposal_approval_rate(proposals[0], [], basis="vote_count") == 75.0
        assert proposal_approval_rate(proposals[1], [], basis="vote_count") == 25.0
        assert proposal_approval_rate(
            proposals[1], [], basis="vote_count", exclude_abstain_no_vote=True
        ) == pytest.approx(100 / 3)
        assert proposal_approval_rate(proposals[3], [], basis="vote_count") is None

    def test_distribution_fills_undefined_with_zero(self, cosmos_records):
        proposals, _, votes = cosmos_records
        rates = approval_rate_distribution(proposals, votes, exclude_abstain_no_vote=True)
        assert rates == pytest.approx([93.75, 0.0, 100.0, 0.0])


class TestSortValidatorMetrics:

    def test_sort_keys(self, cosmos_records):
        proposals, validators, votes = cosmos_records
        metrics = apply_filters(proposals, validators, votes, FilterSpec(chain="cosmos")).validators
        reversed_metrics = list(reversed(metrics))

        assert [m.validator_id for m in sort_validator_metrics(reversed_metrics, "voting_power")] == ["v1", "v2", "v3"]
        assert [m.validator_id for m in sort_validator_metrics(reversed_metrics, "vote_count")] == ["v1", "v2", "v3"]
        assert [m.moniker for m in sort_validator_metrics(reversed_metrics, "name")] == [
            "Alpha Staking", "Beta Nodes", "Gamma Validator",
        ]
