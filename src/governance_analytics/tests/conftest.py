"""Shared record builders for governance analytics tests."""
import json
import os

import pytest

from src.data_models.governance_schemas import Proposal, Validator, Vote


def make_proposal(proposal_id, chain="cosmos", category=None, topic=None, submit_time=None, passed=False, **kwargs):
    return Proposal(
        proposal_id=proposal_id,
        chain=chain,
        category=category,
        topic=topic,
        submit_time=submit_time,
        passed=passed,
        **kwargs,
    )


def make_vote(proposal_id, validator_id, option, voting_power=None, timestamp=None):
    return Vote(
        proposal_id=proposal_id,
        validator_id=validator_id,
        option=option,
        voting_power=voting_power,
        timestamp=timestamp,
    )


def make_validator(validator_id, chain="cosmos", moniker=None):
    return Validator(validator_id=validator_id, chain=chain, moniker=moniker or validator_id)


@pytest.fixture
def cosmos_records():
    """Small cosmos data set: 4 proposals, 3 validators, mixed options."""
    proposals = [
        make_proposal("p1", category="Economics", topic="Inflation", submit_time=1000, passed=True,
                      final_tally={"yes_count": 3, "no_count": 1, "abstain_count": 0, "no_with_veto_count": 0}),
        make_proposal("p2", category="Economics", topic="Community Pool", submit_time=2000, passed=False,
                      final_tally={"yes_count": 1, "no_count": 2, "abstain_count": 1, "no_with_veto_count": 0}),
        make_proposal("p3", category="Software Upgrade", topic="Chain Upgrade", submit_time=3000, passed=True,
                      final_tally={"yes_count": 3, "no_count": 0, "abstain_count": 0, "no_with_veto_count": 0}),
        make_proposal("p4", category="Software Upgrade", topic="Chain Upgrade", submit_time=4000, passed=True),
    ]
    validators = [
        make_validator("v1", moniker="Alpha Staking"),
        make_validator("v2", moniker="Beta Nodes"),
        make_validator("v3", moniker="Gamma Validator"),
    ]
    votes = [
        make_vote("p1", "v1", "YES", 100),
        make_vote("p1", "v2", "YES", 50),
        make_vote("p1", "v3", "NO", 10),
        make_vote("p2", "v1", "NO", 100),
        make_vote("p2", "v2", "ABSTAIN", 50),
        make_vote("p2", "v3", "NO_VOTE", 10),
        make_vote("p3", "v1", "YES", 100),
        make_vote("p3", "v2", "YES", 50),
        make_vote("p4", "v1", "NO_VOTE", 100),
        make_vote("p4", "v2", "NO_VOTE", 50),
        make_vote("p4", "v3", "NO_VOTE", 10),
    ]
    return proposals, validators, votes


COSMOS_VOTES_CSV = """proposal_id,validator_id,vote_code,voting_power,timestamp
p1,v1,5,100,1001
p1,v2,5,50,1002
p1,v3,1,10,1003
p2,v1,1,100,2001
p2,v2,0,50,2002
p2,v3,2,10,2003
p3,v1,5,100,3001
p3,v2,5,abc,3002
p4,v1,2,100,4001
p4,v2,2,50,4002
p4,v3,2,10,4003
"""

OSMOSIS_VOTES_CSV = """proposal_id,validator_id,vote_option,voting_power,timestamp
o1,ov1,VOTE_OPTION_YES,7,5001
o1,ov2,VOTE_OPTION_NO,3,5002
"""


@pytest.fixture
def governance_data_dir(tmp_path):
    """On-disk data set in the optimized layout: cosmos and osmosis."""
    proposals = {
        "p1": {"chain": "cosmos", "title": "Lower inflation", "category": "Economics", "topic": "Inflation",
               "timestamp": 1000, "passed": True,
               "final_tally": {"yes_count": 3, "no_count": 1, "abstain_count": 0, "no_with_veto_count": 0}},
        "p2": {"chain": "cosmos", "title": "Fund pool", "category": "Economics", "topic": "Community Pool",
               "timestamp": 2000, "passed": False},
        "p3": {"chain": "cosmos", "title": "v12 upgrade", "category": "Software Upgrade",
               "topic": "Chain Upgrade", "timestamp": 3000, "passed": True},
        "p4": {"chain": "cosmos", "title": "v13 upgrade", "category": "Software Upgrade",
               "topic": "Chain Upgrade", "timestamp": 4000, "passed": True},
        "o1": {"chain": "Osmosis", "title": "Incentives", "category": "Economics", "topic": "Incentives",
               "timestamp": 5000, "passed": True},
    }
    validators = [
        {"id": "v1", "chain": "cosmos", "name": "Alpha Staking", "address": "cosmosvaloper1alpha"},
        {"id": "v2", "chain": "cosmos", "name": "Beta Nodes", "address": "cosmosvaloper1beta"},
        {"id": "v3", "chain": "cosmos", "name": "Gamma Validator", "address": "cosmosvaloper1gamma"},
        {"id": "ov1", "chain": "osmosis", "name": "Osmo One", "address": "osmovaloper1one"},
        {"id": "ov2", "chain": "osmosis", "name": "Osmo Two", "address": "osmovaloper1two"},
    ]
    with open(tmp_path / "proposals.json", "w") as f:
        json.dump(proposals, f)
    with open(tmp_path / "validators.json", "w") as f:
        json.dump(validators, f)

    os.makedirs(tmp_path / "votes")
    (tmp_path / "votes" / "cosmos_votes.csv").write_text(COSMOS_VOTES_CSV)
    (tmp_path / "votes" / "osmosis_votes.csv").write_text(OSMOSIS_VOTES_CSV)
    return tmp_path
