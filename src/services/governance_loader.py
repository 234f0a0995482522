"""
Governance record loader.

Reads the optimized data layout:

    <data_dir>/proposals.json          {id: {...}} or [{...}]
    <data_dir>/validators.json         {id: {...}} or [{...}]
    <data_dir>/votes/<chain>_votes.csv proposal_id, validator_id,
                                       vote_code | vote_option,
                                       voting_power, timestamp

Vote CSVs are read as strings so malformed voting power reaches the
analytics core untouched; the core decides what counts as parsable.
"""
import json
import os
import re
import threading
from typing import Any, Dict, List, Optional

import pandas as pd

from src.data_models.governance_schemas import ChainDataset, Proposal, Validator, Vote
from src.governance_analytics.exceptions import ChainDataNotFoundError, DataLoadError
from src.utils.logger import logger


def chain_file_name(chain: str) -> str:
    """gravity-bridge -> gravity_bridge"""
    return re.sub(r"[^a-zA-Z0-9]", "_", chain.lower())


def _to_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _records(raw: Any) -> List[Dict[str, Any]]:
    """Normalize {id: record} or [record] into a list carrying its id."""
    if isinstance(raw, dict):
        return [{"id": key, **value} for key, value in raw.items() if isinstance(value, dict)]
    if isinstance(raw, list):
        return [record for record in raw if isinstance(record, dict)]
    raise DataLoadError(f"Unexpected record container: {type(raw).__name__}")


class GovernanceDataLoader:
    """Load and cache raw governance records per chain."""

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self._proposals_raw: Optional[List[Dict[str, Any]]] = None
        self._validators_raw: Optional[List[Dict[str, Any]]] = None
        self._datasets: Dict[str, ChainDataset] = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def available_chains(self) -> List[str]:
        """Chains that have at least one proposal or validator record."""
        chains = {
            str(record.get("chain", "")).lower()
            for record in self._load_proposals_raw() + self._load_validators_raw()
        }
        chains.discard("")
        return sorted(chains)

    def load_chain(self, chain: str) -> ChainDataset:
        """Load proposals, validators and votes for one chain."""
        chain = chain.lower()
        with self._lock:
            cached = self._datasets.get(chain)
        if cached is not None:
            return cached

        proposals = [
            self._to_proposal(record)
            for record in self._load_proposals_raw()
            if str(record.get("chain", "")).lower() == chain
        ]
        validators = [
            self._to_validator(record)
            for record in self._load_validators_raw()
            if str(record.get("chain", "")).lower() == chain
        ]
        votes = self._load_votes(chain)

        if not proposals and not validators and not votes:
            raise ChainDataNotFoundError(chain)

        dataset = ChainDataset(chain=chain, proposals=proposals, validators=validators, votes=votes)
        logger.info(
            f"[GovernanceLoader] Loaded {chain}: {len(proposals)} proposals, "
            f"{len(validators)} validators, {len(votes)} votes"
        )
        with self._lock:
            self._datasets[chain] = dataset
        return dataset

    def load_all(self) -> Dict[str, ChainDataset]:
        """Load every available chain."""
        return {chain: self.load_chain(chain) for chain in self.available_chains()}

    # ------------------------------------------------------------------
    # File access
    # ------------------------------------------------------------------

    def _read_json(self, name: str) -> List[Dict[str, Any]]:
        path = os.path.join(self.data_dir, name)
        if not os.path.exists(path):
            logger.warning(f"[GovernanceLoader] {path} not found")
            return []
        try:
            with open(path, "r", encoding="utf-8") as f:
                return _records(json.load(f))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"[GovernanceLoader] Failed to read {path}: {e}")
            raise DataLoadError(f"Failed to read {name}: {e}") from e

    def _load_proposals_raw(self) -> List[Dict[str, Any]]:
        if self._proposals_raw is None:
            self._proposals_raw = self._read_json("proposals.json")
        return self._proposals_raw

    def _load_validators_raw(self) -> List[Dict[str, Any]]:
        if self._validators_raw is None:
            self._validators_raw = self._read_json("validators.json")
        return self._validators_raw

    def _load_votes(self, chain: str) -> List[Vote]:
        path = os.path.join(self.data_dir, "votes", f"{chain_file_name(chain)}_votes.csv")
        if not os.path.exists(path):
            logger.warning(f"[GovernanceLoader] No vote file for {chain} at {path}")
            return []
        try:
            df = pd.read_csv(path, dtype=str, keep_default_na=False)
        except (OSError, ValueError) as e:
            logger.error(f"[GovernanceLoader] Failed to parse {path}: {e}")
            raise DataLoadError(f"Failed to read votes for {chain}: {e}") from e

        option_column = "vote_option" if "vote_option" in df.columns else "vote_code"
        proposal_column = "proposal_id" if "proposal_id" in df.columns else "proposal_short_id"
        validator_column = "validator_id" if "validator_id" in df.columns else "validator_short_id"
        missing = [c for c in (option_column, proposal_column, validator_column) if c not in df.columns]
        if missing:
            raise DataLoadError(f"Vote file for {chain} is missing columns: {', '.join(missing)}")

        votes = []
        for row in df.to_dict(orient="records"):
            votes.append(
                Vote(
                    proposal_id=row[proposal_column],
                    validator_id=row[validator_column],
                    option=row[option_column],
                    voting_power=row.get("voting_power") or None,
                    timestamp=_to_float(row.get("timestamp")),
                )
            )
        return votes

    # ------------------------------------------------------------------
    # Record mapping
    # ------------------------------------------------------------------

    @staticmethod
    def _to_proposal(record: Dict[str, Any]) -> Proposal:
        final_tally = {
            key: value
            for key, value in (record.get("final_tally") or {}).items()
            if _to_float(value) is not None
        }
        return Proposal(
            proposal_id=str(record.get("proposal_id") or record.get("id")),
            chain=str(record.get("chain", "")).lower(),
            title=record.get("title") or "",
            category=record.get("category") or None,
            topic=record.get("topic") or None,
            submit_time=_to_float(record.get("submit_time", record.get("timestamp"))),
            # Only a JSON true counts; strings like "false" do not
            passed=record.get("passed") is True,
            final_tally={key: float(value) for key, value in final_tally.items()},
        )

    @staticmethod
    def _to_validator(record: Dict[str, Any]) -> Validator:
        return Validator(
            validator_id=str(record.get("validator_id") or record.get("id")),
            chain=str(record.get("chain", "")).lower(),
            moniker=record.get("moniker") or record.get("name") or "",
            address=record.get("address") or "",
        )
