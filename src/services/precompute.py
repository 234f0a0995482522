#!/usr/bin/env python3
"""
Precompute category/topic distributions for static serving.

Writes one JSON file per chain, an ``all_chains.json`` rollup and a
``metadata.json`` summary into the output directory.

    python -m src.services.precompute --data-dir ./data --output-dir ./out
"""
import argparse
import json
import os
import sys
from datetime import datetime, timezone
from typing import Dict, List, Optional

from src.config.common_settings import GOVERNANCE_DATA_DIR, PRECOMPUTED_OUTPUT_DIR
from src.data_models.governance_schemas import DistributionSummary
from src.governance_analytics import aggregate_distributions, merge_distribution_summaries
from src.governance_analytics.exceptions import GovernanceAnalyticsError
from src.services.governance_loader import GovernanceDataLoader, chain_file_name
from src.utils.logger import logger

METADATA_VERSION = "2.0"


def _write_json(path: str, payload: dict) -> None:
    with open(path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2, ensure_ascii=False)


def precompute_distributions(
    data_dir: str,
    output_dir: str,
    chains: Optional[List[str]] = None,
) -> Dict[str, object]:
    """
    Aggregate and write distributions; returns the metadata that was written.

    Chains are processed in sorted order and the all-chains summary is merged
    from the per-chain ones, so reruns over the same data are byte-identical
    apart from ``generatedAt``.
    """
    loader = GovernanceDataLoader(data_dir)
    chain_list = sorted({c.lower() for c in chains}) if chains else loader.available_chains()
    os.makedirs(output_dir, exist_ok=True)

    summaries: List[DistributionSummary] = []
    total_proposals = 0
    total_votes = 0

    for chain in chain_list:
        logger.info(f"[Precompute] Processing {chain}...")
        dataset = loader.load_chain(chain)
        summary = aggregate_distributions(dataset.proposals, dataset.votes)
        summaries.append(summary)
        total_proposals += len(dataset.proposals)
        total_votes += len(dataset.votes)

        output_path = os.path.join(output_dir, f"{chain_file_name(chain)}.json")
        _write_json(output_path, summary.to_json_dict())
        logger.info(
            f"[Precompute] Saved {chain}: {len(summary.categories)} categories, {len(summary.topics)} topics"
        )

    all_chains = merge_distribution_summaries(*summaries)
    _write_json(os.path.join(output_dir, "all_chains.json"), all_chains.to_json_dict())
    logger.info(
        f"[Precompute] Saved all chains: {len(all_chains.categories)} categories, {len(all_chains.topics)} topics"
    )

    metadata = {
        "generatedAt": datetime.now(timezone.utc).isoformat(),
        "totalProposals": total_proposals,
        "totalVotes": total_votes,
        "totalCategories": len(all_chains.categories),
        "totalTopics": len(all_chains.topics),
        "chains": len(chain_list),
        "chainList": chain_list,
        "version": METADATA_VERSION,
    }
    _write_json(os.path.join(output_dir, "metadata.json"), metadata)
    return metadata


def main(argv: Optional[List[str]] = None) -> int:
    """Command line entry point."""
    parser = argparse.ArgumentParser(description="Precompute governance category distributions")
    parser.add_argument(
        "--data-dir",
        default=GOVERNANCE_DATA_DIR,
        help="Directory holding proposals.json, validators.json and votes/",
    )
    parser.add_argument(
        "--output-dir",
        default=PRECOMPUTED_OUTPUT_DIR,
        help="Directory the distribution files are written to",
    )
    parser.add_argument(
        "--chain",
        action="append",
        dest="chains",
        help="Chain to process (repeatable); defaults to every chain in the data",
    )
    args = parser.parse_args(argv)

    try:
        metadata = precompute_distributions(args.data_dir, args.output_dir, args.chains)
    except GovernanceAnalyticsError as e:
        logger.error(f"[Precompute] Failed: {e.message}")
        return 1

    logger.info(
        f"[Precompute] Completed: {metadata['chains']} chains, "
        f"{metadata['totalProposals']} proposals, {metadata['totalVotes']} votes"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
