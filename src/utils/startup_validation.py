"""
Startup validation utilities to check the data layout before serving requests.

Critical checks cover the raw record files; missing per-chain vote files and
odd cache settings only produce warnings.
"""

import os
import sys
from typing import List, Optional

from src.config.common_settings import (
    ANALYSIS_CACHE_MAX_ENTRIES,
    ANALYSIS_CACHE_TTL_MINUTES,
    GOVERNANCE_DATA_DIR,
    SUPPORTED_CHAINS,
)
from src.utils.logger import logger


class StartupValidator:
    """Startup validation for the governance analytics backend."""

    def __init__(self, data_dir: Optional[str] = None, supported_chains: Optional[List[str]] = None):
        self.data_dir = data_dir or GOVERNANCE_DATA_DIR
        self.supported_chains = supported_chains if supported_chains is not None else SUPPORTED_CHAINS
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self) -> bool:
        """
        Run all validation checks.

        Returns:
            True if all critical checks pass, False otherwise.
        """
        logger.info("StartupValidator: Beginning system validation")

        # Critical validations (must pass)
        self._validate_data_dir()
        self._validate_chain_config()

        # Non-critical validations (warnings only)
        self._validate_vote_files()
        self._validate_cache_config()

        self._report_results()

        return len(self.errors) == 0

    def _validate_data_dir(self) -> None:
        """Validate that the raw record files exist."""
        if not os.path.isdir(self.data_dir):
            self.errors.append(f"Governance data directory not found: {self.data_dir}")
            return

        missing = [
            name for name in ("proposals.json", "validators.json")
            if not os.path.isfile(os.path.join(self.data_dir, name))
        ]
        if missing:
            self.errors.append(f"Missing record files in {self.data_dir}: {', '.join(missing)}")
        else:
            logger.info("StartupValidator: Data directory validation passed")

    def _validate_chain_config(self) -> None:
        if not self.supported_chains:
            self.errors.append("SUPPORTED_CHAINS is empty")

    def _validate_vote_files(self) -> None:
        """Warn about supported chains without a vote file."""
        from src.services.governance_loader import chain_file_name

        votes_dir = os.path.join(self.data_dir, "votes")
        if not os.path.isdir(votes_dir):
            self.warnings.append(f"Vote directory not found: {votes_dir}")
            return

        missing = [
            chain for chain in self.supported_chains
            if not os.path.isfile(os.path.join(votes_dir, f"{chain_file_name(chain)}_votes.csv"))
        ]
        if missing:
            self.warnings.append(f"No vote file for chains: {', '.join(missing)}")

    def _validate_cache_config(self) -> None:
        if ANALYSIS_CACHE_TTL_MINUTES <= 0:
            self.warnings.append("ANALYSIS_CACHE_TTL_MINUTES <= 0 disables memoization")
        if ANALYSIS_CACHE_MAX_ENTRIES <= 0:
            self.warnings.append("ANALYSIS_CACHE_MAX_ENTRIES <= 0 disables memoization")

    def _report_results(self) -> None:
        """Report validation results."""
        if self.errors:
            logger.error("StartupValidator: %d critical errors found:", len(self.errors))
            for error in self.errors:
                logger.error("  - %s", error)

        if self.warnings:
            logger.warning("StartupValidator: %d warnings found:", len(self.warnings))
            for warning in self.warnings:
                logger.warning("  - %s", warning)

        if not self.errors and not self.warnings:
            logger.info("StartupValidator: All validation checks passed successfully")
        elif not self.errors:
            logger.info("StartupValidator: Critical validation passed with %d warnings", len(self.warnings))


def validate_startup() -> bool:
    """
    Run startup validation and return success status.

    Returns:
        True if validation passes, False if critical errors found.
    """
    validator = StartupValidator()
    return validator.validate_all()


def validate_or_exit() -> None:
    """
    Run startup validation and exit if critical errors are found.
    """
    if not validate_startup():
        logger.error("StartupValidator: Critical validation errors found. Exiting.")
        sys.exit(1)

    logger.info("StartupValidator: System validation completed successfully")


if __name__ == "__main__":
    # Allow running validation as a standalone script
    validate_or_exit()
