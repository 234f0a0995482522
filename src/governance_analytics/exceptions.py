"""
Custom exceptions for the governance analytics service layer.

The analytics core never raises: malformed numbers, dangling references and
unknown options degrade to zero contributions. These exceptions belong to the
collaborators around it (data loading, request validation) and carry
HTTP-like codes so the API router can map them directly.
"""
from typing import Optional


class GovernanceAnalyticsError(Exception):
    """Base exception for all governance analytics errors."""

    def __init__(
        self,
        message: str,
        code: int = 500,
        retryable: bool = False,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.retryable = retryable
        self.retry_after = retry_after

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        result = {
            "error_code": self.code,
            "error_message": self.message,
            "retryable": self.retryable,
        }
        if self.retry_after is not None:
            result["retry_after"] = self.retry_after
        return result


# ============================================
# 4xx Client Errors
# ============================================

class InvalidFilterError(GovernanceAnalyticsError):
    """400 Bad Request - Filter specification cannot be applied."""

    def __init__(self, message: str = "Invalid filter specification"):
        super().__init__(message, code=400, retryable=False)


class ChainDataNotFoundError(GovernanceAnalyticsError):
    """404 Not Found - No records available for the requested chain."""

    def __init__(self, chain: str = ""):
        self.chain = chain
        message = f"No governance data found for chain '{chain}'" if chain else "No governance data found"
        super().__init__(message, code=404, retryable=False)


class ValidatorNotFoundError(GovernanceAnalyticsError):
    """404 Not Found - Validator is not part of the chain."""

    def __init__(self, validator_id: str = "", chain: str = ""):
        self.validator_id = validator_id
        message = f"Validator '{validator_id}' not found"
        if chain:
            message += f" on chain '{chain}'"
        super().__init__(message, code=404, retryable=False)


# ============================================
# 5xx Server Errors
# ============================================

class DataLoadError(GovernanceAnalyticsError):
    """500 Internal Server Error - Raw records could not be read."""

    def __init__(self, message: str = "Failed to load governance data."):
        super().__init__(message, code=500, retryable=True, retry_after=5.0)
