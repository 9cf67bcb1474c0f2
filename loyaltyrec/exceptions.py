"""Error types shared by the engine, the API and the scripts.

Input-absence conditions (no stores, no transactions, no signal) are not
errors and never raise.
"""

from typing import Any, Dict, Optional


class LoyaltyRecException(Exception):
    """Base exception for LoyaltyRec errors."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        """Initialize exception.

        Args:
            message: Human-readable error message
            status_code: HTTP status code for API responses
            details: Additional error details for debugging
        """
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.details = details or {}


class DataAccessError(LoyaltyRecException):
    """Raised when the backing store is unreachable or rejects a query."""

    def __init__(self, owner_id: int, error: Exception, operation: str = "recompute"):
        message = (
            f"Data access failed during {operation} for owner {owner_id}: {str(error)}"
        )
        super().__init__(
            message=message,
            status_code=500,
            details={
                "owner_id": owner_id,
                "operation": operation,
                "error_type": type(error).__name__,
            },
        )


class RecomputeError(LoyaltyRecException):
    """Raised when a recompute fails for a reason other than data access."""

    def __init__(self, owner_id: int, strategy: str, error: Exception):
        message = (
            f"Failed to compute {strategy} recommendations for owner {owner_id}: "
            f"{str(error)}"
        )
        super().__init__(
            message=message,
            status_code=500,
            details={
                "owner_id": owner_id,
                "strategy": strategy,
                "error": str(error),
                "error_type": type(error).__name__,
            },
        )
