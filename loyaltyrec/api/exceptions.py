"""Exceptions surfaced by the LoyaltyRec API.

The error types live in ``loyaltyrec.exceptions`` so the engine can raise
them without importing the web layer; they are re-exported here for the
handlers and routes.
"""

from loyaltyrec.exceptions import DataAccessError, LoyaltyRecException, RecomputeError

__all__ = ["DataAccessError", "LoyaltyRecException", "RecomputeError"]
