"""API routers for LoyaltyRec."""
