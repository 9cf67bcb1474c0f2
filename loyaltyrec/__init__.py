"""LoyaltyRec: "frequently bought together" recommendations for store owners.

This package provides the recommendation engine of the loyalty/rewards
application. It mines a store owner's transaction history for products that
tend to be purchased together and persists the results per scoring period.

Modules:
    api: FastAPI application and REST API endpoints
    engine: Basket building, association rules, k-means clustering
    storage: Relational schema and the recommendation store
"""

__version__ = "0.1.0"
