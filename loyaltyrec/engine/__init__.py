"""Recommendation engine for LoyaltyRec.

This module contains the two co-purchase strategies: market-basket
association-rule mining and a k-means clustering variant that scores
intra-cluster co-occurrence. Both consume baskets built from the transaction
feed and produce scored product pairs.
"""
