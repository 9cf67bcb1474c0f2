"""Persistence layer for LoyaltyRec.

Declares the relational schema read by the engine (stores, products,
transactions) and the table it owns (owner_recommendations), and provides the
read helpers and the recommendation store used by recompute runs.
"""
