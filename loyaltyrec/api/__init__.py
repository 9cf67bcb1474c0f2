"""FastAPI application module for LoyaltyRec.

This module contains the FastAPI application, route handlers, and API
endpoints for triggering recommendation recomputes and reading stored
recommendations for store owners.
"""
