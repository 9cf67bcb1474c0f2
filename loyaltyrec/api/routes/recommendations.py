"""Recommendation endpoints for the LoyaltyRec API.

This module provides endpoints to recompute a store owner's
"frequently bought together" recommendations with either strategy, to read
the stored recommendations, and to compute dashboard insights on the fly.
Query parameter names follow the owner dashboard (camelCase).
"""

import logging
import time
from typing import Callable, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from loyaltyrec.api.exceptions import DataAccessError, LoyaltyRecException, RecomputeError
from loyaltyrec.api.metrics import metrics_service
from loyaltyrec.engine.baskets import DEFAULT_PERIOD
from loyaltyrec.engine.recompute import (
    DEFAULT_MIN_COUNT,
    DEFAULT_TOP_PER_PRODUCT,
    STRATEGY_KMEANS,
    STRATEGY_RULES,
    RecomputeResult,
    compute_dashboard_insights,
    recompute_association_recommendations,
    recompute_kmeans_recommendations,
)
from loyaltyrec.storage.database import get_session
from loyaltyrec.storage.repository import DEFAULT_QUERY_LIMIT, RecommendationStore

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(
    prefix="/owners/{owner_id}/recommendations",
    tags=["recommendations"],
)


class RecomputeResponse(BaseModel):
    """Response model for recompute requests.

    Attributes:
        updated: Number of recommendation rows written.
        clusters: Distinct clusters used (clustering strategy only).
        reason: Why nothing was written ("no stores", "no transactions",
            "no signal").
    """

    updated: int = Field(..., description="Recommendation rows written")
    clusters: Optional[int] = Field(default=None, description="Distinct clusters used")
    reason: Optional[str] = Field(default=None, description="Zero-update reason")


class StoredRecommendation(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    recommended_product_id: int
    recommended_product_name: Optional[str] = None
    score: float


class RecommendationListResponse(BaseModel):
    recommendations: List[StoredRecommendation]


class RecommendedProduct(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    co_purchases: int
    confidence: float
    lift: float
    score: float
    insight: str


class ProductInsight(BaseModel):
    product_id: int
    product_name: Optional[str] = None
    overall_insight: Optional[str] = None
    recommended: List[RecommendedProduct]


class InsightsResponse(BaseModel):
    recommendations: List[ProductInsight]


def _run_recompute(
    strategy: str,
    owner_id: int,
    compute: Callable[[], RecomputeResult],
) -> RecomputeResponse:
    """Run a recompute, recording metrics and wrapping unexpected errors."""
    start_time = time.time()
    try:
        result = compute()
    except LoyaltyRecException:
        metrics_service.record_failure(strategy)
        raise
    except Exception as e:
        metrics_service.record_failure(strategy)
        logger.error(
            f"Error recomputing {strategy} recommendations for owner {owner_id}: {e}",
            exc_info=True,
        )
        raise RecomputeError(owner_id, strategy, e) from e

    latency_ms = (time.time() - start_time) * 1000
    metrics_service.record_recompute(strategy, latency_ms, result.updated)
    return RecomputeResponse(**result.to_dict())


@router.post(
    "/recompute",
    response_model=RecomputeResponse,
    response_model_exclude_none=True,
)
def recompute_rules(
    owner_id: int,
    period: str = Query(DEFAULT_PERIOD, description="Lookback window, e.g. 30d"),
    min_count: int = Query(DEFAULT_MIN_COUNT, alias="minCount", ge=1),
    top_per_product: int = Query(DEFAULT_TOP_PER_PRODUCT, alias="topPerProduct", ge=1),
    min_confidence: float = Query(0.0, alias="minConfidence", ge=0, le=100),
    min_lift: float = Query(0.0, alias="minLift", ge=0),
    max_antecedents: int = Query(15, alias="maxAntecedents", ge=1),
    cross_type_only: bool = Query(False, alias="crossTypeOnly"),
    session: Session = Depends(get_session),
) -> RecomputeResponse:
    """Recompute an owner's association-rule recommendations.

    Example:
        POST /owners/7/recommendations/recompute?period=30d&minCount=3
        Mines the last 30 days of owner 7's transactions and stores the
        rules with at least 3 shared baskets.
    """
    logger.info(
        f"Recomputing association recommendations for owner {owner_id}",
        extra={"owner_id": owner_id, "period": period},
    )
    return _run_recompute(
        STRATEGY_RULES,
        owner_id,
        lambda: recompute_association_recommendations(
            session,
            owner_id,
            period=period,
            min_count=min_count,
            top_per_product=top_per_product,
            min_confidence=min_confidence,
            min_lift=min_lift,
            max_antecedents=max_antecedents,
            cross_type_only=cross_type_only,
        ),
    )


@router.post(
    "/recompute-kmeans",
    response_model=RecomputeResponse,
    response_model_exclude_none=True,
)
def recompute_kmeans(
    owner_id: int,
    period: str = Query(DEFAULT_PERIOD, description="Lookback window, e.g. 30d"),
    top_features: int = Query(100, alias="topFeatures", ge=1),
    k: int = Query(8, ge=1),
    min_count: int = Query(DEFAULT_MIN_COUNT, alias="minCount", ge=1),
    top_per_product: int = Query(DEFAULT_TOP_PER_PRODUCT, alias="topPerProduct", ge=1),
    seed: Optional[int] = Query(None, ge=0, description="Seed for reproducible clustering"),
    session: Session = Depends(get_session),
) -> RecomputeResponse:
    """Recompute an owner's clustering-based recommendations.

    Example:
        POST /owners/7/recommendations/recompute-kmeans?k=4&seed=42
    """
    logger.info(
        f"Recomputing k-means recommendations for owner {owner_id}",
        extra={"owner_id": owner_id, "period": period, "k": k},
    )
    return _run_recompute(
        STRATEGY_KMEANS,
        owner_id,
        lambda: recompute_kmeans_recommendations(
            session,
            owner_id,
            period=period,
            top_features=top_features,
            k=k,
            min_count=min_count,
            top_per_product=top_per_product,
            random_state=seed,
        ),
    )


@router.get("", response_model=RecommendationListResponse)
def get_stored_recommendations(
    owner_id: int,
    product_id: Optional[int] = Query(None, description="Only this product"),
    period: Optional[str] = Query(None, description="Only this scoring period"),
    session: Session = Depends(get_session),
) -> RecommendationListResponse:
    """Read an owner's stored recommendations, best score first.

    Returns at most 200 rows with product names resolved from the catalog.
    """
    try:
        rows = RecommendationStore(session).query(
            owner_id,
            product_id=product_id,
            period_tag=period,
            limit=DEFAULT_QUERY_LIMIT,
        )
    except SQLAlchemyError as e:
        logger.error(f"Failed to read recommendations for owner {owner_id}: {e}")
        raise DataAccessError(owner_id, e, operation="query") from e

    return RecommendationListResponse(
        recommendations=[StoredRecommendation(**row) for row in rows]
    )


@router.get("/insights", response_model=InsightsResponse)
def get_dashboard_insights(
    owner_id: int,
    period: str = Query(DEFAULT_PERIOD, description="Lookback window, e.g. 30d"),
    top_n: int = Query(15, alias="topN", ge=1),
    top_per_product: int = Query(DEFAULT_TOP_PER_PRODUCT, alias="topPerProduct", ge=1),
    session: Session = Depends(get_session),
) -> InsightsResponse:
    """Frequently-bought-together insights computed on the fly.

    Uses the dashboard thresholds (confidence above 20%, lift above 1.2) and
    does not touch the stored recommendations.
    """
    insights = compute_dashboard_insights(
        session,
        owner_id,
        period=period,
        max_antecedents=top_n,
        top_per_product=top_per_product,
    )
    return InsightsResponse(
        recommendations=[ProductInsight(**insight) for insight in insights]
    )
