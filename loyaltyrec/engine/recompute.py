"""Recompute orchestration for store owners.

Wires the transaction feed, the two co-purchase strategies and the
recommendation store together. Each recompute runs synchronously for one
owner and one scoring period; the scheduled batch iterates owners one after
another and keeps going when a single owner fails.

Missing input (no stores, no transactions in the window, no co-purchase
signal) is not an error: the recompute returns ``updated=0`` with a reason
and leaves the stored recommendations untouched.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from loyaltyrec.config import get_settings
from loyaltyrec.engine.baskets import DEFAULT_PERIOD, build_baskets, lookback_start
from loyaltyrec.engine.cluster_scoring import score_cluster_pairs
from loyaltyrec.engine.features import DEFAULT_TOP_FEATURES, build_feature_vectors
from loyaltyrec.engine.kmeans import (
    DEFAULT_MAX_ITER,
    DEFAULT_N_CLUSTERS,
    DEFAULT_SEED_RETRIES,
    KMeansClusterer,
    RandomStateLike,
    effective_k,
)
from loyaltyrec.engine.rules import (
    DEFAULT_MAX_ANTECEDENTS,
    DEFAULT_MIN_CONFIDENCE,
    DEFAULT_MIN_LIFT,
    DEFAULT_MIN_SUPPORT,
    describe_antecedent,
    flatten_rules,
    mine_association_rules,
)
from loyaltyrec.engine.support import count_support
from loyaltyrec.exceptions import DataAccessError
from loyaltyrec.storage.repository import (
    RecommendationStore,
    fetch_owned_store_ids,
    fetch_product_names,
    fetch_product_types,
    fetch_transaction_lines,
    list_owner_ids,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Strategy names
STRATEGY_RULES = "association_rules"
STRATEGY_KMEANS = "kmeans"

# Zero-update reasons
REASON_NO_STORES = "no stores"
REASON_NO_TRANSACTIONS = "no transactions"
REASON_NO_SIGNAL = "no signal"

# Standalone recompute defaults
DEFAULT_MIN_COUNT = 5
DEFAULT_TOP_PER_PRODUCT = 5


@dataclass
class RecomputeResult:
    """Outcome of one recompute run."""

    updated: int
    clusters: Optional[int] = None
    reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"updated": self.updated}
        if self.clusters is not None:
            result["clusters"] = self.clusters
        if self.reason is not None:
            result["reason"] = self.reason
        return result


@dataclass
class BatchSummary:
    """Outcome of a scheduled batch over all owners."""

    results: Dict[int, RecomputeResult] = field(default_factory=dict)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def total_updated(self) -> int:
        return sum(result.updated for result in self.results.values())


def load_baskets(
    session: Session,
    owner_id: int,
    period: str = DEFAULT_PERIOD,
    window_minutes: Optional[int] = None,
    transaction_limit: Optional[int] = None,
) -> Tuple[Dict[str, Set[int]], Optional[str]]:
    """Build the baskets of an owner's stores within the lookback window.

    Returns:
        A tuple of the baskets and a zero-update reason (None when there
        are baskets).
    """
    settings = get_settings()
    window_minutes = window_minutes or settings.basket_window_minutes
    transaction_limit = transaction_limit or settings.transaction_limit

    store_ids = fetch_owned_store_ids(session, owner_id)
    if not store_ids:
        logger.info("Owner has no stores", extra={"owner_id": owner_id})
        return {}, REASON_NO_STORES

    lines = fetch_transaction_lines(
        session,
        store_ids,
        since=lookback_start(period),
        limit=transaction_limit,
    )
    baskets = build_baskets(lines, window_minutes=window_minutes)
    if not baskets:
        logger.info(
            "No transactions in window",
            extra={"owner_id": owner_id, "period": period},
        )
        return {}, REASON_NO_TRANSACTIONS

    return baskets, None


def recompute_association_recommendations(
    session: Session,
    owner_id: int,
    period: str = DEFAULT_PERIOD,
    min_count: int = DEFAULT_MIN_COUNT,
    top_per_product: int = DEFAULT_TOP_PER_PRODUCT,
    min_confidence: float = 0.0,
    min_lift: float = 0.0,
    max_antecedents: int = DEFAULT_MAX_ANTECEDENTS,
    min_support: float = DEFAULT_MIN_SUPPORT,
    cross_type_only: bool = False,
) -> RecomputeResult:
    """Recompute and store an owner's association-rule recommendations.

    Stored score is ``confidence * lift`` of each rule.

    Args:
        session: Open database session.
        owner_id: Store owner whose transactions are mined.
        period: Lookback window tag (e.g. "30d"); also the stored period tag.
        min_count: Minimum number of shared baskets for a rule.
        top_per_product: Maximum recommendations per product.
        min_confidence: Rules need confidence strictly above this (%).
        min_lift: Rules need lift strictly above this.
        max_antecedents: Number of most frequent products mined as antecedents.
        min_support: Minimum product support (count, or fraction below 1).
        cross_type_only: Skip pairs of products sharing a product type.

    Returns:
        RecomputeResult with the number of rows written.

    Raises:
        DataAccessError: If the backing store fails.
    """
    start_time = time.time()
    try:
        baskets, reason = load_baskets(session, owner_id, period)
        if reason is not None:
            return RecomputeResult(updated=0, reason=reason)

        counts = count_support(baskets)
        product_types = (
            fetch_product_types(session, counts.product_ids) if cross_type_only else None
        )

        rules = mine_association_rules(
            counts,
            min_support=min_support,
            max_antecedents=max_antecedents,
            min_count=min_count,
            min_confidence=min_confidence,
            min_lift=min_lift,
            top_per_product=top_per_product,
            product_types=product_types,
        )

        updated = RecommendationStore(session).recompute(
            owner_id, period, flatten_rules(rules)
        )

    except SQLAlchemyError as e:
        logger.error(
            "Association recompute failed on data access",
            extra={"owner_id": owner_id, "period": period, "error": str(e)},
            exc_info=True,
        )
        raise DataAccessError(owner_id, e) from e

    logger.info(
        "Association recompute completed",
        extra={
            "owner_id": owner_id,
            "period": period,
            "updated": updated,
            "total_time_ms": round((time.time() - start_time) * 1000, 2),
        },
    )
    return RecomputeResult(updated=updated)


def recompute_kmeans_recommendations(
    session: Session,
    owner_id: int,
    period: str = DEFAULT_PERIOD,
    top_features: int = DEFAULT_TOP_FEATURES,
    k: int = DEFAULT_N_CLUSTERS,
    min_count: int = DEFAULT_MIN_COUNT,
    top_per_product: int = DEFAULT_TOP_PER_PRODUCT,
    random_state: RandomStateLike = None,
    max_iter: int = DEFAULT_MAX_ITER,
    seed_retries: int = DEFAULT_SEED_RETRIES,
) -> RecomputeResult:
    """Recompute and store an owner's clustering-based recommendations.

    Products are clustered on their co-purchase feature vectors, then pairs
    are scored by co-occurrence count within each cluster.

    Args:
        session: Open database session.
        owner_id: Store owner whose transactions are mined.
        period: Lookback window tag (e.g. "30d"); also the stored period tag.
        top_features: Number of most frequent products used as features.
        k: Requested number of clusters (capped to half the products).
        min_count: Minimum number of shared baskets for a pair.
        top_per_product: Maximum recommendations per product.
        random_state: Seed or RandomState for centroid seeding.
        max_iter: Maximum k-means iterations.
        seed_retries: Re-draws allowed to avoid duplicate initial centroids.

    Returns:
        RecomputeResult with rows written and the number of distinct
        clusters used, or a zero-update reason.

    Raises:
        DataAccessError: If the backing store fails.
    """
    start_time = time.time()
    try:
        baskets, reason = load_baskets(session, owner_id, period)
        if reason is not None:
            return RecomputeResult(updated=0, reason=reason)

        counts = count_support(baskets)
        features = build_feature_vectors(counts, top_features=top_features)
        if not features.has_signal:
            logger.info(
                "No co-purchase signal, skipping clustering",
                extra={"owner_id": owner_id, "period": period},
            )
            return RecomputeResult(updated=0, reason=REASON_NO_SIGNAL)

        clusterer = KMeansClusterer(
            n_clusters=effective_k(k, len(features.product_ids)),
            max_iter=max_iter,
            seed_retries=seed_retries,
            random_state=random_state,
        )
        cluster_labels = clusterer.fit_predict(features.vectors)
        labels = {
            pid: int(label) for pid, label in zip(features.product_ids, cluster_labels)
        }

        pairs = score_cluster_pairs(
            counts, labels, min_count=min_count, top_per_product=top_per_product
        )
        updated = RecommendationStore(session).recompute(owner_id, period, pairs)

    except SQLAlchemyError as e:
        logger.error(
            "K-means recompute failed on data access",
            extra={"owner_id": owner_id, "period": period, "error": str(e)},
            exc_info=True,
        )
        raise DataAccessError(owner_id, e) from e

    clusters_used = len(set(labels.values()))
    logger.info(
        "K-means recompute completed",
        extra={
            "owner_id": owner_id,
            "period": period,
            "updated": updated,
            "clusters": clusters_used,
            "total_time_ms": round((time.time() - start_time) * 1000, 2),
        },
    )
    return RecomputeResult(updated=updated, clusters=clusters_used)


def compute_dashboard_insights(
    session: Session,
    owner_id: int,
    period: str = DEFAULT_PERIOD,
    max_antecedents: int = DEFAULT_MAX_ANTECEDENTS,
    top_per_product: int = DEFAULT_TOP_PER_PRODUCT,
    min_support: float = DEFAULT_MIN_SUPPORT,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    min_lift: float = DEFAULT_MIN_LIFT,
) -> List[Dict[str, Any]]:
    """Frequently-bought-together insights for the owner dashboard.

    Rules are mined on the fly with the dashboard thresholds and are not
    persisted.

    Returns:
        One entry per antecedent product (most frequent first) with its
        name, an overall insight and the recommended products with
        co-purchase count, confidence, lift, score and rationale. Empty when
        the owner has no stores or no transactions in the window.

    Raises:
        DataAccessError: If the backing store fails.
    """
    try:
        baskets, reason = load_baskets(session, owner_id, period)
        if reason is not None:
            return []

        counts = count_support(baskets)
        rules = mine_association_rules(
            counts,
            min_support=min_support,
            max_antecedents=max_antecedents,
            min_count=1,
            min_confidence=min_confidence,
            min_lift=min_lift,
            top_per_product=top_per_product,
        )

        product_ids = set(rules)
        for antecedent_rules in rules.values():
            product_ids.update(r.consequent_product_id for r in antecedent_rules)
        names = fetch_product_names(session, product_ids)

    except SQLAlchemyError as e:
        logger.error(
            "Dashboard insights failed on data access",
            extra={"owner_id": owner_id, "period": period, "error": str(e)},
            exc_info=True,
        )
        raise DataAccessError(owner_id, e, operation="insights") from e

    insights = []
    for antecedent, antecedent_rules in rules.items():
        insights.append(
            {
                "product_id": antecedent,
                "product_name": names.get(antecedent),
                "overall_insight": describe_antecedent(antecedent_rules),
                "recommended": [
                    {
                        "product_id": rule.consequent_product_id,
                        "product_name": names.get(rule.consequent_product_id),
                        "co_purchases": rule.support,
                        "confidence": round(rule.confidence, 1),
                        "lift": round(rule.lift, 2),
                        "score": round(rule.score, 2),
                        "insight": rule.rationale,
                    }
                    for rule in antecedent_rules
                ],
            }
        )
    return insights


def recompute_all_owners(
    session_factory: Callable[[], Session],
    period: str = DEFAULT_PERIOD,
    top_features: int = DEFAULT_TOP_FEATURES,
    k: int = DEFAULT_N_CLUSTERS,
    min_count: int = DEFAULT_MIN_COUNT,
    top_per_product: int = DEFAULT_TOP_PER_PRODUCT,
    random_state: RandomStateLike = None,
) -> BatchSummary:
    """Run the clustering recompute for every owner, one after another.

    A failure for one owner is logged and recorded in the summary; the
    remaining owners are still processed. Each owner gets its own session.

    Args:
        session_factory: Callable returning a new session (e.g. a
            ``sessionmaker``).
        period: Lookback window tag used for every owner.
        top_features: Number of feature products.
        k: Requested number of clusters.
        min_count: Minimum number of shared baskets for a pair.
        top_per_product: Maximum recommendations per product.
        random_state: Seed for centroid seeding.

    Returns:
        BatchSummary with per-owner results and failures.
    """
    with session_factory() as session:
        owner_ids = list_owner_ids(session)

    logger.info(
        "Starting scheduled recompute",
        extra={"num_owners": len(owner_ids), "period": period},
    )

    summary = BatchSummary()
    for owner_id in owner_ids:
        with session_factory() as session:
            try:
                result = recompute_kmeans_recommendations(
                    session,
                    owner_id,
                    period=period,
                    top_features=top_features,
                    k=k,
                    min_count=min_count,
                    top_per_product=top_per_product,
                    random_state=random_state,
                )
            except Exception as e:
                logger.error(
                    f"Scheduled recompute failed for owner {owner_id}: {e}",
                    extra={"owner_id": owner_id, "error_type": type(e).__name__},
                    exc_info=True,
                )
                summary.failed[owner_id] = str(e)
                continue

        summary.results[owner_id] = result
        logger.info(
            "Scheduled recompute for owner done",
            extra={"owner_id": owner_id, **result.to_dict()},
        )

    logger.info(
        "Scheduled recompute finished",
        extra={
            "num_owners": len(owner_ids),
            "num_failed": len(summary.failed),
            "total_updated": summary.total_updated,
        },
    )
    return summary
