"""Intra-cluster co-occurrence scoring.

Re-scores product pairs from the basket co-occurrence counts, keeping only
pairs whose products landed in the same k-means cluster. Cross-cluster pairs
that co-occur by coincidence are suppressed.
"""

import logging
from typing import List, Mapping

from loyaltyrec.engine.ranking import ScoredPair, select_top_per_product
from loyaltyrec.engine.support import SupportCounts

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_MIN_COUNT = 5
DEFAULT_TOP_PER_PRODUCT = 5


def score_cluster_pairs(
    counts: SupportCounts,
    labels: Mapping[int, int],
    min_count: int = DEFAULT_MIN_COUNT,
    top_per_product: int = DEFAULT_TOP_PER_PRODUCT,
) -> List[ScoredPair]:
    """Score same-cluster product pairs by co-occurrence count.

    Args:
        counts: Support and co-occurrence counts of the baskets.
        labels: Cluster label per product ID. Products without a label are
            ignored.
        min_count: Minimum number of shared baskets for a pair.
        top_per_product: Maximum recommendations kept per product.

    Returns:
        Scored pairs, at most ``top_per_product`` per product, score being
        the co-occurrence count.
    """
    candidates = []
    cross_cluster = 0
    for product_a, product_b, co_count in counts.iter_pairs():
        label_a = labels.get(product_a)
        label_b = labels.get(product_b)
        if label_a is None or label_b is None:
            continue
        if label_a != label_b:
            cross_cluster += 1
            continue
        if co_count < min_count:
            continue
        candidates.append(
            ScoredPair(
                product_id=product_a,
                recommended_product_id=product_b,
                score=float(co_count),
            )
        )

    selected = select_top_per_product(candidates, top_per_product)

    logger.info(
        "Scored intra-cluster pairs",
        extra={
            "num_candidates": len(candidates),
            "num_cross_cluster_pairs": cross_cluster,
            "num_selected": len(selected),
        },
    )

    return selected
