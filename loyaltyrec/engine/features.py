"""Co-purchase feature vectors for the clustering strategy.

Each product is projected onto a fixed set of feature dimensions, the most
frequently purchased products. Position ``i`` of a product's vector counts
the baskets in which the product was bought together with feature product
``i``.
"""

import logging
from dataclasses import dataclass
from typing import List

import numpy as np

from loyaltyrec.engine.support import SupportCounts

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_TOP_FEATURES = 100


@dataclass
class FeatureMatrix:
    """Feature vectors of all products seen in the baskets.

    Attributes:
        product_ids: Product of each row.
        feature_ids: Feature product of each column, most frequent first.
        vectors: Array of shape (n_products, n_features).
    """

    product_ids: List[int]
    feature_ids: List[int]
    vectors: np.ndarray

    @property
    def has_signal(self) -> bool:
        """False when no product co-occurs with any feature product."""
        return bool(self.vectors.size) and bool(np.any(self.vectors))


def select_feature_products(
    counts: SupportCounts,
    top_features: int = DEFAULT_TOP_FEATURES,
) -> List[int]:
    """The ``top_features`` most frequent products (ties by product ID)."""
    ranked = sorted(
        zip(counts.product_ids, counts.support),
        key=lambda item: (-int(item[1]), item[0]),
    )
    return [pid for pid, support in ranked[: max(0, top_features)] if support > 0]


def build_feature_vectors(
    counts: SupportCounts,
    top_features: int = DEFAULT_TOP_FEATURES,
) -> FeatureMatrix:
    """Build co-purchase feature vectors for every product.

    The co-occurrence matrix has a zero diagonal, so a product that is itself
    a feature never scores against its own dimension.

    Args:
        counts: Support and co-occurrence counts of the baskets.
        top_features: Number of feature dimensions.

    Returns:
        FeatureMatrix with one row per product in ``counts``.
    """
    feature_ids = select_feature_products(counts, top_features)
    feature_columns = [counts.product_index[pid] for pid in feature_ids]

    if counts.product_ids and feature_columns:
        vectors = counts.cooccurrence[:, feature_columns].toarray().astype(np.float64)
    else:
        vectors = np.zeros((len(counts.product_ids), len(feature_ids)))

    nonzero_rows = int(np.count_nonzero(vectors.any(axis=1))) if vectors.size else 0
    logger.info(
        "Built feature vectors",
        extra={
            "num_products": len(counts.product_ids),
            "num_features": len(feature_ids),
            "num_products_with_signal": nonzero_rows,
        },
    )

    return FeatureMatrix(
        product_ids=list(counts.product_ids),
        feature_ids=feature_ids,
        vectors=vectors,
    )
