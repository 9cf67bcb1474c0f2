"""Support and co-occurrence counting over baskets.

Builds a binary basket-by-product incidence matrix and derives per-product
support (number of baskets containing the product) and ordered pair
co-occurrence (number of baskets containing both products).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Tuple

import numpy as np
from scipy.sparse import csr_matrix

# Configure module logger
logger = logging.getLogger(__name__)


@dataclass
class SupportCounts:
    """Support and co-occurrence counts for one set of baskets.

    Attributes:
        basket_count: Total number of baskets.
        product_ids: Sorted product IDs; position is the matrix index.
        support: Basket count per product, aligned with ``product_ids``.
        cooccurrence: Square sparse matrix, entry ``[i, j]`` is the number
            of baskets containing both products ``i`` and ``j``. The
            diagonal is always zero.
        incidence: Binary basket-by-product matrix the counts came from,
            columns aligned with ``product_ids``.
    """

    basket_count: int
    product_ids: List[int]
    support: np.ndarray
    cooccurrence: csr_matrix
    incidence: Optional[csr_matrix] = None
    product_index: Dict[int, int] = field(init=False)

    def __post_init__(self) -> None:
        self.product_index = {pid: idx for idx, pid in enumerate(self.product_ids)}

    @property
    def is_empty(self) -> bool:
        return self.basket_count == 0 or not self.product_ids

    def support_of(self, product_id: int) -> int:
        """Number of baskets containing ``product_id`` (0 if unseen)."""
        idx = self.product_index.get(product_id)
        if idx is None:
            return 0
        return int(self.support[idx])

    def pair_count(self, product_a: int, product_b: int) -> int:
        """Number of baskets containing both products."""
        idx_a = self.product_index.get(product_a)
        idx_b = self.product_index.get(product_b)
        if idx_a is None or idx_b is None:
            return 0
        return int(self.cooccurrence[idx_a, idx_b])

    def iter_pairs(self) -> Iterator[Tuple[int, int, int]]:
        """Yield ``(product_a, product_b, count)`` for every co-occurring pair.

        Both orderings of a pair are yielded.
        """
        coo = self.cooccurrence.tocoo()
        for row, col, count in zip(coo.row, coo.col, coo.data):
            yield self.product_ids[row], self.product_ids[col], int(count)

    def partners_of(self, product_id: int) -> Iterator[Tuple[int, int]]:
        """Yield ``(other_product, count)`` for products co-occurring with one product."""
        idx = self.product_index.get(product_id)
        if idx is None:
            return
        row = self.cooccurrence[idx]
        for col, count in zip(row.indices, row.data):
            yield self.product_ids[col], int(count)


def build_incidence_matrix(
    baskets: Mapping[str, Iterable[int]],
) -> Tuple[csr_matrix, List[int]]:
    """Build the binary basket-by-product matrix.

    Returns:
        A tuple containing:
            - CSR matrix of shape (n_baskets, n_products) with 1 where the
              basket contains the product
            - Sorted list of product IDs (matrix column order)
    """
    basket_sets = [set(products) for products in baskets.values()]
    product_ids = sorted({pid for products in basket_sets for pid in products})
    product_index = {pid: idx for idx, pid in enumerate(product_ids)}

    rows: List[int] = []
    cols: List[int] = []
    for row, products in enumerate(basket_sets):
        for pid in products:
            rows.append(row)
            cols.append(product_index[pid])

    matrix = csr_matrix(
        (np.ones(len(rows), dtype=np.int64), (rows, cols)),
        shape=(len(basket_sets), len(product_ids)),
        dtype=np.int64,
    )
    return matrix, product_ids


def count_support(baskets: Mapping[str, Iterable[int]]) -> SupportCounts:
    """Count per-product support and pairwise co-occurrence.

    Each basket adds 1 to the support of every distinct product in it and 1
    to the co-occurrence of every ordered pair of distinct products in it.

    Args:
        baskets: Mapping of basket key to the products in that basket.

    Returns:
        SupportCounts for the baskets. Empty input yields empty counts.
    """
    incidence, product_ids = build_incidence_matrix(baskets)

    if not product_ids:
        return SupportCounts(
            basket_count=incidence.shape[0],
            product_ids=[],
            support=np.zeros(0, dtype=np.int64),
            cooccurrence=csr_matrix((0, 0), dtype=np.int64),
            incidence=incidence,
        )

    support = np.asarray(incidence.sum(axis=0)).ravel().astype(np.int64)

    # Gram matrix counts shared baskets; its diagonal is the support itself
    cooccurrence = (incidence.T @ incidence).tocsr()
    cooccurrence.setdiag(0)
    cooccurrence.eliminate_zeros()

    logger.info(
        "Counted support",
        extra={
            "num_baskets": incidence.shape[0],
            "num_products": len(product_ids),
            "num_pairs": int(cooccurrence.nnz),
        },
    )

    return SupportCounts(
        basket_count=incidence.shape[0],
        product_ids=product_ids,
        support=support,
        cooccurrence=cooccurrence,
        incidence=incidence,
    )
