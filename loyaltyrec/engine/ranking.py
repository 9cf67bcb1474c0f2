"""Shared ranking helpers for scored product pairs."""

from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List


@dataclass(frozen=True)
class ScoredPair:
    """A recommendation candidate: ``recommended_product_id`` for ``product_id``."""

    product_id: int
    recommended_product_id: int
    score: float


def select_top_per_product(
    pairs: Iterable[ScoredPair],
    top_per_product: int,
) -> List[ScoredPair]:
    """Keep the ``top_per_product`` highest scoring pairs of each product.

    Ties are broken by recommended product ID so the result is deterministic.
    Output is ordered by product ID, then rank.
    """
    if top_per_product <= 0:
        return []

    grouped: Dict[int, List[ScoredPair]] = defaultdict(list)
    for pair in pairs:
        grouped[pair.product_id].append(pair)

    selected: List[ScoredPair] = []
    for product_id in sorted(grouped):
        ranked = sorted(
            grouped[product_id],
            key=lambda p: (-p.score, p.recommended_product_id),
        )
        selected.extend(ranked[:top_per_product])

    return selected
