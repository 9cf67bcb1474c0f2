"""Association rule mining over basket support counts.

Derives product-to-product rules (A -> B) ranked by confidence and lift.
Frequent pairs and their metrics come from mlxtend's apriori and
association_rules over a one-hot basket frame. Rule antecedents are
restricted to the most frequent products, which keeps the output bounded at
the cost of completeness.

Metrics for a rule A -> B over N baskets:
    confidence = co(A, B) / support(A) * 100
    lift = co(A, B) * N / (support(A) * support(B))

Confidence is directional, lift is symmetric.
"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence

import pandas as pd
from mlxtend.frequent_patterns import apriori, association_rules

from loyaltyrec.engine.ranking import ScoredPair
from loyaltyrec.engine.support import SupportCounts

# Configure module logger
logger = logging.getLogger(__name__)

# Dashboard defaults, calibrated for sparse retail data
DEFAULT_MIN_SUPPORT = 1
DEFAULT_MAX_ANTECEDENTS = 15
DEFAULT_MIN_CONFIDENCE = 20.0
DEFAULT_MIN_LIFT = 1.2
DEFAULT_TOP_PER_PRODUCT = 5

# Rationale tiers
HIGH_CO_PURCHASES = 5
HIGH_CONFIDENCE = 50.0
HIGH_LIFT = 2.0
MODERATE_CONFIDENCE = 30.0

RULE_COLUMNS = [
    "antecedent_product_id",
    "consequent_product_id",
    "support",
    "confidence",
    "lift",
]


@dataclass(frozen=True)
class AssociationRule:
    """A directional co-purchase rule.

    Attributes:
        antecedent_product_id: Product the rule starts from (A).
        consequent_product_id: Product recommended alongside it (B).
        support: Number of baskets containing both products.
        confidence: Percentage of baskets with A that also contain B.
        lift: Observed co-occurrence over the co-occurrence expected if
            A and B were independent.
    """

    antecedent_product_id: int
    consequent_product_id: int
    support: int
    confidence: float
    lift: float

    @property
    def score(self) -> float:
        """Combined ranking score."""
        return self.confidence * self.lift

    @property
    def rationale(self) -> str:
        return describe_rule(self)

    def to_scored_pair(self) -> ScoredPair:
        return ScoredPair(
            product_id=self.antecedent_product_id,
            recommended_product_id=self.consequent_product_id,
            score=round(self.score, 4),
        )


def compute_rule_metrics(
    counts: SupportCounts,
    antecedent: int,
    consequent: int,
) -> Optional[AssociationRule]:
    """Compute support, confidence and lift for one ordered pair.

    Returns:
        The rule, or None when either product has no support.
    """
    support_a = counts.support_of(antecedent)
    support_b = counts.support_of(consequent)
    if support_a == 0 or support_b == 0:
        return None

    co_count = counts.pair_count(antecedent, consequent)
    confidence = co_count / support_a * 100.0
    lift = co_count * counts.basket_count / (support_a * support_b)

    return AssociationRule(
        antecedent_product_id=antecedent,
        consequent_product_id=consequent,
        support=co_count,
        confidence=confidence,
        lift=lift,
    )


def _support_threshold(min_support: float, basket_count: int) -> float:
    """Values below 1 are fractions of all baskets, otherwise basket counts."""
    if min_support < 1:
        return max(1.0, math.ceil(min_support * basket_count))
    return float(min_support)


def frequent_products(
    counts: SupportCounts,
    min_support: float = DEFAULT_MIN_SUPPORT,
) -> List[int]:
    """Products meeting the support threshold, most frequent first.

    Ties are ordered by product ID.
    """
    threshold = _support_threshold(min_support, counts.basket_count)
    eligible = [
        (int(support), pid)
        for pid, support in zip(counts.product_ids, counts.support)
        if support >= threshold and support > 0
    ]
    eligible.sort(key=lambda item: (-item[0], item[1]))
    return [pid for _, pid in eligible]


def _same_type(
    product_types: Optional[Mapping[int, Optional[str]]],
    product_a: int,
    product_b: int,
) -> bool:
    if product_types is None:
        return False
    type_a = product_types.get(product_a)
    type_b = product_types.get(product_b)
    return bool(type_a) and type_a == type_b


def basket_frame(counts: SupportCounts, product_ids: Sequence[int]) -> pd.DataFrame:
    """One-hot basket frame over ``product_ids``, one row per basket."""
    if counts.incidence is None:
        raise ValueError("Support counts carry no incidence matrix")
    columns = [counts.product_index[pid] for pid in product_ids]
    dense = counts.incidence[:, columns].toarray().astype(bool)
    return pd.DataFrame(dense, columns=list(product_ids))


def pairwise_rules(
    counts: SupportCounts,
    product_ids: Sequence[int],
    min_count: int = 1,
) -> pd.DataFrame:
    """All single-product rules among ``product_ids``.

    Runs apriori up to pairs, with the support floor set so that a pair
    needs at least ``min_count`` shared baskets, then derives both
    directions of every frequent pair.

    Returns:
        DataFrame with the columns in ``RULE_COLUMNS``. ``support`` is a
        basket count and ``confidence`` a percentage.
    """
    empty = pd.DataFrame(columns=RULE_COLUMNS)
    basket_count = counts.basket_count
    min_count = max(1, min_count)
    if len(product_ids) < 2 or basket_count == 0 or min_count > basket_count:
        return empty

    frame = basket_frame(counts, product_ids)
    # Half a basket below the floor so float rounding never drops a pair
    itemsets = apriori(
        frame,
        min_support=(min_count - 0.5) / basket_count,
        use_colnames=True,
        max_len=2,
    )
    if itemsets.empty or not (itemsets["itemsets"].apply(len) == 2).any():
        return empty

    found = association_rules(
        itemsets,
        num_itemsets=basket_count,
        metric="confidence",
        min_threshold=0.0,
    )

    return pd.DataFrame(
        {
            "antecedent_product_id": [int(next(iter(a))) for a in found["antecedents"]],
            "consequent_product_id": [int(next(iter(c))) for c in found["consequents"]],
            "support": [int(round(s * basket_count)) for s in found["support"]],
            "confidence": [float(c) * 100.0 for c in found["confidence"]],
            "lift": [float(v) for v in found["lift"]],
        },
        columns=RULE_COLUMNS,
    )


def mine_association_rules(
    counts: SupportCounts,
    min_support: float = DEFAULT_MIN_SUPPORT,
    max_antecedents: int = DEFAULT_MAX_ANTECEDENTS,
    min_count: int = 1,
    min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    min_lift: float = DEFAULT_MIN_LIFT,
    top_per_product: int = DEFAULT_TOP_PER_PRODUCT,
    product_types: Optional[Mapping[int, Optional[str]]] = None,
) -> Dict[int, List[AssociationRule]]:
    """Mine ranked association rules from support counts.

    Args:
        counts: Support and co-occurrence counts of the baskets.
        min_support: Minimum product support. Values below 1 are read as a
            fraction of all baskets, otherwise as a basket count.
        max_antecedents: Only this many of the most frequent products are used
            as rule antecedents.
        min_count: Minimum number of shared baskets for a rule.
        min_confidence: Rules must have confidence strictly above this (%).
        min_lift: Rules must have lift strictly above this.
        top_per_product: Maximum rules kept per antecedent.
        product_types: Optional product type per product. When given, pairs
            of products with the same type are skipped.

    Returns:
        Dictionary mapping antecedent product ID to its rules, best first.
        Antecedents without any surviving rule are omitted. Empty counts
        yield an empty dictionary.

    Example:
        >>> counts = count_support(baskets)
        >>> rules = mine_association_rules(counts, max_antecedents=10)
        >>> for rule in rules.get(42, []):
        ...     print(rule.consequent_product_id, rule.rationale)
    """
    if counts.is_empty:
        logger.info("No baskets, no association rules")
        return {}

    frequent = frequent_products(counts, min_support)
    antecedents = frequent[: max(0, max_antecedents)]

    logger.info(
        "Mining association rules",
        extra={
            "num_baskets": counts.basket_count,
            "num_frequent_products": len(frequent),
            "num_antecedents": len(antecedents),
            "min_count": min_count,
            "min_confidence": min_confidence,
            "min_lift": min_lift,
        },
    )

    table = pairwise_rules(counts, frequent, min_count)
    table = table[table["antecedent_product_id"].isin(antecedents)]

    candidates: Dict[int, List[AssociationRule]] = {}
    for row in table.itertuples(index=False):
        antecedent = int(row.antecedent_product_id)
        consequent = int(row.consequent_product_id)
        if _same_type(product_types, antecedent, consequent):
            continue
        if row.confidence <= min_confidence or row.lift <= min_lift:
            continue
        candidates.setdefault(antecedent, []).append(
            AssociationRule(
                antecedent_product_id=antecedent,
                consequent_product_id=consequent,
                support=int(row.support),
                confidence=float(row.confidence),
                lift=float(row.lift),
            )
        )

    rules: Dict[int, List[AssociationRule]] = {}
    for antecedent in antecedents:
        ranked = candidates.get(antecedent)
        if not ranked:
            continue
        ranked.sort(key=lambda r: (-r.score, -r.support, r.consequent_product_id))
        rules[antecedent] = ranked[: max(0, top_per_product)]

    total_rules = sum(len(r) for r in rules.values())
    logger.info(
        "Association rules mined",
        extra={"num_antecedents_with_rules": len(rules), "num_rules": total_rules},
    )

    return rules


def flatten_rules(rules: Mapping[int, List[AssociationRule]]) -> List[ScoredPair]:
    """Turn per-antecedent rules into scored pairs for storage."""
    return [
        rule.to_scored_pair()
        for antecedent in sorted(rules)
        for rule in rules[antecedent]
    ]


def describe_rule(rule: AssociationRule) -> str:
    """Human-readable rationale for a rule."""
    if rule.support >= HIGH_CO_PURCHASES and rule.confidence >= HIGH_CONFIDENCE:
        return (
            f"Frequently bought together: purchased together {rule.support} times, "
            f"in {rule.confidence:.0f}% of baskets with this product."
        )
    if rule.lift >= HIGH_LIFT:
        return (
            f"Strong affinity: {rule.lift:.1f}x more likely to be bought together "
            "than by chance."
        )
    if rule.confidence >= MODERATE_CONFIDENCE:
        return (
            f"Often paired: appears in {rule.confidence:.0f}% of baskets "
            "with this product."
        )
    return "Occasionally bought together."


def describe_antecedent(rules: List[AssociationRule]) -> Optional[str]:
    """Overall insight line for the rules of one antecedent product."""
    if not rules:
        return None

    best = rules[0]
    if len(rules) == 1:
        return (
            "Customers who buy this product also pick up 1 related item "
            f"({best.confidence:.0f}% of the time)."
        )
    return (
        f"Customers who buy this product also pick up {len(rules)} related items; "
        f"the strongest pairing appears in {best.confidence:.0f}% of its baskets."
    )
