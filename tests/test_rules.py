"""Tests for association rule mining."""

import pytest

from loyaltyrec.engine.rules import (
    RULE_COLUMNS,
    AssociationRule,
    basket_frame,
    compute_rule_metrics,
    describe_antecedent,
    describe_rule,
    flatten_rules,
    frequent_products,
    mine_association_rules,
    pairwise_rules,
)
from loyaltyrec.engine.support import SupportCounts, count_support


@pytest.fixture
def counts():
    """Three baskets: {1, 2}, {1, 2}, {1, 3}."""
    return count_support({"b1": {1, 2}, "b2": {1, 2}, "b3": {1, 3}})


def mine_all(counts, **kwargs):
    """Mine with the quality thresholds disabled."""
    params = {"min_confidence": 0.0, "min_lift": 0.0}
    params.update(kwargs)
    return mine_association_rules(counts, **params)


def test_rule_metrics(counts):
    rule = compute_rule_metrics(counts, 1, 2)

    assert rule.support == 2
    assert rule.confidence == pytest.approx(66.6667, abs=1e-3)
    assert rule.lift == pytest.approx(1.0)


def test_lift_is_symmetric_confidence_is_not(counts):
    forward = compute_rule_metrics(counts, 1, 2)
    backward = compute_rule_metrics(counts, 2, 1)

    assert forward.lift == pytest.approx(backward.lift)
    assert backward.confidence == pytest.approx(100.0)
    assert forward.confidence != pytest.approx(backward.confidence)


def test_rule_metrics_unknown_product(counts):
    assert compute_rule_metrics(counts, 1, 42) is None


def test_confidence_within_bounds(counts):
    rules = mine_all(counts)

    for antecedent_rules in rules.values():
        for rule in antecedent_rules:
            assert 0 <= rule.confidence <= 100
            assert rule.lift > 0


def test_mine_rules_ranked_by_score(counts):
    rules = mine_all(counts)

    assert set(rules) == {1, 2, 3}
    assert [r.consequent_product_id for r in rules[1]] == [2, 3]
    assert rules[1][0].score > rules[1][1].score


def test_default_thresholds_filter_weak_rules(counts):
    # Every lift here is at most 1.0, below the default of 1.2
    assert mine_association_rules(counts) == {}


def test_thresholds_are_strict(counts):
    rules = mine_all(counts, min_lift=1.0)

    assert rules == {}


def test_min_count_filters_rare_pairs(counts):
    rules = mine_all(counts, min_count=2)

    assert set(rules) == {1, 2}
    assert [r.consequent_product_id for r in rules[1]] == [2]


def test_top_per_product_caps_rules(counts):
    rules = mine_all(counts, top_per_product=1)

    assert all(len(r) == 1 for r in rules.values())
    assert rules[1][0].consequent_product_id == 2


def test_max_antecedents_uses_most_frequent_products(counts):
    rules = mine_all(counts, max_antecedents=1)

    assert list(rules) == [1]


def test_fractional_min_support(counts):
    # Half of 3 baskets rounds up to 2; product 3 drops out
    assert frequent_products(counts, min_support=0.5) == [1, 2]

    rules = mine_all(counts, min_support=0.5)

    assert set(rules) == {1, 2}
    assert all(r.consequent_product_id != 3 for r in rules[1])


def test_product_types_skip_same_type_pairs(counts):
    product_types = {1: "coffee", 2: "coffee", 3: "pastry"}

    rules = mine_all(counts, product_types=product_types)

    assert set(rules) == {1, 3}
    assert [r.consequent_product_id for r in rules[1]] == [3]


def test_empty_counts_yield_no_rules():
    assert mine_association_rules(count_support({})) == {}


def test_flatten_rules_scores_confidence_times_lift(counts):
    pairs = flatten_rules(mine_all(counts, min_count=2))

    assert [(p.product_id, p.recommended_product_id) for p in pairs] == [(1, 2), (2, 1)]
    assert pairs[0].score == pytest.approx(66.6667, abs=1e-3)
    assert pairs[1].score == pytest.approx(100.0)


def test_describe_rule_tiers():
    frequent = AssociationRule(1, 2, support=8, confidence=60.0, lift=1.1)
    affinity = AssociationRule(1, 2, support=2, confidence=25.0, lift=2.5)
    paired = AssociationRule(1, 2, support=2, confidence=40.0, lift=1.3)
    occasional = AssociationRule(1, 2, support=1, confidence=21.0, lift=1.3)

    assert describe_rule(frequent).startswith("Frequently bought together: purchased together 8 times")
    assert describe_rule(affinity).startswith("Strong affinity: 2.5x")
    assert describe_rule(paired).startswith("Often paired: appears in 40%")
    assert describe_rule(occasional) == "Occasionally bought together."


def test_describe_antecedent():
    rules = [
        AssociationRule(1, 2, support=6, confidence=75.0, lift=1.9),
        AssociationRule(1, 3, support=2, confidence=25.0, lift=1.3),
    ]

    assert describe_antecedent([]) is None
    assert "1 related item" in describe_antecedent(rules[:1])
    assert "2 related items" in describe_antecedent(rules)
    assert "75%" in describe_antecedent(rules)


def test_basket_frame_is_one_hot(counts):
    frame = basket_frame(counts, [1, 3])

    assert list(frame.columns) == [1, 3]
    assert frame.dtypes.eq(bool).all()
    assert frame.sum().tolist() == [3, 1]


def test_basket_frame_needs_incidence(counts):
    bare = SupportCounts(
        basket_count=counts.basket_count,
        product_ids=counts.product_ids,
        support=counts.support,
        cooccurrence=counts.cooccurrence,
    )

    with pytest.raises(ValueError):
        basket_frame(bare, [1, 2])


def test_pairwise_rules_cover_both_directions(counts):
    table = pairwise_rules(counts, [1, 2, 3])

    assert list(table.columns) == RULE_COLUMNS
    pairs = sorted(zip(table["antecedent_product_id"], table["consequent_product_id"]))
    assert pairs == [(1, 2), (1, 3), (2, 1), (3, 1)]


def test_pairwise_rules_min_count(counts):
    table = pairwise_rules(counts, [1, 2, 3], min_count=2)

    assert sorted(table["antecedent_product_id"]) == [1, 2]
    assert set(table["support"]) == {2}


def test_pairwise_rules_without_pairs():
    assert pairwise_rules(count_support({"b1": {1}, "b2": {2}}), [1, 2]).empty
    assert pairwise_rules(count_support({"b1": {1, 2}}), [1]).empty
    assert pairwise_rules(count_support({"b1": {1, 2}}), [1, 2], min_count=2).empty


def test_mined_metrics_match_basket_counts():
    counts = count_support(
        {
            "b1": {1, 2},
            "b2": {1, 2},
            "b3": {1, 2, 3},
            "b4": {1, 4},
            "b5": {3, 4},
            "b6": {2, 3},
            "b7": {4},
        }
    )

    rules = mine_all(counts)

    mined = [rule for antecedent_rules in rules.values() for rule in antecedent_rules]
    assert mined
    for rule in mined:
        expected = compute_rule_metrics(
            counts, rule.antecedent_product_id, rule.consequent_product_id
        )
        assert rule.support == expected.support
        assert rule.confidence == pytest.approx(expected.confidence)
        assert rule.lift == pytest.approx(expected.lift)
