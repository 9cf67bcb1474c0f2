"""Tests for intra-cluster pair scoring and top-N selection."""

from loyaltyrec.engine.cluster_scoring import score_cluster_pairs
from loyaltyrec.engine.ranking import ScoredPair, select_top_per_product
from loyaltyrec.engine.support import count_support


def make_counts():
    return count_support({"b1": {1, 2}, "b2": {1, 2}, "b3": {1, 3}})


def test_only_same_cluster_pairs_are_scored():
    pairs = score_cluster_pairs(make_counts(), {1: 0, 2: 0, 3: 1}, min_count=1)

    assert pairs == [ScoredPair(1, 2, 2.0), ScoredPair(2, 1, 2.0)]


def test_single_cluster_scores_every_pair():
    pairs = score_cluster_pairs(make_counts(), {1: 0, 2: 0, 3: 0}, min_count=1)

    assert [(p.product_id, p.recommended_product_id, p.score) for p in pairs] == [
        (1, 2, 2.0),
        (1, 3, 1.0),
        (2, 1, 2.0),
        (3, 1, 1.0),
    ]


def test_min_count_filters_pairs():
    assert score_cluster_pairs(make_counts(), {1: 0, 2: 0, 3: 0}, min_count=3) == []


def test_unlabelled_products_are_ignored():
    pairs = score_cluster_pairs(make_counts(), {1: 0, 3: 0}, min_count=1)

    assert {(p.product_id, p.recommended_product_id) for p in pairs} == {(1, 3), (3, 1)}


def test_top_per_product_caps_pairs():
    pairs = score_cluster_pairs(
        make_counts(), {1: 0, 2: 0, 3: 0}, min_count=1, top_per_product=1
    )

    assert [(p.product_id, p.recommended_product_id) for p in pairs] == [(1, 2), (2, 1), (3, 1)]


def test_select_top_per_product_breaks_ties_by_id():
    pairs = [
        ScoredPair(1, 9, 3.0),
        ScoredPair(1, 4, 3.0),
        ScoredPair(1, 7, 5.0),
        ScoredPair(2, 1, 1.0),
    ]

    selected = select_top_per_product(pairs, top_per_product=2)

    assert selected == [ScoredPair(1, 7, 5.0), ScoredPair(1, 4, 3.0), ScoredPair(2, 1, 1.0)]


def test_select_top_per_product_zero():
    assert select_top_per_product([ScoredPair(1, 2, 1.0)], top_per_product=0) == []
