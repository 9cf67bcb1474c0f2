"""Tests for co-purchase feature vectors."""

import numpy as np

from loyaltyrec.engine.features import build_feature_vectors, select_feature_products
from loyaltyrec.engine.support import count_support


def make_counts():
    return count_support({"b1": {1, 2}, "b2": {1, 2}, "b3": {1, 3}})


def test_feature_products_most_frequent_first():
    counts = make_counts()

    assert select_feature_products(counts, top_features=10) == [1, 2, 3]
    assert select_feature_products(counts, top_features=2) == [1, 2]


def test_feature_vectors_count_co_purchases():
    features = build_feature_vectors(make_counts(), top_features=10)

    assert features.product_ids == [1, 2, 3]
    assert features.feature_ids == [1, 2, 3]
    np.testing.assert_array_equal(
        features.vectors,
        np.array(
            [
                [0.0, 2.0, 1.0],
                [2.0, 0.0, 0.0],
                [1.0, 0.0, 0.0],
            ]
        ),
    )


def test_product_never_scores_against_itself():
    features = build_feature_vectors(make_counts(), top_features=10)

    for row, pid in enumerate(features.product_ids):
        column = features.feature_ids.index(pid)
        assert features.vectors[row, column] == 0


def test_feature_vectors_respect_top_features():
    features = build_feature_vectors(make_counts(), top_features=2)

    assert features.vectors.shape == (3, 2)
    np.testing.assert_array_equal(features.vectors[2], [1.0, 0.0])
    assert features.has_signal


def test_single_product_baskets_have_no_signal():
    features = build_feature_vectors(count_support({"b1": {1}, "b2": {2}}))

    assert features.vectors.shape == (2, 2)
    assert not features.has_signal


def test_empty_counts_have_no_signal():
    features = build_feature_vectors(count_support({}))

    assert features.product_ids == []
    assert not features.has_signal
