"""Tests for basket building from transaction lines."""

from datetime import datetime, timedelta, timezone

import pandas as pd
import pytest

from loyaltyrec.engine.baskets import (
    TRANSACTION_COLUMNS,
    basket_keys,
    build_baskets,
    lookback_start,
    parse_period,
)


def make_lines(rows):
    """Build a transaction line feed from (product, key, user, store, timestamp) tuples."""
    return pd.DataFrame(
        [
            {
                "product_id": product_id,
                "basket_key": key,
                "quantity": 1,
                "total": 3.0,
                "user_id": user_id,
                "store_id": store_id,
                "transaction_date": timestamp,
            }
            for product_id, key, user_id, store_id, timestamp in rows
        ],
        columns=TRANSACTION_COLUMNS,
    )


NOON = datetime(2024, 3, 1, 12, 0, 30)


def test_parse_period():
    assert parse_period("30d") == 30
    assert parse_period("7d") == 7
    assert parse_period("90d") == 90


def test_parse_period_unrecognised_falls_back_to_30_days():
    assert parse_period("weekly") == 30
    assert parse_period("") == 30
    assert parse_period(None) == 30


def test_lookback_start():
    now = datetime(2024, 1, 31, 9, 0)
    assert lookback_start("7d", now=now) == datetime(2024, 1, 24, 9, 0)


def test_lookback_start_defaults_to_naive_utc_now():
    before = datetime.now(timezone.utc).replace(tzinfo=None)
    start = lookback_start("7d")
    after = datetime.now(timezone.utc).replace(tzinfo=None)

    assert start.tzinfo is None
    assert before - timedelta(days=7) <= start <= after - timedelta(days=7)


def test_lines_with_same_reference_form_one_basket():
    lines = make_lines(
        [
            (1, "R1", 5, 10, NOON),
            (2, "R1", 5, 10, NOON),
            (3, "R2", 5, 10, NOON),
        ]
    )

    baskets = build_baskets(lines)

    assert baskets == {"R1": {1, 2}, "R2": {3}}


def test_duplicate_products_collapse():
    lines = make_lines(
        [
            (1, "R1", 5, 10, NOON),
            (1, "R1", 5, 10, NOON),
            (2, "R1", 5, 10, NOON),
        ]
    )

    baskets = build_baskets(lines)

    assert baskets["R1"] == {1, 2}


def test_lines_without_reference_grouped_by_store_user_and_window():
    lines = make_lines(
        [
            (1, None, 5, 10, datetime(2024, 3, 1, 12, 0, 30)),
            (2, None, 5, 10, datetime(2024, 3, 1, 12, 3, 0)),
            # Next 5-minute window
            (3, None, 5, 10, datetime(2024, 3, 1, 12, 6, 0)),
            # Same window, other customer
            (4, None, 6, 10, datetime(2024, 3, 1, 12, 1, 0)),
        ]
    )

    baskets = build_baskets(lines, window_minutes=5)

    assert len(baskets) == 3
    assert sorted(map(sorted, baskets.values())) == [[1, 2], [3], [4]]
    assert all(key.startswith("synth:10:") for key in baskets)


def test_blank_reference_uses_synthetic_key():
    lines = make_lines([(1, "  ", 5, 10, NOON), (2, None, 5, 10, NOON)])

    baskets = build_baskets(lines)

    assert list(baskets.values()) == [{1, 2}]


def test_synthetic_key_format_with_anonymous_user():
    lines = make_lines([(1, None, None, 10, NOON), (2, "R9", 5, 10, NOON)])

    keys = basket_keys(lines, window_minutes=5)

    bucket = int((NOON - datetime(1970, 1, 1)).total_seconds() // 300)
    assert keys.iloc[0] == f"synth:10:anon:{bucket}"
    assert keys.iloc[1] == "R9"


def test_lines_without_product_are_skipped():
    lines = make_lines([(None, "R1", 5, 10, NOON), (2, "R1", 5, 10, NOON)])

    baskets = build_baskets(lines)

    assert baskets == {"R1": {2}}


def test_empty_feed_yields_no_baskets():
    assert build_baskets(pd.DataFrame(columns=TRANSACTION_COLUMNS)) == {}


def test_invalid_window_raises():
    lines = make_lines([(1, None, 5, 10, NOON)])

    with pytest.raises(ValueError, match="window_minutes"):
        basket_keys(lines, window_minutes=0)
