"""Basket building from transaction lines.

Groups raw transaction line-items into purchase baskets, the unit of
co-occurrence analysis. Lines sharing an explicit reference number form one
basket. Lines without one are bucketed by store, user and a fixed time window
so that near-simultaneous purchases by the same customer are treated as a
single basket. The time-window fallback is a heuristic and can merge or split
real purchases.
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional, Set

import pandas as pd

# Configure module logger
logger = logging.getLogger(__name__)

# Default parameters
DEFAULT_PERIOD = "30d"
DEFAULT_LOOKBACK_DAYS = 30
DEFAULT_WINDOW_MINUTES = 5

# Placeholders for missing identifiers in synthetic keys
ANONYMOUS_USER = "anon"
UNKNOWN_STORE = "store"

# Columns of a transaction line feed
TRANSACTION_COLUMNS = [
    "product_id",
    "basket_key",
    "quantity",
    "total",
    "user_id",
    "store_id",
    "transaction_date",
]

_PERIOD_PATTERN = re.compile(r"^(\d+)d$")


def parse_period(period: Optional[str]) -> int:
    """Convert a period tag such as ``"30d"`` into a lookback in days.

    Unrecognised tags fall back to 30 days.
    """
    match = _PERIOD_PATTERN.match(period or "")
    if match is None:
        logger.warning(
            "Unrecognised period tag, using default lookback",
            extra={"period": period, "lookback_days": DEFAULT_LOOKBACK_DAYS},
        )
        return DEFAULT_LOOKBACK_DAYS
    return int(match.group(1))


def lookback_start(period: Optional[str], now: Optional[datetime] = None) -> datetime:
    """Return the start of the lookback window for a period tag."""
    now = now or datetime.now(timezone.utc).replace(tzinfo=None)
    return now - timedelta(days=parse_period(period))


def _id_strings(values: pd.Series, missing: str) -> pd.Series:
    """Render identifier columns as clean integer strings."""
    numeric = pd.to_numeric(values, errors="coerce").astype("Int64")
    return numeric.astype(str).where(numeric.notna(), missing)


def basket_keys(
    lines: pd.DataFrame,
    window_minutes: int = DEFAULT_WINDOW_MINUTES,
) -> pd.Series:
    """Compute the basket key of every transaction line.

    Args:
        lines: Transaction lines with at least ``basket_key``, ``store_id``,
            ``user_id`` and ``transaction_date`` columns.
        window_minutes: Width of the time bucket for synthetic keys.

    Returns:
        Series of string keys aligned with ``lines``. Explicit keys are kept
        as-is; synthetic keys look like ``synth:<store>:<user>:<bucket>``.
    """
    if window_minutes <= 0:
        raise ValueError(f"window_minutes must be positive, got {window_minutes}")

    explicit = lines["basket_key"].astype("string").str.strip()
    has_explicit = (explicit.notna() & (explicit != "")).fillna(False).astype(bool)

    timestamps = pd.to_datetime(lines["transaction_date"])
    if timestamps.dt.tz is not None:
        timestamps = timestamps.dt.tz_convert("UTC").dt.tz_localize(None)
    buckets = (timestamps - pd.Timestamp("1970-01-01")) // pd.Timedelta(
        minutes=window_minutes
    )
    bucket_strings = buckets.astype("Int64").astype(str)

    synthetic = (
        "synth:"
        + _id_strings(lines["store_id"], UNKNOWN_STORE)
        + ":"
        + _id_strings(lines["user_id"], ANONYMOUS_USER)
        + ":"
        + bucket_strings
    )

    return explicit.where(has_explicit, synthetic).astype(str)


def build_baskets(
    lines: pd.DataFrame,
    window_minutes: int = DEFAULT_WINDOW_MINUTES,
) -> Dict[str, Set[int]]:
    """Group transaction lines into baskets of distinct product IDs.

    Duplicate line-items for the same product in one basket collapse to a
    single entry; quantities are ignored.

    Args:
        lines: Transaction line feed (see ``TRANSACTION_COLUMNS``).
        window_minutes: Width of the time bucket for lines without an
            explicit basket key.

    Returns:
        Dictionary mapping basket key to the set of product IDs in it.
        Empty when there are no usable lines.

    Example:
        >>> baskets = build_baskets(lines_df)
        >>> print(f"{len(baskets)} baskets")
    """
    if lines.empty:
        logger.info("No transaction lines, no baskets built")
        return {}

    usable = lines[pd.to_numeric(lines["product_id"], errors="coerce").notna()]
    if usable.empty:
        logger.warning("Transaction lines carry no product IDs")
        return {}

    keys = basket_keys(usable, window_minutes=window_minutes)
    product_ids = pd.to_numeric(usable["product_id"]).astype("int64")

    baskets: Dict[str, Set[int]] = {}
    for key, product_id in zip(keys, product_ids):
        baskets.setdefault(key, set()).add(int(product_id))

    synthetic_count = sum(1 for key in baskets if key.startswith("synth:"))
    logger.info(
        "Built baskets",
        extra={
            "num_lines": len(usable),
            "num_baskets": len(baskets),
            "num_synthetic_baskets": synthetic_count,
        },
    )

    return baskets
