"""Data access for the recommendation engine.

Read helpers over the loyalty application's tables (stores, products,
transactions) and the recommendation store that owns
``owner_recommendations``.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd
from sqlalchemy import delete, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from loyaltyrec.engine.baskets import TRANSACTION_COLUMNS
from loyaltyrec.engine.ranking import ScoredPair
from loyaltyrec.storage.models import OwnerRecommendation, Product, Store, Transaction

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_TRANSACTION_LIMIT = 100000
DEFAULT_QUERY_LIMIT = 200


def fetch_owned_store_ids(session: Session, owner_id: int) -> List[int]:
    """IDs of the stores owned by ``owner_id``."""
    stmt = select(Store.store_id).where(Store.owner_id == owner_id).order_by(Store.store_id)
    return [int(store_id) for store_id in session.scalars(stmt) if store_id]


def list_owner_ids(session: Session) -> List[int]:
    """All distinct store owners, ascending."""
    stmt = select(Store.owner_id).distinct().order_by(Store.owner_id)
    return [int(owner_id) for owner_id in session.scalars(stmt)]


def fetch_transaction_lines(
    session: Session,
    store_ids: Iterable[int],
    since: datetime,
    limit: int = DEFAULT_TRANSACTION_LIMIT,
) -> pd.DataFrame:
    """Read transaction lines of the given stores since ``since``.

    Args:
        session: Open database session.
        store_ids: Stores to read.
        since: Inclusive start of the lookback window.
        limit: Maximum number of lines read.

    Returns:
        DataFrame with the columns listed in ``TRANSACTION_COLUMNS``, oldest
        line first. When the window holds more than ``limit`` lines the
        newest ones are kept, and a reference-number basket cut in two by
        the limit is dropped whole.
    """
    store_ids = list(store_ids)
    if not store_ids:
        return pd.DataFrame(columns=TRANSACTION_COLUMNS)

    stmt = (
        select(
            Transaction.product_id,
            Transaction.reference_number.label("basket_key"),
            Transaction.quantity,
            Transaction.total,
            Transaction.user_id,
            Transaction.store_id,
            Transaction.transaction_date,
        )
        .where(Transaction.store_id.in_(store_ids))
        .where(Transaction.transaction_date >= since)
        .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .limit(limit + 1)
    )

    lines = pd.read_sql(stmt, session.connection(), parse_dates=["transaction_date"])

    if len(lines) > limit:
        # One extra row tells whether the oldest kept basket continues past the cut
        cut_key = lines["basket_key"].iloc[limit]
        lines = lines.iloc[:limit]
        if pd.notna(cut_key) and limit > 0 and lines["basket_key"].iloc[-1] == cut_key:
            lines = lines[lines["basket_key"] != cut_key]
        logger.warning(
            "Transaction read hit the row limit, oldest lines in the window are ignored",
            extra={"limit": limit, "num_lines": len(lines), "num_stores": len(store_ids)},
        )

    lines = lines.iloc[::-1].reset_index(drop=True)
    logger.debug(
        "Fetched transaction lines",
        extra={"num_lines": len(lines), "num_stores": len(store_ids)},
    )
    return lines


def fetch_product_names(
    session: Session, product_ids: Iterable[int]
) -> Dict[int, str]:
    """Catalog names of the given products (unknown IDs are absent)."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    stmt = select(Product.id, Product.product_name).where(Product.id.in_(ids))
    return {int(pid): name for pid, name in session.execute(stmt)}


def fetch_product_types(
    session: Session, product_ids: Iterable[int]
) -> Dict[int, Optional[str]]:
    """Catalog product types of the given products."""
    ids = sorted(set(product_ids))
    if not ids:
        return {}
    stmt = select(Product.id, Product.product_type).where(Product.id.in_(ids))
    return {int(pid): product_type for pid, product_type in session.execute(stmt)}


class RecommendationStore:
    """Persists and serves an owner's recommendations per scoring period."""

    def __init__(self, session: Session):
        self.session = session

    def recompute(
        self,
        owner_id: int,
        period_tag: str,
        pairs: Iterable[ScoredPair],
    ) -> int:
        """Replace the stored recommendations of ``(owner_id, period_tag)``.

        The delete of the previous set and the insert of the new one commit
        in a single transaction, so readers see either the old or the new
        set. On failure the transaction is rolled back and the error is
        re-raised.

        Returns:
            Number of rows written.
        """
        rows = [
            {
                "owner_id": owner_id,
                "product_id": pair.product_id,
                "recommended_product_id": pair.recommended_product_id,
                "score": float(pair.score),
                "period_tag": period_tag,
            }
            for pair in pairs
        ]

        try:
            deleted = self.session.execute(
                delete(OwnerRecommendation)
                .where(OwnerRecommendation.owner_id == owner_id)
                .where(OwnerRecommendation.period_tag == period_tag)
            ).rowcount
            if rows:
                self.session.execute(insert(OwnerRecommendation), rows)
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.warning(
                "Recommendation write failed, previous set kept",
                extra={
                    "owner_id": owner_id,
                    "period_tag": period_tag,
                    "num_rows": len(rows),
                    "error": str(e),
                },
            )
            raise

        logger.info(
            "Stored recommendations",
            extra={
                "owner_id": owner_id,
                "period_tag": period_tag,
                "num_deleted": deleted,
                "num_written": len(rows),
            },
        )
        return len(rows)

    def query(
        self,
        owner_id: int,
        product_id: Optional[int] = None,
        period_tag: Optional[str] = None,
        limit: int = DEFAULT_QUERY_LIMIT,
    ) -> List[Dict[str, Any]]:
        """Stored recommendations of an owner, best first.

        Args:
            owner_id: Store owner.
            product_id: Only recommendations for this product.
            period_tag: Only recommendations of this scoring period.
            limit: Maximum number of rows returned.

        Returns:
            List of dictionaries with ``product_id``, ``product_name``,
            ``recommended_product_id``, ``recommended_product_name`` and
            ``score``. Names are None for products missing from the catalog.
        """
        stmt = select(OwnerRecommendation).where(OwnerRecommendation.owner_id == owner_id)
        if product_id is not None:
            stmt = stmt.where(OwnerRecommendation.product_id == product_id)
        if period_tag is not None:
            stmt = stmt.where(OwnerRecommendation.period_tag == period_tag)
        stmt = stmt.order_by(
            OwnerRecommendation.score.desc(),
            OwnerRecommendation.product_id,
            OwnerRecommendation.recommended_product_id,
        ).limit(limit)

        records = list(self.session.scalars(stmt))

        names = fetch_product_names(
            self.session,
            [r.product_id for r in records] + [r.recommended_product_id for r in records],
        )

        return [
            {
                "product_id": r.product_id,
                "product_name": names.get(r.product_id),
                "recommended_product_id": r.recommended_product_id,
                "recommended_product_name": names.get(r.recommended_product_id),
                "score": r.score,
            }
            for r in records
        ]
