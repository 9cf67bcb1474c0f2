"""Relational schema used by the recommendation engine.

``stores``, ``products`` and ``transactions`` belong to the surrounding
loyalty application; the engine only reads them. ``owner_recommendations``
is owned by the engine and rewritten by recompute runs.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Float, Index, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from loyaltyrec.storage.database import Base


class Store(Base):
    __tablename__ = "stores"

    store_id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(Integer, index=True, nullable=False)
    store_name: Mapped[Optional[str]] = mapped_column(String(255))


class Product(Base):
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    product_type: Mapped[Optional[str]] = mapped_column(String(100))
    store_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)


class Transaction(Base):
    """A transaction line-item from the loyalty ledger."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    reference_number: Mapped[Optional[str]] = mapped_column(String(64), index=True)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, default=1)
    total: Mapped[Optional[float]] = mapped_column(Numeric(12, 2, asdecimal=False))
    user_id: Mapped[Optional[int]] = mapped_column(Integer)
    store_id: Mapped[int] = mapped_column(Integer, nullable=False)
    transaction_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (Index("ix_transactions_store_date", "store_id", "transaction_date"),)


class OwnerRecommendation(Base):
    """A persisted recommendation for one owner and scoring period."""

    __tablename__ = "owner_recommendations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    recommended_product_id: Mapped[int] = mapped_column(Integer, nullable=False)
    score: Mapped[float] = mapped_column(Float, nullable=False)
    period_tag: Mapped[str] = mapped_column(String(32), nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "owner_id",
            "product_id",
            "recommended_product_id",
            "period_tag",
            name="uq_owner_recommendation",
        ),
        Index("ix_owner_recommendations_owner_period", "owner_id", "period_tag"),
    )

    def __repr__(self) -> str:
        return (
            f"<OwnerRecommendation(owner_id={self.owner_id}, "
            f"product_id={self.product_id}, "
            f"recommended_product_id={self.recommended_product_id}, "
            f"period_tag='{self.period_tag}')>"
        )
