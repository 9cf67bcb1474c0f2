"""Shared fixtures: an in-memory database and a small owner dataset."""

from datetime import datetime, timedelta, timezone
from typing import Callable, Generator, Iterable, Optional

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from loyaltyrec.storage.database import init_db
from loyaltyrec.storage.models import Product, Store, Transaction


@pytest.fixture
def engine() -> Generator[Engine, None, None]:
    """Fresh in-memory SQLite database with the full schema."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, expire_on_commit=False)


@pytest.fixture
def session(session_factory: sessionmaker) -> Generator[Session, None, None]:
    with session_factory() as session:
        yield session


@pytest.fixture
def add_basket(session: Session) -> Callable[..., None]:
    """Insert one basket worth of transaction lines.

    Lines share ``reference`` (pass None to leave the reference number
    empty) and are dated ``days_ago`` days before now.
    """

    def _add_basket(
        store_id: int,
        product_ids: Iterable[int],
        reference: Optional[str],
        user_id: Optional[int] = 1,
        days_ago: float = 1,
        when: Optional[datetime] = None,
    ) -> None:
        if when is None:
            when = datetime.now(timezone.utc).replace(tzinfo=None) - timedelta(days=days_ago)
        for product_id in product_ids:
            session.add(
                Transaction(
                    reference_number=reference,
                    product_id=product_id,
                    quantity=1,
                    total=4.5,
                    user_id=user_id,
                    store_id=store_id,
                    transaction_date=when,
                )
            )
        session.commit()

    return _add_basket


@pytest.fixture
def owner_dataset(session: Session, add_basket: Callable[..., None]) -> int:
    """Owner 1 with two stores and a recent transaction history.

    Baskets (15 in total):
        - 6 x {1, 2}
        - 6 x {3, 4}
        - 2 x {1, 3}
        - 1 x {5}

    Owner 2 owns a store without any transactions.

    Returns:
        The owner ID with transactions.
    """
    session.add_all(
        [
            Store(store_id=10, owner_id=1, store_name="Main Street"),
            Store(store_id=11, owner_id=1, store_name="Harbour"),
            Store(store_id=20, owner_id=2, store_name="Empty Shop"),
        ]
    )
    session.add_all(
        [
            Product(id=1, product_name="Flat White", product_type="coffee", store_id=10),
            Product(id=2, product_name="Croissant", product_type="pastry", store_id=10),
            Product(id=3, product_name="Espresso", product_type="coffee", store_id=11),
            Product(id=4, product_name="Muffin", product_type="pastry", store_id=11),
            Product(id=5, product_name="Mug", product_type="merch", store_id=11),
        ]
    )
    session.commit()

    basket_no = 0
    for products, repeat in [([1, 2], 6), ([3, 4], 6), ([1, 3], 2), ([5], 1)]:
        for _ in range(repeat):
            basket_no += 1
            store_id = 10 if 1 in products or 2 in products else 11
            add_basket(store_id, products, reference=f"REF{basket_no:04d}")

    return 1
