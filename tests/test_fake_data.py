"""Tests for the synthetic data generator against a real database file."""

from pathlib import Path

import pytest
from sqlalchemy.orm import sessionmaker

from loyaltyrec.engine.recompute import (
    recompute_association_recommendations,
    recompute_kmeans_recommendations,
)
from loyaltyrec.storage.database import create_db_engine
from scripts.generate_fake_data import generate_fake_dataset, load_into_database


def test_generate_fake_dataset_shapes():
    stores, products, transactions = generate_fake_dataset(
        num_owners=2, stores_per_owner=2, products_per_store=8, num_baskets=50, seed=1
    )

    assert len(stores) == 4
    assert sorted(stores["owner_id"].unique()) == [1, 2]
    assert len(products) == 32
    assert products["id"].is_unique
    assert set(transactions["store_id"]) <= set(stores["store_id"])
    assert transactions["reference_number"].isna().any()
    assert transactions["reference_number"].notna().any()


def test_generate_fake_dataset_is_reproducible():
    first = generate_fake_dataset(num_baskets=40, seed=3)[2]
    second = generate_fake_dataset(num_baskets=40, seed=3)[2]

    assert first.drop(columns="transaction_date").equals(second.drop(columns="transaction_date"))


def test_generate_fake_dataset_rejects_zero_counts():
    with pytest.raises(ValueError):
        generate_fake_dataset(num_baskets=0)


def test_generated_data_yields_recommendations(tmp_path: Path):
    database_url = f"sqlite:///{tmp_path / 'loyalty.db'}"
    load_into_database(database_url, *generate_fake_dataset(num_owners=1, seed=5))

    session_factory = sessionmaker(bind=create_db_engine(database_url), expire_on_commit=False)
    with session_factory() as session:
        rules = recompute_association_recommendations(session, 1, min_count=2)
        kmeans = recompute_kmeans_recommendations(
            session, 1, k=4, min_count=2, random_state=0
        )

    assert rules.updated > 0
    assert kmeans.updated > 0
    assert kmeans.clusters >= 1
