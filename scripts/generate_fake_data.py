"""Generate fake loyalty transaction data for testing and development.

Creates synthetic stores, products and transaction lines with planted
co-purchase groups, so both recommendation strategies have signal to find.
Data is written to CSV files and can optionally be loaded into a database.

Example:
    Run the script directly to generate default data:
        $ python scripts/generate_fake_data.py

    Generate and load into a database:
        $ python scripts/generate_fake_data.py --database-url sqlite:///./loyaltyrec.db

    Or import and use programmatically:
        from scripts.generate_fake_data import generate_fake_dataset
        stores, products, transactions = generate_fake_dataset(num_owners=2)
"""

import argparse
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional, Tuple

import pandas as pd

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loyaltyrec.storage.database import create_db_engine, init_db

# Default configuration constants
DEFAULT_NUM_OWNERS = 3
DEFAULT_STORES_PER_OWNER = 2
DEFAULT_PRODUCTS_PER_STORE = 20
DEFAULT_NUM_BASKETS = 600
DEFAULT_NUM_CUSTOMERS = 80
DEFAULT_DAYS_BACK = 30
DEFAULT_GROUP_SIZE = 4
PRODUCT_TYPES = ["beverage", "food", "dessert", "merch"]


def generate_fake_dataset(
    num_owners: int = DEFAULT_NUM_OWNERS,
    stores_per_owner: int = DEFAULT_STORES_PER_OWNER,
    products_per_store: int = DEFAULT_PRODUCTS_PER_STORE,
    num_baskets: int = DEFAULT_NUM_BASKETS,
    num_customers: int = DEFAULT_NUM_CUSTOMERS,
    days_back: int = DEFAULT_DAYS_BACK,
    end_date: Optional[datetime] = None,
    seed: Optional[int] = 42,
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.DataFrame]:
    """Generate stores, products and transaction lines.

    Each store's products are split into groups of ``DEFAULT_GROUP_SIZE``.
    A basket mostly draws products from one group, with an occasional
    random product mixed in. About a third of the baskets carry no
    reference number, so their lines are grouped by the synthetic
    store/user/time-window key.

    Args:
        num_owners: Number of store owners.
        stores_per_owner: Stores per owner.
        products_per_store: Products per store.
        num_baskets: Total number of baskets across all stores.
        num_customers: Number of distinct customers.
        days_back: Baskets are spread over this many days before
            ``end_date``.
        end_date: Latest transaction time (default: now).
        seed: Random seed for reproducibility.

    Returns:
        A tuple of DataFrames ``(stores, products, transactions)`` matching
        the ``stores``, ``products`` and ``transactions`` tables.

    Raises:
        ValueError: If any count is non-positive.
    """
    if min(num_owners, stores_per_owner, products_per_store, num_baskets, num_customers) <= 0:
        raise ValueError("All counts must be positive")

    rng = random.Random(seed)
    end_date = end_date or datetime.now()
    start_date = end_date - timedelta(days=days_back)

    stores = []
    products = []
    store_groups = {}
    store_id = 0
    product_id = 0
    for owner_id in range(1, num_owners + 1):
        for _ in range(stores_per_owner):
            store_id += 1
            stores.append(
                {"store_id": store_id, "owner_id": owner_id, "store_name": f"Store {store_id}"}
            )
            ids = []
            for _ in range(products_per_store):
                product_id += 1
                ids.append(product_id)
                products.append(
                    {
                        "id": product_id,
                        "product_name": f"Product {product_id}",
                        "product_type": rng.choice(PRODUCT_TYPES),
                        "store_id": store_id,
                    }
                )
            store_groups[store_id] = [
                ids[i : i + DEFAULT_GROUP_SIZE] for i in range(0, len(ids), DEFAULT_GROUP_SIZE)
            ]

    lines = []
    total_seconds = int((end_date - start_date).total_seconds())
    for basket_no in range(num_baskets):
        basket_store = rng.choice(stores)["store_id"]
        groups = store_groups[basket_store]
        group = rng.choice(groups)
        items = rng.sample(group, k=min(len(group), rng.randint(2, 3)))
        if rng.random() < 0.2:
            items.append(rng.choice(rng.choice(groups)))

        user_id = rng.randint(1, num_customers)
        timestamp = start_date + timedelta(seconds=rng.randrange(total_seconds))
        reference = f"REF{basket_no:06d}" if rng.random() > 0.33 else None

        for item in items:
            quantity = rng.randint(1, 3)
            lines.append(
                {
                    "reference_number": reference,
                    "product_id": item,
                    "quantity": quantity,
                    "total": round(quantity * rng.uniform(1.5, 12.0), 2),
                    "user_id": user_id,
                    "store_id": basket_store,
                    "transaction_date": timestamp,
                }
            )

    transactions = pd.DataFrame(lines).sort_values("transaction_date").reset_index(drop=True)
    return pd.DataFrame(stores), pd.DataFrame(products), transactions


def load_into_database(
    database_url: str,
    stores: pd.DataFrame,
    products: pd.DataFrame,
    transactions: pd.DataFrame,
) -> None:
    """Append the generated rows to the database at ``database_url``."""
    engine = create_db_engine(database_url)
    init_db(engine)
    stores.to_sql("stores", engine, if_exists="append", index=False)
    products.to_sql("products", engine, if_exists="append", index=False)
    transactions.to_sql("transactions", engine, if_exists="append", index=False)


def main() -> None:
    """Main entry point for the data generation script.

    Writes stores.csv, products.csv and transactions.csv to data/ and prints
    summary statistics upon completion.
    """
    parser = argparse.ArgumentParser(description="Generate fake loyalty transaction data")
    parser.add_argument("--num-owners", type=int, default=DEFAULT_NUM_OWNERS)
    parser.add_argument("--num-baskets", type=int, default=DEFAULT_NUM_BASKETS)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="Also load the data into this database (SQLAlchemy URL)",
    )
    args = parser.parse_args()

    print(f"Generating {args.num_baskets} fake baskets for {args.num_owners} owners...")

    try:
        stores, products, transactions = generate_fake_dataset(
            num_owners=args.num_owners,
            num_baskets=args.num_baskets,
            seed=args.seed,
        )
    except ValueError as e:
        print(f"Error generating data: {e}")
        return

    data_dir = project_root / "data"
    data_dir.mkdir(exist_ok=True)
    stores.to_csv(data_dir / "stores.csv", index=False)
    products.to_csv(data_dir / "products.csv", index=False)
    transactions.to_csv(data_dir / "transactions.csv", index=False)

    if args.database_url:
        load_into_database(args.database_url, stores, products, transactions)
        print(f"Loaded into: {args.database_url}")

    print(f"\nData generated successfully!")
    print(f"Saved to: {data_dir}")
    print(f"\nData summary:")
    print(f"  Stores: {len(stores)}")
    print(f"  Products: {len(products)}")
    print(f"  Transaction lines: {len(transactions)}")
    print(f"  With reference number: {transactions['reference_number'].notna().sum()}")
    print(
        f"  Date range: {transactions['transaction_date'].min()} "
        f"to {transactions['transaction_date'].max()}"
    )


if __name__ == "__main__":
    main()
