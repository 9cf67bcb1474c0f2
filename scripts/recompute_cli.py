"""CLI script for recomputing and inspecting an owner's recommendations.

Useful for testing and evaluation. Runs a recompute with either strategy
against the configured database and prints the stored recommendations.
"""

import argparse
import logging
import sys
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loyaltyrec.engine.recompute import (
    DEFAULT_MIN_COUNT,
    DEFAULT_TOP_PER_PRODUCT,
    recompute_association_recommendations,
    recompute_kmeans_recommendations,
)
from loyaltyrec.exceptions import LoyaltyRecException
from loyaltyrec.storage.database import create_db_engine, get_session_factory, init_db
from loyaltyrec.storage.repository import RecommendationStore

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


def main() -> int:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Recompute or show recommendations for a store owner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/recompute_cli.py 1
  python scripts/recompute_cli.py 1 --strategy kmeans --k 4 --seed 42
  python scripts/recompute_cli.py 1 --show-only --product-id 12
        """
    )

    parser.add_argument("owner_id", type=int, help="Store owner ID")
    parser.add_argument(
        "--strategy",
        choices=["rules", "kmeans"],
        default="rules",
        help="rules (association rules) or kmeans (clustering) (default: rules)",
    )
    parser.add_argument("--period", default="30d", help="Lookback window (default: 30d)")
    parser.add_argument("--min-count", type=int, default=DEFAULT_MIN_COUNT)
    parser.add_argument("--top-per-product", type=int, default=DEFAULT_TOP_PER_PRODUCT)
    parser.add_argument("--top-features", type=int, default=100)
    parser.add_argument("--k", type=int, default=8, help="Clusters for kmeans (default: 8)")
    parser.add_argument("--seed", type=int, default=None, help="Seed for kmeans")
    parser.add_argument("--product-id", type=int, default=None, help="Only show this product")
    parser.add_argument(
        "--show-only",
        action="store_true",
        help="Skip the recompute and only print stored recommendations",
    )
    parser.add_argument(
        "--database-url",
        default=None,
        help="SQLAlchemy URL (default: LOYALTYREC_DATABASE_URL or sqlite:///./loyaltyrec.db)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    if args.database_url:
        from sqlalchemy.orm import sessionmaker

        engine = create_db_engine(args.database_url)
        session_factory = sessionmaker(bind=engine, expire_on_commit=False)
    else:
        engine = None
        session_factory = get_session_factory()
    init_db(engine)

    with session_factory() as session:
        try:
            if not args.show_only:
                if args.strategy == "kmeans":
                    result = recompute_kmeans_recommendations(
                        session,
                        args.owner_id,
                        period=args.period,
                        top_features=args.top_features,
                        k=args.k,
                        min_count=args.min_count,
                        top_per_product=args.top_per_product,
                        random_state=args.seed,
                    )
                else:
                    result = recompute_association_recommendations(
                        session,
                        args.owner_id,
                        period=args.period,
                        min_count=args.min_count,
                        top_per_product=args.top_per_product,
                    )
                print(f"\nRecompute ({args.strategy}) for owner {args.owner_id}: {result.to_dict()}")

            rows = RecommendationStore(session).query(
                args.owner_id, product_id=args.product_id, period_tag=args.period
            )
        except LoyaltyRecException as e:
            print(f"Error: {e.message}", file=sys.stderr)
            return 1

    print(f"\nStored recommendations for owner {args.owner_id} (period: {args.period}):")
    if not rows:
        print("  (none)")
    for row in rows:
        product = row["product_name"] or f"#{row['product_id']}"
        recommended = row["recommended_product_name"] or f"#{row['recommended_product_id']}"
        print(f"  {product:<24} -> {recommended:<24} score={row['score']:.2f}")
    print()
    return 0


if __name__ == "__main__":
    sys.exit(main())
