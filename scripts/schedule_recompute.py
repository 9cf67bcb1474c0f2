"""Scheduled batch recompute of every owner's recommendations.

Runs the clustering recompute for all store owners on a fixed interval
(default every 14 days). A failure for one owner is logged and does not stop
the batch. Recommendations are stale between runs.

Example:
    Run a single pass (e.g. from cron):
        $ python scripts/schedule_recompute.py --once

    Keep running, every 7 days:
        $ python scripts/schedule_recompute.py --interval-days 7
"""

import argparse
import logging
import sys
import time
from pathlib import Path

# Add project root to Python path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from loyaltyrec.config import get_settings
from loyaltyrec.engine.recompute import (
    DEFAULT_MIN_COUNT,
    DEFAULT_TOP_PER_PRODUCT,
    recompute_all_owners,
)
from loyaltyrec.storage.database import get_session_factory, init_db

SECONDS_PER_DAY = 86400


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the script.

    Args:
        verbose: If True, set log level to DEBUG. Otherwise, use INFO.
    """
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def parse_arguments() -> argparse.Namespace:
    """Parse command-line arguments."""
    settings = get_settings()
    parser = argparse.ArgumentParser(
        description="Periodically recompute k-means recommendations for all owners.",
    )
    parser.add_argument(
        "--interval-days",
        type=float,
        default=settings.schedule_interval_days,
        help=f"Days between runs (default: {settings.schedule_interval_days})",
    )
    parser.add_argument("--once", action="store_true", help="Run one pass and exit")
    parser.add_argument("--period", default="30d", help="Lookback window (default: 30d)")
    parser.add_argument("--top-features", type=int, default=100)
    parser.add_argument("--k", type=int, default=8)
    parser.add_argument("--min-count", type=int, default=DEFAULT_MIN_COUNT)
    parser.add_argument("--top-per-product", type=int, default=DEFAULT_TOP_PER_PRODUCT)
    parser.add_argument("--seed", type=int, default=None, help="Seed for k-means")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable DEBUG logging")
    return parser.parse_args()


def run_once(args: argparse.Namespace) -> int:
    """Run one batch pass. Returns the number of failed owners."""
    logger = logging.getLogger(__name__)
    summary = recompute_all_owners(
        get_session_factory(),
        period=args.period,
        top_features=args.top_features,
        k=args.k,
        min_count=args.min_count,
        top_per_product=args.top_per_product,
        random_state=args.seed,
    )

    logger.info("=" * 60)
    logger.info(f"Owners processed: {len(summary.results) + len(summary.failed)}")
    logger.info(f"Rows written:     {summary.total_updated}")
    logger.info(f"Failed owners:    {sorted(summary.failed)}")
    logger.info("=" * 60)
    return len(summary.failed)


def main() -> int:
    """Main entry point for the scheduler.

    Returns:
        Exit code: 0 on success, 1 if a single pass had failures or the
        batch could not start.
    """
    args = parse_arguments()
    setup_logging(verbose=args.verbose)
    logger = logging.getLogger(__name__)

    try:
        init_db()
        if args.once:
            return 1 if run_once(args) else 0

        interval_seconds = args.interval_days * SECONDS_PER_DAY
        while True:
            started = time.time()
            try:
                run_once(args)
            except Exception as e:
                # Owner listing failed; try again next interval
                logger.error(f"Scheduled batch could not run: {e}", exc_info=True)
            elapsed = time.time() - started
            logger.info(f"Next run in {max(0.0, interval_seconds - elapsed) / 3600:.1f} hours")
            time.sleep(max(0.0, interval_seconds - elapsed))

    except KeyboardInterrupt:
        logging.warning("Scheduler interrupted by user")
        return 130
    except Exception as e:
        logging.error(f"Unexpected error: {e}", exc_info=True)
        return 1


if __name__ == "__main__":
    sys.exit(main())
