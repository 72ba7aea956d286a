#!/usr/bin/env python3
"""Entry point for running the settlement sweep job.

This script can be called by a cron job or scheduler service like Render.

Usage:
    python run_settlement_sweep.py [--max-age-minutes MINUTES] [--dry-run]
"""
import sys
import argparse
from datetime import datetime
from mindbridge.core.config import get_config
from mindbridge.core.logging import get_logger, setup_logging
from scheduler.settlement_sweeper import SettlementSweeper

logger = get_logger(__name__)


def main():
    """Main entry point for the sweep job."""
    parser = argparse.ArgumentParser(
        description="Reconcile checkouts whose payment settled after monitoring ended"
    )
    parser.add_argument(
        "--max-age-minutes",
        type=int,
        default=None,
        help="Only look at checkouts started within this many minutes (default: CHECKOUT_SESSION_TTL_MINUTES)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Report what would be reconciled without writing anything"
    )

    args = parser.parse_args()

    config = get_config()
    setup_logging(config)

    logger.info(
        "Starting settlement sweep job",
        extra={"dry_run": args.dry_run, "start_time": datetime.utcnow().isoformat()}
    )

    try:
        results = SettlementSweeper().run(max_age_minutes=args.max_age_minutes, dry_run=args.dry_run)
    except Exception as e:
        logger.error(f"Fatal error in settlement sweep: {e}", exc_info=True)
        print(f"FATAL ERROR: {e}")
        sys.exit(2)

    print("Settlement Sweep Summary:")
    print(f"  Checked: {results['checked']}")
    print(f"  Reconciled: {results['reconciled']}")
    print(f"  Failed: {results['failed']}")
    print(f"  Still pending: {results['pending']}")
    print(f"  Errors: {len(results['errors'])}")

    if results["errors"]:
        print("\nErrors encountered:")
        for error in results["errors"]:
            print(f"  - {error}")

    sys.exit(0 if not results["errors"] else 1)


if __name__ == "__main__":
    main()
