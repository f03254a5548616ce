#!/usr/bin/env python
"""
Subscription Sync Job

Runs once a day to add the ledger entries of every active subscription
whose next billing date has come due since the last run.

Usage:
    python scripts/sync_subscriptions_job.py [--date YYYY-MM-DD]

Options:
    --date: Cutoff date for generated entries (default: today)
"""
import sys
from pathlib import Path
from datetime import date, datetime
from argparse import ArgumentParser

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from src.db.core import get_db, create_tables, StoreError
from src.crud.crud_subscription import sync_db_subscriptions
from src.logging_config import setup_logging


def run_subscription_sync(cutoff: date) -> int:
    """
    Sync every active subscription up to the cutoff date.
    Returns the number of transactions created.
    """
    logger = setup_logging()
    logger.info("=" * 60)
    logger.info(f"Running Subscription Sync Job - {cutoff}")
    logger.info("=" * 60)

    create_tables()
    db = next(get_db())

    try:
        checked, created = sync_db_subscriptions(db, today=cutoff)
        logger.info(f"Job Complete! Checked {checked} subscription(s), created {created} transaction(s)")
        return created
    except StoreError as e:
        logger.error(f"FATAL ERROR: {e}")
        raise
    finally:
        db.close()


def main():
    parser = ArgumentParser(description="Generate due subscription transactions")

    parser.add_argument(
        '--date',
        type=str,
        help='Cutoff date (YYYY-MM-DD), defaults to today'
    )

    args = parser.parse_args()

    if args.date:
        try:
            cutoff = datetime.strptime(args.date, "%Y-%m-%d").date()
        except ValueError:
            print(f"Invalid date format: {args.date}. Use YYYY-MM-DD")
            sys.exit(1)
    else:
        cutoff = date.today()

    run_subscription_sync(cutoff)


if __name__ == "__main__":
    main()
