# scripts/sweep_overdue.py
"""
Run the overdue sweep once. Meant for cron / a scheduler:

    python -m scripts.sweep_overdue
    python -m scripts.sweep_overdue --as-of 2024-03-01
"""

import argparse
import logging
from datetime import date

from backoffice.config import get_settings
from backoffice.db.engine import get_engine, transaction
from backoffice.services.overdue import sweep

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Mark past-due PENDING invoices as PAST_DUE.")
    parser.add_argument(
        "--as-of",
        type=date.fromisoformat,
        default=None,
        help="ISO date (YYYY-MM-DD); defaults to today in the configured timezone",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    settings = get_settings()
    engine = get_engine(settings.DATABASE_URL)

    with transaction(engine) as conn:
        result = sweep(conn, as_of=args.as_of, tz=settings.tzinfo)

    logger.info("Invoices marked past due: %s", result.updated_count)
    logger.info("Reminder emails queued:   %s", result.emails_sent)
    return result


if __name__ == "__main__":
    main()
