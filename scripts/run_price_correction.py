import argparse
import logging

from pos_inventory.config import get_settings
from pos_inventory.core.logging import setup_logging
from pos_inventory.database import init_db
from pos_inventory.scheduler.job_scheduler import IntervalJobScheduler, SchedulerConfig
from pos_inventory.services.price_correction import run_price_correction

logger = logging.getLogger(__name__)


def parse_args():
    parser = argparse.ArgumentParser(description="Run the price correction scheduler.")
    parser.add_argument(
        "--run-once",
        action="store_true",
        help="Run the price correction for the current slot once and exit.",
    )
    return parser.parse_args()


def main():
    setup_logging()
    args = parse_args()
    settings = get_settings()

    if not settings.SCHEDULER_ENABLED:
        logger.info("Scheduler disabled by SCHEDULER_ENABLED.")
        return

    init_db()
    config = SchedulerConfig(
        job_name="price-correction",
        interval_seconds=settings.SCHEDULER_INTERVAL_SECONDS,
        poll_seconds=settings.SCHEDULER_POLL_SECONDS,
        stale_seconds=settings.SCHEDULER_STALE_SECONDS,
    )
    scheduler = IntervalJobScheduler(config=config, job_func=run_price_correction)

    if args.run_once:
        scheduler.run_once()
        return

    scheduler.run_forever()


if __name__ == "__main__":
    main()
