"""Run the scheduled profile sync (default: daily at 2 AM)."""
import sys
from pathlib import Path

# Ensure project root is on path
sys.path.insert(0, str(Path(__file__).resolve().parent))

from apscheduler.schedulers.blocking import BlockingScheduler

from config import settings
from utils.logging import setup_logging, get_logger
from jobs.scheduler import build_scheduler

setup_logging(settings.LOG_LEVEL)
logger = get_logger(__name__)


def main():
    scheduler = build_scheduler(BlockingScheduler)
    logger.info("Scheduler started: profile sync on cron %r with %s workers", settings.SYNC_CRON, settings.SYNC_WORKERS)
    scheduler.start()


if __name__ == "__main__":
    main()
