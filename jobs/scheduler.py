"""APScheduler wiring for the daily profile sync, shared by run_scheduler.py and the API process."""
from apscheduler.schedulers.base import BaseScheduler
from apscheduler.triggers.cron import CronTrigger

from config import settings
from jobs.profile_sync import sync_all
from utils.logging import get_logger

logger = get_logger(__name__)

SYNC_JOB_ID = "profile_sync"


def job_sync_all() -> None:
    try:
        sync_all(deadline_seconds=settings.SYNC_DEADLINE_SECONDS or None)
    except Exception as e:
        logger.exception("Profile sync job failed: %s", e)


def parse_cron(expr: str) -> CronTrigger:
    """Validate a 5-field crontab expression. Raises ValueError when invalid."""
    if not expr or len(expr.split()) != 5:
        raise ValueError(f"Invalid cron schedule: {expr!r}")
    try:
        return CronTrigger.from_crontab(expr, timezone=settings.USER_TIMEZONE)
    except (ValueError, KeyError) as e:
        raise ValueError(f"Invalid cron schedule: {expr!r}") from e


def build_scheduler(scheduler_cls: type[BaseScheduler], cron: str | None = None) -> BaseScheduler:
    scheduler = scheduler_cls()
    scheduler.add_job(
        job_sync_all,
        parse_cron(cron or settings.SYNC_CRON),
        id=SYNC_JOB_ID,
        max_instances=1,
        coalesce=True,
        replace_existing=True,
    )
    return scheduler


def update_sync_schedule(scheduler: BaseScheduler, expr: str) -> None:
    trigger = parse_cron(expr)
    scheduler.reschedule_job(SYNC_JOB_ID, trigger=trigger)
    logger.info("Profile sync rescheduled to %r", expr)
