"""
定时任务调度器
"""

import logging
from datetime import timezone

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.cron import CronTrigger

from app.core.config import settings
from app.worker.tasks import reconcile_all_memberships

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def build_scheduler() -> BlockingScheduler:
    scheduler = BlockingScheduler(timezone=timezone.utc)
    scheduler.add_job(
        reconcile_all_memberships,
        CronTrigger(hour=settings.RECONCILE_CRON_HOUR, minute=0),
        id="nightly_reconcile",
        replace_existing=True,
    )
    return scheduler


def main() -> None:
    scheduler = build_scheduler()
    logger.info(
        "Scheduler started. Reconcile job is scheduled at %02d:00 UTC daily.",
        settings.RECONCILE_CRON_HOUR,
    )
    scheduler.start()


if __name__ == "__main__":
    main()
