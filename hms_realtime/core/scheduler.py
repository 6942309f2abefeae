import logging
from datetime import datetime

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from hms_realtime.config import Settings
from hms_realtime.core.health_tips import HealthTipScheduler
from hms_realtime.core.reminders import ReminderScheduler

logger = logging.getLogger(__name__)

REMINDER_JOB_ID = "check_appointments"
HEALTH_TIP_JOB_ID = "check_health_tips"


def start_scheduler(settings: Settings, reminders: ReminderScheduler, health_tips: HealthTipScheduler) -> AsyncIOScheduler:
    # Must be called from a running event loop
    scheduler = AsyncIOScheduler()

    # Appointment reminder check every few minutes, first run right away
    scheduler.add_job(
        reminders.run,
        trigger=IntervalTrigger(minutes=settings.reminder_interval_minutes),
        id=REMINDER_JOB_ID,
        next_run_time=datetime.now(),
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )

    # Health tip slot check every minute, first run right away
    scheduler.add_job(
        health_tips.run,
        trigger=IntervalTrigger(minutes=settings.health_tip_interval_minutes),
        id=HEALTH_TIP_JOB_ID,
        next_run_time=datetime.now(),
        max_instances=1,
        coalesce=True,
        replace_existing=True
    )

    scheduler.start()
    logger.info("Appointment reminder and health tip schedulers started")
    return scheduler


def stop_scheduler(scheduler: AsyncIOScheduler):
    if scheduler.running:
        # Running jobs finish; only future ticks are cancelled
        scheduler.shutdown(wait=False)
        logger.info("Schedulers stopped")
