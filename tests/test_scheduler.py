import asyncio
import pytest
from unittest.mock import Mock

from hms_realtime.config import Settings
from hms_realtime.core.scheduler import (
    HEALTH_TIP_JOB_ID,
    REMINDER_JOB_ID,
    start_scheduler,
    stop_scheduler,
)


@pytest.mark.asyncio
async def test_jobs_run_immediately_and_stop_cleanly():
    calls = []

    async def check_reminders():
        calls.append("reminders")

    async def check_health_tips():
        calls.append("health_tips")

    settings = Settings(reminder_interval_minutes=5, health_tip_interval_minutes=1)
    scheduler = start_scheduler(settings, Mock(run=check_reminders), Mock(run=check_health_tips))
    try:
        assert {job.id for job in scheduler.get_jobs()} == {REMINDER_JOB_ID, HEALTH_TIP_JOB_ID}

        for _ in range(50):
            if len(calls) == 2:
                break
            await asyncio.sleep(0.05)

        assert sorted(calls) == ["health_tips", "reminders"]
        assert scheduler.get_job(REMINDER_JOB_ID).trigger.interval.total_seconds() == 300
        assert scheduler.get_job(HEALTH_TIP_JOB_ID).trigger.interval.total_seconds() == 60
    finally:
        stop_scheduler(scheduler)

    assert not scheduler.running
