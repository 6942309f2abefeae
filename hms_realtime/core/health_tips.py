import logging
from datetime import datetime
from typing import Optional

import pytz

from hms_realtime.core.health_tip_generator import HealthTipGenerator
from hms_realtime.core.notifications import NotificationService
from hms_realtime.models.health_tip import HealthTip, TipSlot

logger = logging.getLogger(__name__)

# Slots open for the first WINDOW_MINUTES minutes of these hours
SLOT_HOURS = {9: TipSlot.MORNING, 21: TipSlot.EVENING}
WINDOW_MINUTES = 5


class HealthTipScheduler:
    def __init__(self, notification_service: NotificationService, generator: HealthTipGenerator, timezone: str = "Asia/Kolkata"):
        self.notification_service = notification_service
        self.storage = notification_service.storage
        self.generator = generator
        self.timezone = pytz.timezone(timezone)
        # "{date}_{slot}" of the last scheduled tip
        self.last_health_tip_key: Optional[str] = None

    def current_slot(self, now: datetime) -> Optional[TipSlot]:
        local = self.local_time(now)
        slot = SLOT_HOURS.get(local.hour)
        if slot is not None and local.minute < WINDOW_MINUTES:
            return slot
        return None

    def local_time(self, now: datetime) -> datetime:
        if now.tzinfo is None:
            now = pytz.utc.localize(now)
        return now.astimezone(self.timezone)

    async def run(self):
        """Scheduler entry point; never raises."""
        try:
            await self.check_and_generate()
        except Exception:
            logger.exception("Health tip check failed")

    async def check_and_generate(self, now: Optional[datetime] = None) -> Optional[HealthTip]:
        now = now or datetime.now(pytz.utc)
        slot = self.current_slot(now)
        if slot is None:
            return None

        tip_key = f"{self.local_time(now).date().isoformat()}_{slot.value}"
        if tip_key == self.last_health_tip_key:
            return None

        logger.info(f"Generating {slot.value} health tip ({tip_key})")
        tip = await self.generate_and_broadcast_health_tip(slot, now)
        self.last_health_tip_key = tip_key
        return tip

    async def generate_and_broadcast_health_tip(self, slot: TipSlot, now: Optional[datetime] = None) -> HealthTip:
        """Generate, persist and broadcast a tip without consulting the slot guard."""
        now = now or datetime.now(pytz.utc)
        generated = await self.generator.generate(slot, self.local_time(now).date())
        tip = self.storage.create_health_tip(generated, scheduled_for=slot.value)

        delivered = await self.notification_service.broadcast({
            "type": "health_tip",
            "event": "new_health_tip",
            "tip": tip.to_dict()
        })
        logger.info(f"Health tip '{tip.title}' broadcast to {delivered} connection(s)")
        return tip
