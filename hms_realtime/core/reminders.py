import logging
import re
from datetime import datetime
from typing import Dict, Optional

from hms_realtime.core.notifications import NotificationService
from hms_realtime.models.appointment import Appointment, TERMINAL_STATUSES
from hms_realtime.models.notification import NotificationType
from hms_realtime.models.user import UserRole
from hms_realtime.schemas import NotificationCreate

logger = logging.getLogger(__name__)

REMINDER_24H = "24h"
REMINDER_1H = "1h"

# (min hours, max hours) before the appointment, both inclusive
REMINDER_WINDOWS = {
    REMINDER_24H: (12, 48),
    REMINDER_1H: (0.5, 2),
}

TIME_SLOT_PATTERN = re.compile(r"^\s*(\d{1,2}):(\d{2})\s*([AaPp][Mm])?")


def reminder_key(appointment_id: str, reminder_type: str) -> str:
    return f"reminder::{appointment_id}::{reminder_type}"


def parse_appointment_datetime(appointment_date: str, time_slot: str) -> Optional[datetime]:
    """Combine a YYYY-MM-DD date and a time slot into a local wall-clock datetime.

    Accepts "14:30", "9:00 AM" and ranges such as "09:00 - 09:30" (start is used).
    Returns None when either part cannot be parsed.
    """
    if not appointment_date or not time_slot:
        return None
    try:
        day = datetime.strptime(appointment_date.strip(), "%Y-%m-%d")
    except ValueError:
        return None

    match = TIME_SLOT_PATTERN.match(time_slot)
    if not match:
        return None

    hour, minute, meridiem = int(match.group(1)), int(match.group(2)), match.group(3)
    if meridiem:
        if not 1 <= hour <= 12:
            return None
        hour = hour % 12 + (12 if meridiem.upper() == "PM" else 0)
    if hour > 23 or minute > 59:
        return None
    return day.replace(hour=hour, minute=minute)


class ReminderScheduler:
    """Sends "24h before" and "1h before" appointment reminders.

    Existing notifications are the dedupe ledger: a reminder is only created
    when none of the recipient's notifications carries its key.
    """

    def __init__(self, notification_service: NotificationService):
        self.notification_service = notification_service
        self.storage = notification_service.storage
        self.doctor_names: Dict[str, str] = {}

    async def run(self):
        """Scheduler entry point; never raises."""
        try:
            created = await self.check_upcoming_appointments()
            if created:
                logger.info(f"Sent {created} appointment reminder(s)")
        except Exception:
            logger.exception("Appointment reminder check failed")

    async def check_upcoming_appointments(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now()
        appointments = self.storage.get_appointments()
        self.doctor_names = {doctor.id: doctor.name for doctor in self.storage.get_doctors()}

        created = 0
        for appointment in appointments:
            try:
                created += await self._process_appointment(appointment, now)
            except Exception:
                logger.exception(f"Failed to process reminders for appointment {appointment.id}")
        return created

    async def _process_appointment(self, appointment: Appointment, now: datetime) -> int:
        if appointment.status in TERMINAL_STATUSES:
            return 0

        appointment_time = parse_appointment_datetime(appointment.appointment_date, appointment.time_slot)
        if appointment_time is None:
            return 0

        hours_until = (appointment_time - now).total_seconds() / 3600

        created = 0
        for reminder_type, (low, high) in REMINDER_WINDOWS.items():
            if low <= hours_until <= high:
                if await self.send_reminder(appointment, reminder_type):
                    created += 1
        return created

    async def send_reminder(self, appointment: Appointment, reminder_type: str) -> bool:
        # Legacy appointments only carry the patient name
        recipient = appointment.patient_id or appointment.patient_name
        key = reminder_key(appointment.id, reminder_type)

        existing = self.storage.get_user_notifications(recipient)
        if any(notification.metadata_dict().get("dedupeKey") == key for notification in existing):
            return False

        doctor_name = self.doctor_names.get(appointment.doctor_id)
        title, message = self._reminder_text(appointment, reminder_type, doctor_name)

        await self.notification_service.create_and_push_notification(NotificationCreate(
            user_id=recipient,
            user_role=UserRole.PATIENT,
            type=NotificationType.APPOINTMENT,
            title=title,
            message=message,
            related_entity_type="appointment",
            related_entity_id=appointment.id,
            metadata={
                "dedupeKey": key,
                "reminderType": reminder_type,
                "appointmentDate": appointment.appointment_date,
                "appointmentTime": appointment.time_slot,
                "doctorId": appointment.doctor_id,
                "doctorName": doctor_name,
                "department": appointment.department,
                "location": appointment.location
            }
        ))
        logger.info(f"Sent {reminder_type} reminder for appointment {appointment.id} to {recipient}")
        return True

    @staticmethod
    def _reminder_text(appointment: Appointment, reminder_type: str, doctor_name: Optional[str]):
        with_doctor = f"Dr. {doctor_name}" if doctor_name else "your doctor"
        location_info = f" at {appointment.location}" if appointment.location else ""
        dept_info = f" ({appointment.department})" if appointment.department else ""

        if reminder_type == REMINDER_24H:
            return (
                "Appointment Reminder",
                f"Reminder: you have an appointment with {with_doctor} on "
                f"{appointment.appointment_date} at {appointment.time_slot}{dept_info}{location_info}"
            )
        return (
            "Appointment Starting Soon",
            f"Your appointment with {with_doctor} starts at {appointment.time_slot}{location_info}. "
            f"Please arrive 15 minutes early"
        )
