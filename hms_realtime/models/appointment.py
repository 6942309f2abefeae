from sqlalchemy import Column, String, DateTime
import enum
import uuid
from datetime import datetime, timezone
from hms_realtime.database import Base

class AppointmentStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked-in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

# Appointments in these states never get reminders
TERMINAL_STATUSES = {AppointmentStatus.CANCELLED.value, AppointmentStatus.COMPLETED.value}

class Appointment(Base):
    __tablename__ = "appointments"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    doctor_id = Column(String, index=True, nullable=False)
    patient_id = Column(String, nullable=True)
    patient_name = Column(String, nullable=False)
    appointment_date = Column(String, nullable=False)  # YYYY-MM-DD
    time_slot = Column(String, nullable=False)  # HH:MM
    status = Column(String, default=AppointmentStatus.SCHEDULED.value, nullable=False)
    department = Column(String, nullable=True)
    location = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
