import enum
import json
import uuid

from sqlalchemy import Boolean, Column, String, DateTime, Text
from datetime import datetime, timezone

from hms_realtime.database import Base


class NotificationType(str, enum.Enum):
    APPOINTMENT = "appointment"
    PRESCRIPTION = "prescription"
    SCHEDULE = "schedule"
    PROFILE = "profile"
    ADMISSION = "admission"
    DISCHARGE = "discharge"
    SYSTEM = "system"
    BILL = "bill"


class UserNotification(Base):
    __tablename__ = "user_notifications"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, index=True, nullable=False)
    user_role = Column(String, index=True, nullable=False)
    type = Column(String, nullable=False)
    title = Column(String, nullable=False)
    message = Column(Text, nullable=False)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    # Loose reference to the business object that triggered it
    related_entity_type = Column(String, nullable=True)
    related_entity_id = Column(String, nullable=True)

    # "metadata" is reserved on declarative classes
    metadata_json = Column("metadata", Text, nullable=True)

    def to_dict(self):
        return {
            "id": self.id,
            "userId": self.user_id,
            "userRole": self.user_role,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "relatedEntityType": self.related_entity_type,
            "relatedEntityId": self.related_entity_id,
            "isRead": self.is_read,
            "metadata": self.metadata_json,
            "createdAt": self.created_at.isoformat() if self.created_at else None,
        }

    def metadata_dict(self):
        if not self.metadata_json:
            return {}
        try:
            data = json.loads(self.metadata_json)
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}
