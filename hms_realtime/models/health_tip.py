import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, String, DateTime, Text

from hms_realtime.database import Base


class TipSlot(str, enum.Enum):
    MORNING = "9AM"
    EVENING = "9PM"


class HealthTip(Base):
    __tablename__ = "health_tips"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    category = Column(String, nullable=False)
    weather_context = Column(String, nullable=True)
    season = Column(String, nullable=True)
    priority = Column(String, default="medium")
    target_audience = Column(String, default="all")
    scheduled_for = Column(String, nullable=False)  # 9AM or 9PM
    is_active = Column(Boolean, default=True)
    generated_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "title": self.title,
            "content": self.content,
            "category": self.category,
            "weatherContext": self.weather_context,
            "season": self.season,
            "priority": self.priority,
            "targetAudience": self.target_audience,
            "scheduledFor": self.scheduled_for,
            "isActive": self.is_active,
            "generatedAt": self.generated_at.isoformat() if self.generated_at else None,
        }
