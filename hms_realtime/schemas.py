import json
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from hms_realtime.models.health_tip import TipSlot
from hms_realtime.models.notification import NotificationType
from hms_realtime.models.user import UserRole


class NotificationCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    user_id: str
    user_role: UserRole
    type: NotificationType
    title: str
    message: str
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    is_read: bool = False
    metadata: Optional[str] = None

    @field_validator("metadata", mode="before")
    @classmethod
    def serialize_metadata(cls, value):
        # Accept structured payloads and store them as JSON text
        if value is None or isinstance(value, str):
            return value
        return json.dumps(value)


class GeneratedHealthTip(BaseModel):
    title: str
    content: str
    category: str = "general"
    weather_context: Optional[str] = None
    season: Optional[str] = None
    priority: str = "medium"
    target_audience: str = "all"


class HealthTipTrigger(BaseModel):
    slot: TipSlot = Field(default=TipSlot.MORNING)


def compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Drop unset optional fields from an outbound event payload."""
    return {key: value for key, value in payload.items() if value is not None}
