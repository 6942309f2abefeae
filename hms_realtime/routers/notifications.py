from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime
from hms_realtime.core.dependencies import get_notification_service, get_storage
from hms_realtime.core.notifications import NotificationService
from hms_realtime.core.storage import Storage
from hms_realtime.models.user import UserRole
from hms_realtime.schemas import NotificationCreate

router = APIRouter(prefix="/api/user-notifications", tags=["notifications"])

class NotificationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    user_id: str
    user_role: str
    type: str
    title: str
    message: str
    is_read: bool
    created_at: datetime
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None
    metadata_json: Optional[str] = Field(None, validation_alias="metadata_json", serialization_alias="metadata")

def _get_or_404(notification):
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return notification

@router.get("/role/{role}", response_model=List[NotificationResponse])
async def get_notifications_by_role(role: UserRole, storage: Storage = Depends(get_storage)):
    return storage.get_user_notifications_by_role(role.value)

@router.get("/notification/{notification_id}", response_model=NotificationResponse)
async def get_notification(notification_id: str, storage: Storage = Depends(get_storage)):
    return _get_or_404(storage.get_user_notification(notification_id))

@router.get("/{user_id}", response_model=List[NotificationResponse])
async def get_notifications(user_id: str, storage: Storage = Depends(get_storage)):
    return storage.get_user_notifications(user_id)

@router.get("/{user_id}/incoming", response_model=List[NotificationResponse])
async def get_incoming_notifications(
    user_id: str,
    service: NotificationService = Depends(get_notification_service)
):
    return service.get_incoming_notifications(user_id)

@router.post("", response_model=NotificationResponse, status_code=status.HTTP_201_CREATED)
async def create_notification(
    notification: NotificationCreate,
    service: NotificationService = Depends(get_notification_service)
):
    return await service.create_and_push_notification(notification)

@router.patch("/{notification_id}/read", response_model=NotificationResponse)
async def mark_notification_read(notification_id: str, storage: Storage = Depends(get_storage)):
    return _get_or_404(storage.mark_user_notification_read(notification_id))

@router.patch("/{user_id}/read-all")
async def mark_all_notifications_read(user_id: str, storage: Storage = Depends(get_storage)):
    updated = storage.mark_all_user_notifications_read(user_id)
    return {"success": True, "updated": updated}

@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, storage: Storage = Depends(get_storage)):
    if not storage.delete_user_notification(notification_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )
    return {"success": True}
