import logging
from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from datetime import datetime
from hms_realtime.core.dependencies import get_health_tip_scheduler, get_storage
from hms_realtime.core.health_tip_generator import HealthTipGenerationError
from hms_realtime.core.health_tips import HealthTipScheduler
from hms_realtime.core.storage import Storage
from hms_realtime.schemas import HealthTipTrigger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/health-tips", tags=["health tips"])

class HealthTipResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    title: str
    content: str
    category: str
    weather_context: Optional[str] = None
    season: Optional[str] = None
    priority: Optional[str] = None
    target_audience: Optional[str] = None
    scheduled_for: str
    is_active: bool
    generated_at: datetime

@router.get("", response_model=List[HealthTipResponse])
async def list_health_tips(limit: int = 10, storage: Storage = Depends(get_storage)):
    return storage.get_health_tips(limit=limit)

@router.post("/generate", response_model=HealthTipResponse, status_code=status.HTTP_201_CREATED)
async def generate_health_tip(
    trigger: HealthTipTrigger,
    health_tips: HealthTipScheduler = Depends(get_health_tip_scheduler)
):
    # Manual trigger bypasses the slot window and the daily guard
    try:
        return await health_tips.generate_and_broadcast_health_tip(trigger.slot)
    except HealthTipGenerationError as e:
        logger.error(f"Manual health tip generation failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Health tip generation failed"
        )
