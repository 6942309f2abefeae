from fastapi import Request

from hms_realtime.core.health_tips import HealthTipScheduler
from hms_realtime.core.notifications import NotificationService
from hms_realtime.core.storage import Storage


def get_storage(request: Request) -> Storage:
    return request.app.state.storage


def get_notification_service(request: Request) -> NotificationService:
    return request.app.state.notification_service


def get_health_tip_scheduler(request: Request) -> HealthTipScheduler:
    return request.app.state.health_tip_scheduler
