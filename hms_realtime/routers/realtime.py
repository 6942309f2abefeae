import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect, status

from hms_realtime.core.dependencies import get_notification_service
from hms_realtime.core.notifications import NotificationService
from hms_realtime.models.user import UserRole

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/realtime", tags=["realtime"])


@router.get("/status")
async def realtime_status(service: NotificationService = Depends(get_notification_service)):
    return service.connection_stats()


async def notifications_socket(
    websocket: WebSocket,
    userId: Optional[str] = None,
    userRole: Optional[str] = None
):
    """Per-user notification socket.

    Sockets opened without both userId and userRole stay open but anonymous:
    they answer pings but are never delivered any event. An unknown
    role is rejected with a policy-violation close.
    """
    service: NotificationService = websocket.app.state.notification_service
    await websocket.accept()

    connection = None
    if userId and userRole:
        role = UserRole.parse(userRole)
        if role is None:
            logger.warning(f"Rejecting WebSocket for {userId}: unknown role {userRole!r}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        connection = service.register(websocket, userId, role)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = (message.get("bytes") or b"").decode("utf-8", errors="replace")
            await service.handle_message(websocket, raw)
    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception(f"WebSocket error for {userId or 'anonymous'}")
    finally:
        if connection is not None:
            service.unregister(connection)
