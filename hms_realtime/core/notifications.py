"""
Real-time notification service.

Keeps a registry of live WebSocket connections per user, delivers unicast and
role-filtered broadcast messages, and composes persisted notifications with
live pushes for each hospital business event.
"""

import json
import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from starlette.websockets import WebSocketState

from hms_realtime.core.storage import Storage
from hms_realtime.models.notification import NotificationType, UserNotification
from hms_realtime.models.user import UserRole
from hms_realtime.schemas import NotificationCreate, compact

logger = logging.getLogger(__name__)

# Notifications older than this are no longer shown as incoming
INCOMING_WINDOW = timedelta(hours=3)


@dataclass(eq=False)
class ClientConnection:
    """A live socket annotated with the identity it registered with."""
    websocket: Any
    user_id: str
    user_role: UserRole
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_open(self) -> bool:
        return is_open(self.websocket)


def is_open(websocket) -> bool:
    return (
        websocket.client_state == WebSocketState.CONNECTED
        and websocket.application_state == WebSocketState.CONNECTED
    )


class NotificationService:
    def __init__(self, storage: Storage):
        self.storage = storage
        self.clients: Dict[str, List[ClientConnection]] = {}

    # Connection registry

    def register(self, websocket, user_id: str, user_role: UserRole) -> ClientConnection:
        connection = ClientConnection(websocket=websocket, user_id=user_id, user_role=user_role)
        self.clients.setdefault(user_id, []).append(connection)
        logger.info(f"WebSocket connected: {user_id} ({user_role.value})")
        return connection

    def unregister(self, connection: ClientConnection):
        user_clients = self.clients.get(connection.user_id)
        if user_clients is None:
            return

        for index, existing in enumerate(user_clients):
            if existing is connection:
                del user_clients[index]
                logger.info(f"WebSocket disconnected: {connection.user_id}")
                break

        if not user_clients:
            del self.clients[connection.user_id]

    def connection_stats(self) -> Dict[str, Any]:
        roles = Counter(
            connection.user_role.value
            for connections in self.clients.values()
            for connection in connections
        )
        return {
            "connectedUsers": len(self.clients),
            "totalConnections": sum(roles.values()),
            "connectionsByRole": dict(roles),
        }

    async def handle_message(self, websocket, raw: str):
        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.warning(f"WebSocket message parse error: {e}")
            return

        if isinstance(data, dict) and data.get("type") == "ping":
            await websocket.send_text(json.dumps({"type": "pong"}))

    # Delivery primitives

    async def send_to_user(self, user_id: str, data: Dict[str, Any]) -> int:
        user_clients = self.clients.get(user_id)
        if not user_clients:
            return 0

        message = json.dumps(data, default=str)
        delivered = 0
        for connection in list(user_clients):
            if await self._deliver(connection, message):
                delivered += 1
        return delivered

    async def broadcast(self, data: Dict[str, Any], filter_role: Optional[UserRole] = None) -> int:
        message = json.dumps(data, default=str)
        delivered = 0
        for connections in list(self.clients.values()):
            for connection in list(connections):
                if filter_role is not None and connection.user_role != filter_role:
                    continue
                if await self._deliver(connection, message):
                    delivered += 1
        return delivered

    async def _deliver(self, connection: ClientConnection, message: str) -> bool:
        if not connection.is_open:
            return False
        try:
            await connection.websocket.send_text(message)
            return True
        except Exception as e:
            # A dead socket must not stop the rest of the fan-out
            logger.warning(f"Dropping connection for {connection.user_id} after send failure: {e}")
            self.unregister(connection)
            try:
                await connection.websocket.close()
            except Exception as close_error:
                logger.debug(f"Close after send failure for {connection.user_id} failed: {close_error}")
            return False

    # Persistence bridge

    async def create_and_push_notification(self, notification: NotificationCreate) -> UserNotification:
        created = self.storage.create_user_notification(notification)

        await self.send_to_user(notification.user_id, {
            "type": "notification",
            "notification": created.to_dict()
        })

        return created

    def get_incoming_notifications(self, user_id: str, now: Optional[datetime] = None) -> List[UserNotification]:
        now = now or datetime.now(timezone.utc)
        recent = self.storage.get_user_notifications(user_id, since=now - INCOMING_WINDOW)
        return [notification for notification in recent if not notification.is_read]

    async def dispatch(self, emitter) -> Any:
        """Await an emitter coroutine, logging instead of raising on failure."""
        try:
            return await emitter
        except Exception:
            logger.exception("Notification error")
            return None

    # Domain event emitters

    async def notify_appointment_created(
        self,
        appointment_id: str,
        doctor_id: str,
        patient_name: str,
        appointment_date: str,
        appointment_time: str,
        department: Optional[str] = None,
        location: Optional[str] = None,
        patient_id: Optional[str] = None
    ):
        location_info = f" at {location}" if location else ""
        dept_info = f" ({department})" if department else ""

        await self.create_and_push_notification(NotificationCreate(
            user_id=doctor_id,
            user_role=UserRole.DOCTOR,
            type=NotificationType.APPOINTMENT,
            title="New Appointment Booked",
            message=f"{patient_name} has booked an appointment for {appointment_date} at {appointment_time}{dept_info}{location_info}",
            related_entity_type="appointment",
            related_entity_id=appointment_id,
            metadata={
                "appointmentDate": appointment_date,
                "appointmentTime": appointment_time,
                "patientName": patient_name,
                "department": department,
                "location": location
            }
        ))

        # Real-time schedule grid refresh for the doctor
        await self.send_to_user(doctor_id, {
            "type": "appointment_update",
            "event": "created",
            "appointmentId": appointment_id,
            "doctorId": doctor_id,
            "appointmentDate": appointment_date,
            "appointmentTime": appointment_time,
            "patientName": patient_name
        })

        if patient_id:
            await self.create_and_push_notification(NotificationCreate(
                user_id=patient_id,
                user_role=UserRole.PATIENT,
                type=NotificationType.APPOINTMENT,
                title="Appointment Confirmed",
                message=f"Your appointment for {appointment_date} at {appointment_time}{dept_info}{location_info} has been confirmed",
                related_entity_type="appointment",
                related_entity_id=appointment_id,
                metadata={
                    "appointmentDate": appointment_date,
                    "appointmentTime": appointment_time,
                    "department": department,
                    "location": location
                }
            ))

        await self.broadcast(compact({
            "type": "admin_notification",
            "event": "appointment_created",
            "appointmentId": appointment_id,
            "department": department,
            "location": location
        }), UserRole.ADMIN)

    async def notify_appointment_updated(self, appointment_id: str, doctor_id: str, patient_name: str, status: str, appointment_date: str):
        await self.create_and_push_notification(NotificationCreate(
            user_id=doctor_id,
            user_role=UserRole.DOCTOR,
            type=NotificationType.APPOINTMENT,
            title=f"Appointment {status}",
            message=f"Appointment with {patient_name} on {appointment_date} has been {status.lower()}",
            related_entity_type="appointment",
            related_entity_id=appointment_id,
            metadata={"status": status, "patientName": patient_name, "appointmentDate": appointment_date}
        ))

        await self.broadcast({
            "type": "admin_notification",
            "event": "appointment_updated",
            "appointmentId": appointment_id,
            "status": status
        }, UserRole.ADMIN)

    async def notify_prescription_created(self, prescription_id: str, patient_id: str, patient_name: str, doctor_name: str):
        await self.create_and_push_notification(NotificationCreate(
            user_id=patient_id,
            user_role=UserRole.PATIENT,
            type=NotificationType.PRESCRIPTION,
            title="New Prescription",
            message=f"Dr. {doctor_name} has created a new prescription for you",
            related_entity_type="prescription",
            related_entity_id=prescription_id,
            metadata={"doctorName": doctor_name, "patientName": patient_name}
        ))

        await self.broadcast({
            "type": "admin_notification",
            "event": "prescription_created",
            "prescriptionId": prescription_id
        }, UserRole.ADMIN)

    async def notify_schedule_updated(self, doctor_id: str, schedule_id: str, date: str, action: str):
        await self.create_and_push_notification(NotificationCreate(
            user_id=doctor_id,
            user_role=UserRole.DOCTOR,
            type=NotificationType.SCHEDULE,
            title=f"Schedule {action}",
            message=f"Your schedule for {date} has been {action.lower()}",
            related_entity_type="schedule",
            related_entity_id=schedule_id,
            metadata={"date": date, "action": action}
        ))

        event = {"event": "schedule_updated", "doctorId": doctor_id, "scheduleId": schedule_id}
        await self.broadcast({"type": "admin_notification", **event}, UserRole.ADMIN)
        await self.broadcast({"type": "opd_notification", **event}, UserRole.OPD_MANAGER)

    async def notify_profile_updated(self, user_id: str, user_role: UserRole, profile_type: str):
        await self.create_and_push_notification(NotificationCreate(
            user_id=user_id,
            user_role=user_role,
            type=NotificationType.PROFILE,
            title="Profile Updated",
            message=f"Your {profile_type} profile has been successfully updated",
            related_entity_type="profile",
            related_entity_id=user_id,
            metadata={"profileType": profile_type}
        ))

        await self.broadcast({
            "type": "admin_notification",
            "event": "profile_updated",
            "userId": user_id,
            "userRole": user_role.value
        }, UserRole.ADMIN)

    async def notify_patient_admission(self, patient_id: str, patient_name: str, doctor_id: str, admission_id: str):
        await self.create_and_push_notification(NotificationCreate(
            user_id=doctor_id,
            user_role=UserRole.DOCTOR,
            type=NotificationType.ADMISSION,
            title="New Patient Admission",
            message=f"{patient_name} has been admitted under your care",
            related_entity_type="admission",
            related_entity_id=admission_id,
            metadata={"patientName": patient_name, "patientId": patient_id}
        ))

        event = {"event": "patient_admitted", "admissionId": admission_id}
        await self.broadcast({"type": "admin_notification", **event}, UserRole.ADMIN)
        await self.broadcast({"type": "nurse_notification", **event}, UserRole.NURSE)
        await self.broadcast({"type": "opd_notification", **event}, UserRole.OPD_MANAGER)

    async def notify_patient_discharge(self, patient_id: str, patient_name: str, doctor_id: str, admission_id: str):
        await self.create_and_push_notification(NotificationCreate(
            user_id=doctor_id,
            user_role=UserRole.DOCTOR,
            type=NotificationType.DISCHARGE,
            title="Patient Discharged",
            message=f"{patient_name} has been discharged from your care",
            related_entity_type="admission",
            related_entity_id=admission_id,
            metadata={"patientName": patient_name, "patientId": patient_id}
        ))

        event = {"event": "patient_discharged", "admissionId": admission_id}
        await self.broadcast({"type": "admin_notification", **event}, UserRole.ADMIN)
        await self.broadcast({"type": "nurse_notification", **event}, UserRole.NURSE)

    async def notify_bill_requested(self, bill_id: str, patient_id: str, patient_name: str, total_amount: float):
        await self.broadcast({
            "type": "admin_notification",
            "event": "bill_requested",
            "billId": bill_id,
            "patientId": patient_id,
            "patientName": patient_name,
            "totalAmount": total_amount
        }, UserRole.ADMIN)

    async def notify_bill_updated(self, bill_id: str, patient_id: str, total_amount: float, status: str):
        # Direct push; bill changes are not persisted as notifications
        await self.send_to_user(patient_id, {
            "type": "bill_updated",
            "event": "bill_updated",
            "billId": bill_id,
            "patientId": patient_id,
            "totalAmount": total_amount,
            "status": status
        })

        await self.broadcast({
            "type": "admin_notification",
            "event": "bill_updated",
            "billId": bill_id,
            "patientId": patient_id,
            "totalAmount": total_amount,
            "status": status
        }, UserRole.ADMIN)

    async def notify_slot_booked(self, slot_id: str, doctor_id: str, date: str, start_time: str, patient_name: str):
        await self.broadcast({
            "type": "slot_update",
            "slotEvent": "slot.booked",
            "slotId": slot_id,
            "doctorId": doctor_id,
            "date": date,
            "startTime": start_time,
            "patientName": patient_name
        })

    async def notify_slot_cancelled(self, slot_id: str, doctor_id: str, date: str, start_time: str):
        await self.broadcast({
            "type": "slot_update",
            "slotEvent": "slot.cancelled",
            "slotId": slot_id,
            "doctorId": doctor_id,
            "date": date,
            "startTime": start_time
        })

    async def notify_slots_generated(self, doctor_id: str, date: str, count: int):
        await self.broadcast({
            "type": "slot_update",
            "slotEvent": "slots.generated",
            "doctorId": doctor_id,
            "date": date,
            "count": count
        })

    async def notify_system_message(self, user_id: str, user_role: UserRole, title: str, message: str):
        return await self.create_and_push_notification(NotificationCreate(
            user_id=user_id,
            user_role=user_role,
            type=NotificationType.SYSTEM,
            title=title,
            message=message
        ))
