from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from hms_realtime.models.appointment import Appointment
from hms_realtime.models.doctor import Doctor
from hms_realtime.models.health_tip import HealthTip
from hms_realtime.models.notification import UserNotification
from hms_realtime.schemas import GeneratedHealthTip, NotificationCreate


class Storage:
    """Persistence used by the notification service and its schedulers.

    Every call opens its own short-lived session so the service can be used
    from scheduler jobs as well as from request handlers.
    """

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    # User notifications

    def create_user_notification(self, data: NotificationCreate) -> UserNotification:
        db = self.session_factory()
        try:
            notification = UserNotification(
                user_id=data.user_id,
                user_role=data.user_role.value,
                type=data.type.value,
                title=data.title,
                message=data.message,
                related_entity_type=data.related_entity_type,
                related_entity_id=data.related_entity_id,
                is_read=data.is_read,
                metadata_json=data.metadata
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)
            return notification
        finally:
            db.close()

    def get_user_notifications(self, user_id: str, since: Optional[datetime] = None) -> List[UserNotification]:
        db = self.session_factory()
        try:
            query = db.query(UserNotification).filter(UserNotification.user_id == user_id)
            if since is not None:
                query = query.filter(UserNotification.created_at >= since)
            return query.order_by(UserNotification.created_at.desc()).all()
        finally:
            db.close()

    def get_user_notifications_by_role(self, user_role: str) -> List[UserNotification]:
        db = self.session_factory()
        try:
            return db.query(UserNotification).filter(
                UserNotification.user_role == user_role
            ).order_by(UserNotification.created_at.desc()).all()
        finally:
            db.close()

    def get_user_notification(self, notification_id: str) -> Optional[UserNotification]:
        db = self.session_factory()
        try:
            return db.query(UserNotification).filter(UserNotification.id == notification_id).first()
        finally:
            db.close()

    def mark_user_notification_read(self, notification_id: str) -> Optional[UserNotification]:
        db = self.session_factory()
        try:
            notification = db.query(UserNotification).filter(UserNotification.id == notification_id).first()
            if not notification:
                return None
            notification.is_read = True
            db.commit()
            db.refresh(notification)
            return notification
        finally:
            db.close()

    def mark_all_user_notifications_read(self, user_id: str) -> int:
        db = self.session_factory()
        try:
            updated = db.query(UserNotification).filter(
                UserNotification.user_id == user_id,
                UserNotification.is_read == False
            ).update({"is_read": True})
            db.commit()
            return updated
        finally:
            db.close()

    def delete_user_notification(self, notification_id: str) -> bool:
        db = self.session_factory()
        try:
            deleted = db.query(UserNotification).filter(UserNotification.id == notification_id).delete()
            db.commit()
            return deleted > 0
        finally:
            db.close()

    # Health tips

    def create_health_tip(self, tip: GeneratedHealthTip, scheduled_for: str) -> HealthTip:
        db = self.session_factory()
        try:
            health_tip = HealthTip(
                title=tip.title,
                content=tip.content,
                category=tip.category,
                weather_context=tip.weather_context,
                season=tip.season,
                priority=tip.priority,
                target_audience=tip.target_audience,
                scheduled_for=scheduled_for,
                is_active=True
            )
            db.add(health_tip)
            db.commit()
            db.refresh(health_tip)
            return health_tip
        finally:
            db.close()

    def get_health_tips(self, limit: int = 10) -> List[HealthTip]:
        db = self.session_factory()
        try:
            return db.query(HealthTip).filter(
                HealthTip.is_active == True
            ).order_by(HealthTip.generated_at.desc()).limit(limit).all()
        finally:
            db.close()

    # Appointments and doctors

    def get_appointments(self) -> List[Appointment]:
        db = self.session_factory()
        try:
            return db.query(Appointment).all()
        finally:
            db.close()

    def get_appointment(self, appointment_id: str) -> Optional[Appointment]:
        db = self.session_factory()
        try:
            return db.query(Appointment).filter(Appointment.id == appointment_id).first()
        finally:
            db.close()

    def create_appointment(self, **fields) -> Appointment:
        db = self.session_factory()
        try:
            appointment = Appointment(**fields)
            db.add(appointment)
            db.commit()
            db.refresh(appointment)
            return appointment
        finally:
            db.close()

    def update_appointment_status(self, appointment_id: str, status: str) -> Optional[Appointment]:
        db = self.session_factory()
        try:
            appointment = db.query(Appointment).filter(Appointment.id == appointment_id).first()
            if not appointment:
                return None
            appointment.status = status
            db.commit()
            db.refresh(appointment)
            return appointment
        finally:
            db.close()

    def get_doctors(self) -> List[Doctor]:
        db = self.session_factory()
        try:
            return db.query(Doctor).all()
        finally:
            db.close()

    def create_doctor(self, name: str, specialty: Optional[str] = None) -> Doctor:
        db = self.session_factory()
        try:
            doctor = Doctor(name=name, specialty=specialty)
            db.add(doctor)
            db.commit()
            db.refresh(doctor)
            return doctor
        finally:
            db.close()
