from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, field_validator
from pydantic.alias_generators import to_camel
from datetime import datetime
from hms_realtime.core.dependencies import get_notification_service, get_storage
from hms_realtime.core.notifications import NotificationService
from hms_realtime.core.reminders import parse_appointment_datetime
from hms_realtime.core.storage import Storage
from hms_realtime.models.appointment import AppointmentStatus

router = APIRouter(prefix="/api/appointments", tags=["appointments"])

class AppointmentCreate(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    doctor_id: str
    patient_name: str
    patient_id: Optional[str] = None
    appointment_date: str
    time_slot: str
    department: Optional[str] = None
    location: Optional[str] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED

    @field_validator("time_slot")
    @classmethod
    def check_time_slot(cls, value, info):
        appointment_date = info.data.get("appointment_date")
        if appointment_date and parse_appointment_datetime(appointment_date, value) is None:
            raise ValueError("appointmentDate must be YYYY-MM-DD and timeSlot HH:MM")
        return value

class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    doctor_id: str
    patient_id: Optional[str] = None
    patient_name: str
    appointment_date: str
    time_slot: str
    status: str
    department: Optional[str] = None
    location: Optional[str] = None
    created_at: datetime

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
async def create_appointment(
    appointment: AppointmentCreate,
    storage: Storage = Depends(get_storage),
    service: NotificationService = Depends(get_notification_service)
):
    fields = appointment.model_dump()
    fields["status"] = appointment.status.value
    db_appointment = storage.create_appointment(**fields)

    # Notify the doctor and patient; failures never fail the booking
    await service.dispatch(service.notify_appointment_created(
        db_appointment.id,
        db_appointment.doctor_id,
        db_appointment.patient_name,
        db_appointment.appointment_date,
        db_appointment.time_slot,
        department=db_appointment.department,
        location=db_appointment.location,
        patient_id=db_appointment.patient_id or db_appointment.patient_name
    ))

    return db_appointment

@router.get("", response_model=List[AppointmentResponse])
async def list_appointments(storage: Storage = Depends(get_storage)):
    return storage.get_appointments()

@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(appointment_id: str, storage: Storage = Depends(get_storage)):
    appointment = storage.get_appointment(appointment_id)
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found"
        )
    return appointment

@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
async def update_appointment_status(
    appointment_id: str,
    update: AppointmentStatusUpdate,
    storage: Storage = Depends(get_storage),
    service: NotificationService = Depends(get_notification_service)
):
    appointment = storage.update_appointment_status(appointment_id, update.status.value)
    if not appointment:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Appointment not found"
        )

    await service.dispatch(service.notify_appointment_updated(
        appointment.id,
        appointment.doctor_id,
        appointment.patient_name,
        update.status.value,
        appointment.appointment_date
    ))

    return appointment
