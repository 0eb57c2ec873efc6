import datetime as dt

from pydantic import BaseModel

from hod_appointments.models.appointment import AppointmentStatus


class CreateAppointmentRequest(BaseModel):
    date: dt.date
    time: str  # slot label, e.g. "09:00"
    purpose: str
    notes: str | None = None


class UpdateAppointmentRequest(BaseModel):
    """Partial update; only fields present in the body are applied."""

    date: dt.date | None = None
    time: str | None = None
    purpose: str | None = None
    notes: str | None = None


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus
    hod_notes: str | None = None


class MessageResponse(BaseModel):
    message: str
