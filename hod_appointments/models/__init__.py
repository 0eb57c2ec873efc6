from hod_appointments.models.user import Role, User, UserCreate, UserPublic
from hod_appointments.models.caller import Caller
from hod_appointments.models.appointment import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentPublic,
    AppointmentStatus,
    SlotAvailability,
    StudentSummary,
)

__all__ = [
    "Role",
    "User",
    "UserCreate",
    "UserPublic",
    "Caller",
    "ACTIVE_STATUSES",
    "TERMINAL_STATUSES",
    "Appointment",
    "AppointmentPublic",
    "AppointmentStatus",
    "SlotAvailability",
    "StudentSummary",
]
