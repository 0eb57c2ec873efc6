import datetime as dt
from enum import Enum

from sqlalchemy import DateTime, Index, text
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> dt.datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return dt.datetime.now(dt.UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Active requests hold their slot; terminal ones free it
ACTIVE_STATUSES = frozenset({AppointmentStatus.PENDING, AppointmentStatus.APPROVED})
TERMINAL_STATUSES = frozenset(set(AppointmentStatus) - ACTIVE_STATUSES)

_ACTIVE_SLOT_WHERE = text("status IN ('pending', 'approved')")


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_date_time", "date", "time"),
        Index("ix_appointments_student_ref_date", "student_ref", "date"),
        # Single active booking per slot, enforced by the store itself
        Index(
            "uq_appointments_active_slot",
            "date",
            "time",
            unique=True,
            postgresql_where=_ACTIVE_SLOT_WHERE,
            sqlite_where=_ACTIVE_SLOT_WHERE,
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    student_ref: int = Field(foreign_key="users.id")
    # Snapshot of the requester at submission time, never re-synced
    student_name: str
    student_email: str
    student_id: str
    date: dt.date
    time: str = Field(max_length=5)
    purpose: str
    notes: str | None = None
    status: str = Field(default=AppointmentStatus.PENDING.value, max_length=16)
    hod_notes: str | None = None
    created_at: dt.datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime())
    updated_at: dt.datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime())

    @property
    def is_active(self) -> bool:
        return self.status in {s.value for s in ACTIVE_STATUSES}

    def touch(self) -> None:
        self.updated_at = _utc_naive_now()


class StudentSummary(SQLModel):
    id: int
    name: str
    email: str
    student_id: str | None = None


class AppointmentPublic(SQLModel):
    id: int
    student_ref: int
    student_name: str
    student_email: str
    student_id: str
    date: dt.date
    time: str
    purpose: str
    notes: str | None = None
    status: AppointmentStatus
    hod_notes: str | None = None
    created_at: dt.datetime
    updated_at: dt.datetime
    # Live identity of the owner for display; None if the account is gone
    student: StudentSummary | None = None


class SlotAvailability(SQLModel):
    time: str
    available: bool
