from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hod_appointments.core.db import bounded
from hod_appointments.models.appointment import (
    Appointment,
    AppointmentPublic,
    AppointmentStatus,
    StudentSummary,
)
from hod_appointments.models.caller import Caller
from hod_appointments.models.user import User


def to_public(a: Appointment, user: User | None) -> AppointmentPublic:
    """Public shape of a record plus the display fields of its owner."""
    student = None
    if user is not None:
        student = StudentSummary(
            id=user.id,
            name=user.name,
            email=user.email,
            student_id=user.student_id,
        )
    return AppointmentPublic(
        id=a.id,
        student_ref=a.student_ref,
        student_name=a.student_name,
        student_email=a.student_email,
        student_id=a.student_id,
        date=a.date,
        time=a.time,
        purpose=a.purpose,
        notes=a.notes,
        status=AppointmentStatus(a.status),
        hod_notes=a.hod_notes,
        created_at=a.created_at,
        updated_at=a.updated_at,
        student=student,
    )


def _with_student():
    return select(Appointment, User).outerjoin(User, User.id == Appointment.student_ref)


async def fetch_with_student(
    session: AsyncSession, appointment_id: int
) -> tuple[Appointment, User | None] | None:
    result = await bounded(
        session.execute(_with_student().where(Appointment.id == appointment_id))
    )
    row = result.first()
    if row is None:
        return None
    return row[0], row[1]


async def list_appointments(session: AsyncSession, caller: Caller) -> list[AppointmentPublic]:
    """All records for the department head, only their own for a student.

    Newest slot first; id breaks ties so the order is stable.
    """
    q = _with_student().order_by(
        Appointment.date.desc(), Appointment.time.desc(), Appointment.id.desc()
    )
    if not caller.is_hod:
        q = q.where(Appointment.student_ref == caller.id)
    result = await bounded(session.execute(q))
    return [to_public(a, u) for a, u in result.all()]
