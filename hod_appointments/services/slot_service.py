from datetime import date

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hod_appointments.core.config import settings
from hod_appointments.core.db import bounded
from hod_appointments.models.appointment import ACTIVE_STATUSES, Appointment, SlotAvailability


def slot_labels() -> list[str]:
    """Hourly slot labels for office hours, e.g. ["09:00", ..., "16:00"]."""
    return [
        f"{hour:02d}:00"
        for hour in range(settings.business_start_hour, settings.business_end_hour)
    ]


def is_valid_slot(time: str) -> bool:
    return time in slot_labels()


async def get_booked_times(session: AsyncSession, d: date) -> set[str]:
    result = await bounded(
        session.execute(
            select(Appointment.time).where(
                Appointment.date == d,
                Appointment.status.in_([s.value for s in ACTIVE_STATUSES]),
            )
        )
    )
    return {row[0] for row in result.all()}


async def compute_availability(session: AsyncSession, d: date) -> list[SlotAvailability]:
    """Return every slot of the day with available=False where an active booking sits."""
    booked = await get_booked_times(session, d)
    return [SlotAvailability(time=label, available=label not in booked) for label in slot_labels()]
