from datetime import date
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hod_appointments.core.db import bounded
from hod_appointments.models.appointment import ACTIVE_STATUSES, Appointment


class ConflictChecker(Protocol):
    async def has_conflict(self, d: date, time: str, exclude_id: int | None = None) -> bool:
        """True if an active appointment other than exclude_id holds (d, time)."""
        ...


class StoreConflictChecker:
    """Conflict lookup against the appointments table.

    This is the early, friendly check. The partial unique index on active slots is
    what makes the write safe when two requests race past this query.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def has_conflict(self, d: date, time: str, exclude_id: int | None = None) -> bool:
        q = select(Appointment.id).where(
            Appointment.date == d,
            Appointment.time == time,
            Appointment.status.in_([s.value for s in ACTIVE_STATUSES]),
        )
        if exclude_id is not None:
            q = q.where(Appointment.id != exclude_id)
        result = await bounded(self.session.execute(q.limit(1)))
        return result.first() is not None
