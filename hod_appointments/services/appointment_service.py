import logging
from collections.abc import Mapping
from datetime import date
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hod_appointments.core.db import bounded
from hod_appointments.core.errors import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    SlotConflictError,
    ValidationError,
)
from hod_appointments.models.appointment import (
    ACTIVE_STATUSES,
    TERMINAL_STATUSES,
    Appointment,
    AppointmentPublic,
    AppointmentStatus,
)
from hod_appointments.models.caller import Caller
from hod_appointments.services.conflict_service import ConflictChecker, StoreConflictChecker
from hod_appointments.services.query_service import fetch_with_student, to_public
from hod_appointments.services.slot_service import is_valid_slot, slot_labels
from hod_appointments.services.transition_policy import StatusTransitionPolicy, get_transition_policy

logger = logging.getLogger(__name__)

SLOT_TAKEN = "This time slot is already booked"
UPDATABLE_FIELDS = frozenset({"date", "time", "purpose", "notes"})


def _clean(value: str | None) -> str | None:
    """Trim free text; blank becomes None."""
    if value is None:
        return None
    value = value.strip()
    return value or None


def _require_slot(time: str) -> str:
    if not is_valid_slot(time):
        raise ValidationError(
            f"{time!r} is not a bookable slot. Choose one of: {', '.join(slot_labels())}"
        )
    return time


def _require_purpose(purpose: str | None) -> str:
    cleaned = _clean(purpose)
    if not cleaned:
        raise ValidationError("Purpose is required")
    return cleaned


async def _flush_or_conflict(session: AsyncSession, d: date, time: str) -> None:
    # The partial unique index rejects a second active booking that raced past the check
    try:
        await bounded(session.flush())
    except IntegrityError as e:
        await session.rollback()
        logger.warning("Slot %s %s taken concurrently, write rejected by the store", d, time)
        raise SlotConflictError(SLOT_TAKEN) from e


async def _get_or_404(session: AsyncSession, appointment_id: int) -> Appointment:
    appointment = await bounded(session.get(Appointment, appointment_id))
    if appointment is None:
        raise NotFoundError("Appointment not found")
    return appointment


async def _load_public(session: AsyncSession, appointment_id: int) -> AppointmentPublic:
    row = await fetch_with_student(session, appointment_id)
    if row is None:
        raise NotFoundError("Appointment not found")
    return to_public(*row)


async def create_appointment(
    session: AsyncSession,
    caller: Caller,
    d: date,
    time: str,
    purpose: str,
    notes: str | None = None,
    checker: ConflictChecker | None = None,
) -> AppointmentPublic:
    if caller.is_hod:
        raise AuthorizationError("HOD cannot create appointments")
    _require_slot(time)
    purpose = _require_purpose(purpose)
    checker = checker or StoreConflictChecker(session)
    if await checker.has_conflict(d, time):
        logger.info("Create rejected: slot %s %s already booked (caller=%s)", d, time, caller.id)
        raise SlotConflictError(SLOT_TAKEN)
    appointment = Appointment(
        student_ref=caller.id,
        student_name=caller.name,
        student_email=caller.email,
        student_id=caller.student_id or "N/A",
        date=d,
        time=time,
        purpose=purpose,
        notes=_clean(notes),
    )
    session.add(appointment)
    await _flush_or_conflict(session, d, time)
    await bounded(session.refresh(appointment))
    logger.info("Appointment %s created for %s %s by student %s", appointment.id, d, time, caller.id)
    return await _load_public(session, appointment.id)


async def get_appointment(
    session: AsyncSession, caller: Caller, appointment_id: int
) -> AppointmentPublic:
    row = await fetch_with_student(session, appointment_id)
    if row is None:
        raise NotFoundError("Appointment not found")
    appointment, user = row
    # Students can only view their own appointments
    if not caller.is_hod and not caller.owns(appointment.student_ref):
        raise AuthorizationError("Access denied")
    return to_public(appointment, user)


async def update_appointment(
    session: AsyncSession,
    caller: Caller,
    appointment_id: int,
    changes: Mapping[str, Any],
    checker: ConflictChecker | None = None,
) -> AppointmentPublic:
    """Apply a partial update.

    ``changes`` holds only the fields the caller supplied. A supplied ``notes``
    that is None or blank clears the notes; omitted fields keep their value.
    """
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValidationError(f"Cannot update field(s): {', '.join(sorted(unknown))}")

    appointment = await _get_or_404(session, appointment_id)

    # Students can only update their own pending appointments
    if not caller.is_hod:
        if not caller.owns(appointment.student_ref):
            raise AuthorizationError("Access denied")
        if appointment.status != AppointmentStatus.PENDING.value:
            raise InvalidStateError("Can only update pending appointments")

    new_date = changes.get("date") or appointment.date
    new_time = appointment.time
    if changes.get("time") is not None:
        new_time = _require_slot(changes["time"])
    purpose = None
    if changes.get("purpose") is not None:
        purpose = _require_purpose(changes["purpose"])

    moved = (new_date, new_time) != (appointment.date, appointment.time)
    if moved and appointment.is_active:
        checker = checker or StoreConflictChecker(session)
        if await checker.has_conflict(new_date, new_time, exclude_id=appointment.id):
            logger.info("Update of %s rejected: slot %s %s already booked", appointment.id, new_date, new_time)
            raise SlotConflictError(SLOT_TAKEN)

    appointment.date = new_date
    appointment.time = new_time
    if purpose is not None:
        appointment.purpose = purpose
    if "notes" in changes:
        appointment.notes = _clean(changes["notes"])
    appointment.touch()
    session.add(appointment)
    await _flush_or_conflict(session, new_date, new_time)
    logger.info("Appointment %s updated by %s %s", appointment_id, caller.role.value, caller.id)
    return await _load_public(session, appointment_id)


async def delete_appointment(session: AsyncSession, caller: Caller, appointment_id: int) -> None:
    appointment = await _get_or_404(session, appointment_id)
    # Students can only delete their own appointments
    if not caller.is_hod and not caller.owns(appointment.student_ref):
        raise AuthorizationError("Access denied")
    await bounded(session.delete(appointment))
    await bounded(session.flush())
    logger.info("Appointment %s deleted by %s %s", appointment_id, caller.role.value, caller.id)


async def set_appointment_status(
    session: AsyncSession,
    caller: Caller,
    appointment_id: int,
    status: str,
    hod_notes: str | None = None,
    policy: StatusTransitionPolicy | None = None,
    checker: ConflictChecker | None = None,
) -> AppointmentPublic:
    """Change the review status of an appointment.

    Callers must already be restricted to the department head. Which changes are
    allowed comes from ``policy`` (the configured one by default). ``hod_notes``
    replaces the previous notes only when non-blank.
    """
    try:
        target = AppointmentStatus(status)
    except ValueError:
        raise ValidationError(f"Invalid status: {status!r}") from None

    appointment = await _get_or_404(session, appointment_id)
    current = AppointmentStatus(appointment.status)
    policy = policy or get_transition_policy()
    if not policy.can_transition(current, target):
        raise InvalidStateError(
            f"Cannot change status from {current.value} to {target.value}"
        )

    # Reopening a closed request must not steal a slot someone else now holds
    if target in ACTIVE_STATUSES and current in TERMINAL_STATUSES:
        checker = checker or StoreConflictChecker(session)
        if await checker.has_conflict(appointment.date, appointment.time, exclude_id=appointment.id):
            raise SlotConflictError(SLOT_TAKEN)

    appointment.status = target.value
    notes = _clean(hod_notes)
    if notes:
        appointment.hod_notes = notes
    appointment.touch()
    session.add(appointment)
    await _flush_or_conflict(session, appointment.date, appointment.time)
    logger.info(
        "Appointment %s status %s -> %s by %s", appointment_id, current.value, target.value, caller.id
    )
    return await _load_public(session, appointment_id)
