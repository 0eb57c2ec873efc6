import logging
from datetime import date

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hod_appointments.api.deps import get_current_caller, get_session, require_hod
from hod_appointments.api.schemas.appointment import (
    CreateAppointmentRequest,
    MessageResponse,
    StatusUpdateRequest,
    UpdateAppointmentRequest,
)
from hod_appointments.models.appointment import AppointmentPublic, SlotAvailability
from hod_appointments.models.caller import Caller
from hod_appointments.services.appointment_service import (
    create_appointment,
    delete_appointment,
    get_appointment,
    set_appointment_status,
    update_appointment,
)
from hod_appointments.services.query_service import list_appointments
from hod_appointments.services.slot_service import compute_availability

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: CreateAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
) -> AppointmentPublic:
    return await create_appointment(
        session, caller, body.date, body.time, body.purpose, body.notes
    )


@router.get("", response_model=list[AppointmentPublic])
async def list_my_appointments(
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
) -> list[AppointmentPublic]:
    """HOD sees all appointments, a student only their own; newest slot first."""
    return await list_appointments(session, caller)


@router.get("/availability/{date_param}", response_model=list[SlotAvailability])
async def availability(
    date_param: date,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
) -> list[SlotAvailability]:
    """Every office-hours slot of the given date with its availability."""
    return await compute_availability(session, date_param)


@router.get("/{appointment_id}", response_model=AppointmentPublic)
async def read_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
) -> AppointmentPublic:
    return await get_appointment(session, caller, appointment_id)


@router.patch("/{appointment_id}/status", response_model=AppointmentPublic)
async def change_status(
    appointment_id: int,
    body: StatusUpdateRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(require_hod),
) -> AppointmentPublic:
    return await set_appointment_status(
        session, caller, appointment_id, body.status.value, body.hod_notes
    )


@router.put("/{appointment_id}", response_model=AppointmentPublic)
async def edit_appointment(
    appointment_id: int,
    body: UpdateAppointmentRequest,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
) -> AppointmentPublic:
    # exclude_unset keeps "notes": null (clear) apart from an omitted field
    changes = body.model_dump(exclude_unset=True)
    return await update_appointment(session, caller, appointment_id, changes)


@router.delete("/{appointment_id}", response_model=MessageResponse)
async def remove_appointment(
    appointment_id: int,
    session: AsyncSession = Depends(get_session),
    caller: Caller = Depends(get_current_caller),
) -> MessageResponse:
    await delete_appointment(session, caller, appointment_id)
    return MessageResponse(message="Appointment deleted successfully")
