from datetime import date

from hod_appointments.models import AppointmentStatus
from hod_appointments.services.query_service import list_appointments


async def test_hod_sees_all_newest_first(session, alice, bob, hod, add_appointment) -> None:
    a1 = await add_appointment(alice, date(2025, 3, 10), "09:00")
    a2 = await add_appointment(bob, date(2025, 3, 12), "10:00")
    a3 = await add_appointment(alice, date(2025, 3, 12), "15:00", AppointmentStatus.APPROVED)
    a4 = await add_appointment(bob, date(2025, 3, 11), "16:00", AppointmentStatus.REJECTED)

    listed = await list_appointments(session, hod)

    assert [a.id for a in listed] == [a3, a2, a4, a1]
    assert all(a.student is not None for a in listed)


async def test_student_sees_only_own(session, alice, bob, add_appointment) -> None:
    mine_old = await add_appointment(alice, date(2025, 3, 10), "09:00")
    await add_appointment(bob, date(2025, 3, 11), "09:00")
    mine_new = await add_appointment(alice, date(2025, 3, 11), "11:00")

    listed = await list_appointments(session, alice)

    assert [a.id for a in listed] == [mine_new, mine_old]
    assert {a.student_ref for a in listed} == {alice.id}


async def test_ties_are_ordered_by_newest_id(session, alice, bob, hod, add_appointment) -> None:
    day = date(2025, 3, 10)
    older = await add_appointment(alice, day, "09:00", AppointmentStatus.REJECTED)
    newer = await add_appointment(bob, day, "09:00", AppointmentStatus.PENDING)

    listed = await list_appointments(session, hod)

    assert [a.id for a in listed] == [newer, older]


async def test_empty_list(session, alice) -> None:
    assert await list_appointments(session, alice) == []
