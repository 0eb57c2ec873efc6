import asyncio

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hod_appointments.api.deps import get_current_caller
from hod_appointments.core.db import get_session
from hod_appointments.main import app
from hod_appointments.models import Caller, Role


@pytest_asyncio.fixture
async def client(session_maker):
    async def override_get_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()


async def _register(client: AsyncClient, name: str, email: str, student_id: str | None = None) -> dict:
    response = await client.post(
        "/api/auth/register",
        json={"name": name, "email": email, "password": "secret123", "student_id": student_id},
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest_asyncio.fixture
async def tokens(client) -> dict[str, dict]:
    return {
        "alice": await _register(client, "Alice Moore", "alice@example.edu", "S-1001"),
        "bob": await _register(client, "Bob Chen", "bob@example.edu"),
        "hod": await _register(client, "Dr. Rao", "HOD@example.edu"),
    }


async def test_health(client) -> None:
    response = await client.get("/api/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


async def test_register_assigns_roles(client, tokens) -> None:
    me = await client.get("/api/auth/me", headers=tokens["alice"])
    head = await client.get("/api/auth/me", headers=tokens["hod"])

    assert me.json()["role"] == "student"
    assert me.json()["student_id"] == "S-1001"
    assert head.json()["role"] == "hod"
    assert head.json()["email"] == "hod@example.edu"


async def test_duplicate_registration_conflicts(client, tokens) -> None:
    response = await client.post(
        "/api/auth/register",
        json={"name": "Alice Again", "email": "alice@example.edu", "password": "secret123"},
    )

    assert response.status_code == 409


async def test_login(client, tokens) -> None:
    ok = await client.post("/api/auth/login", json={"email": "alice@example.edu", "password": "secret123"})
    bad = await client.post("/api/auth/login", json={"email": "alice@example.edu", "password": "wrong-pass"})

    assert ok.status_code == 200
    assert ok.json()["token_type"] == "bearer"
    assert bad.status_code == 401


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer not-a-token"}])
async def test_appointments_require_authentication(client, headers: dict) -> None:
    response = await client.get("/api/appointments", headers=headers)

    assert response.status_code == 401
    assert response.json()["error"] == "authentication_error"
    assert response.headers["WWW-Authenticate"] == "Bearer"


async def test_booking_review_flow(client, tokens) -> None:
    body = {"date": "2025-03-10", "time": "09:00", "purpose": "Thesis proposal", "notes": "Draft attached"}

    created = await client.post("/api/appointments", json=body, headers=tokens["alice"])
    assert created.status_code == 201, created.text
    appointment = created.json()
    assert appointment["status"] == "pending"
    assert appointment["student"]["email"] == "alice@example.edu"

    clash = await client.post("/api/appointments", json=body, headers=tokens["bob"])
    assert clash.status_code == 409
    assert clash.json()["error"] == "slot_conflict"
    assert clash.json()["retryable"] is False

    slots = (await client.get("/api/appointments/availability/2025-03-10", headers=tokens["bob"])).json()
    assert len(slots) == 8
    assert [s["time"] for s in slots if not s["available"]] == ["09:00"]

    url = f"/api/appointments/{appointment['id']}"
    assert (await client.get(url, headers=tokens["bob"])).status_code == 403
    assert (await client.get(url, headers=tokens["hod"])).status_code == 200

    denied = await client.patch(f"{url}/status", json={"status": "approved"}, headers=tokens["alice"])
    assert denied.status_code == 403

    approved = await client.patch(
        f"{url}/status", json={"status": "approved", "hod_notes": "Room 204"}, headers=tokens["hod"]
    )
    assert approved.status_code == 200
    assert approved.json()["hod_notes"] == "Room 204"

    late_edit = await client.put(url, json={"purpose": "Changed"}, headers=tokens["alice"])
    assert late_edit.status_code == 400
    assert late_edit.json()["error"] == "invalid_state"

    deleted = await client.delete(url, headers=tokens["hod"])
    assert deleted.json() == {"message": "Appointment deleted successfully"}
    assert (await client.get(url, headers=tokens["hod"])).status_code == 404


async def test_hod_cannot_book(client, tokens) -> None:
    response = await client.post(
        "/api/appointments",
        json={"date": "2025-03-10", "time": "09:00", "purpose": "Self"},
        headers=tokens["hod"],
    )

    assert response.status_code == 403


async def test_invalid_slot_is_rejected(client, tokens) -> None:
    response = await client.post(
        "/api/appointments",
        json={"date": "2025-03-10", "time": "18:00", "purpose": "Late"},
        headers=tokens["alice"],
    )

    assert response.status_code == 400
    assert response.json()["error"] == "validation_error"


async def test_unknown_status_is_unprocessable(client, tokens) -> None:
    created = await client.post(
        "/api/appointments",
        json={"date": "2025-03-10", "time": "10:00", "purpose": "Advising"},
        headers=tokens["alice"],
    )

    response = await client.patch(
        f"/api/appointments/{created.json()['id']}/status", json={"status": "archived"}, headers=tokens["hod"]
    )

    assert response.status_code == 422


async def test_put_distinguishes_cleared_notes_from_omitted(client, tokens) -> None:
    created = await client.post(
        "/api/appointments",
        json={"date": "2025-03-10", "time": "10:00", "purpose": "Advising", "notes": "Agenda"},
        headers=tokens["alice"],
    )
    url = f"/api/appointments/{created.json()['id']}"

    kept = await client.put(url, json={"time": "11:00"}, headers=tokens["alice"])
    assert kept.json()["notes"] == "Agenda"
    assert kept.json()["time"] == "11:00"

    cleared = await client.put(url, json={"notes": None}, headers=tokens["alice"])
    assert cleared.json()["notes"] is None


async def test_list_is_role_scoped(client, tokens) -> None:
    for headers, day in ((tokens["alice"], "2025-03-10"), (tokens["bob"], "2025-03-11")):
        response = await client.post(
            "/api/appointments",
            json={"date": day, "time": "09:00", "purpose": "Advising"},
            headers=headers,
        )
        assert response.status_code == 201

    mine = (await client.get("/api/appointments", headers=tokens["alice"])).json()
    everything = (await client.get("/api/appointments", headers=tokens["hod"])).json()

    assert [a["date"] for a in mine] == ["2025-03-10"]
    assert [a["date"] for a in everything] == ["2025-03-11", "2025-03-10"]


class StalledSession(AsyncSession):
    """Session whose queries never come back in time."""

    async def execute(self, *args, **kwargs):
        await asyncio.sleep(1)


async def test_store_timeout_is_rendered_as_retryable_503(engine, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("hod_appointments.core.db.settings.store_timeout_seconds", 0.01)
    stalled_maker = async_sessionmaker(engine, class_=StalledSession, expire_on_commit=False)

    async def stalled_session():
        async with stalled_maker() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def student():
        return Caller(id=1, role=Role.STUDENT, name="Alice Moore", email="alice@example.edu")

    app.dependency_overrides[get_session] = stalled_session
    app.dependency_overrides[get_current_caller] = student
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/appointments")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json()["error"] == "store_error"
    assert response.json()["retryable"] is True
