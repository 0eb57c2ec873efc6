import os
from datetime import date

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("HOD_EMAIL", "hod@example.edu")
os.environ.setdefault("ENV", "test")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from hod_appointments.models import Appointment, AppointmentStatus, Caller, User  # noqa: E402


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def session(session_maker):
    async with session_maker() as session:
        yield session


@pytest_asyncio.fixture
async def users(session) -> dict[str, User]:
    accounts = {
        "alice": User(name="Alice Moore", email="alice@example.edu", student_id="S-1001", role="student", hashed_password="x"),
        "bob": User(name="Bob Chen", email="bob@example.edu", student_id=None, role="student", hashed_password="x"),
        "hod": User(name="Dr. Rao", email="hod@example.edu", student_id=None, role="hod", hashed_password="x"),
    }
    session.add_all(accounts.values())
    await session.commit()
    return accounts


@pytest.fixture
def alice(users) -> Caller:
    return Caller.from_user(users["alice"])


@pytest.fixture
def bob(users) -> Caller:
    return Caller.from_user(users["bob"])


@pytest.fixture
def hod(users) -> Caller:
    return Caller.from_user(users["hod"])


@pytest.fixture
def add_appointment(session):
    """Insert an appointment row directly, bypassing the lifecycle rules."""

    async def _add(
        owner: Caller,
        d: date,
        time: str,
        status: AppointmentStatus = AppointmentStatus.PENDING,
        purpose: str = "Project discussion",
    ) -> int:
        appointment = Appointment(
            student_ref=owner.id,
            student_name=owner.name,
            student_email=owner.email,
            student_id=owner.student_id or "N/A",
            date=d,
            time=time,
            purpose=purpose,
            status=status.value,
        )
        session.add(appointment)
        await session.commit()
        return appointment.id

    return _add
