from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class Role(str, Enum):
    STUDENT = "student"
    HOD = "hod"


class UserBase(SQLModel):
    name: str
    email: str = Field(unique=True, index=True)
    student_id: str | None = None
    role: str = Field(default=Role.STUDENT.value)


class User(UserBase, table=True):
    __tablename__ = "users"
    id: int | None = Field(default=None, primary_key=True)
    hashed_password: str
    created_at: datetime = Field(default_factory=_utc_naive_now, sa_type=DateTime())


class UserCreate(SQLModel):
    name: str
    email: str
    password: str
    student_id: str | None = None


class UserPublic(SQLModel):
    id: int
    name: str
    email: str
    student_id: str | None = None
    role: str
