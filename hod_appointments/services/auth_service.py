from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from hod_appointments.core.config import settings
from hod_appointments.core.db import bounded
from hod_appointments.core.security import create_access_token, hash_password, verify_password
from hod_appointments.models.user import Role, User, UserCreate, UserPublic


def normalize_email(email: str) -> str:
    return email.strip().lower()


def role_for_email(email: str) -> Role:
    """The configured department head email gets the hod role, everyone else is a student."""
    if settings.hod_email and normalize_email(email) == normalize_email(settings.hod_email):
        return Role.HOD
    return Role.STUDENT


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await bounded(
        session.execute(select(User).where(User.email == normalize_email(email)))
    )
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: int) -> User | None:
    return await bounded(session.get(User, user_id))


async def create_user(session: AsyncSession, data: UserCreate) -> User:
    email = normalize_email(data.email)
    user = User(
        name=data.name.strip(),
        email=email,
        student_id=(data.student_id or "").strip() or None,
        role=role_for_email(email).value,
        hashed_password=hash_password(data.password),
    )
    session.add(user)
    await bounded(session.flush())
    await bounded(session.refresh(user))
    return user


def user_to_public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        name=user.name,
        email=user.email,
        student_id=user.student_id,
        role=user.role,
    )


def make_access_token(user: User) -> tuple[str, int]:
    access = create_access_token(user.id)
    expires_in = settings.access_token_expire_minutes * 60
    return access, expires_in


async def login_user(
    session: AsyncSession, email: str, password: str
) -> tuple[User, str, int] | None:
    user = await get_user_by_email(session, email)
    if not user:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    access, expires_in = make_access_token(user)
    return user, access, expires_in


async def register_user(
    session: AsyncSession, data: UserCreate
) -> tuple[User, str, int] | None:
    existing = await get_user_by_email(session, data.email)
    if existing:
        return None
    try:
        user = await create_user(session, data)
    except IntegrityError:
        # Same email registered concurrently; the unique index on users.email rejected ours
        await session.rollback()
        return None
    access, expires_in = make_access_token(user)
    return user, access, expires_in
