import asyncio
from collections.abc import AsyncGenerator, Awaitable
from typing import TypeVar
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel

from hod_appointments.core.config import settings
from hod_appointments.core.errors import StoreError

T = TypeVar("T")

DEFAULT_DATABASE_NAME = "hod_appointments"


def normalize_database_url(url: str) -> str:
    """Make a configured URL usable by the async engine.

    asyncpg does not accept psycopg params like sslmode/channel_binding, so the
    scheme is converted and those params stripped; SSL goes through connect_args.
    A PostgreSQL URL without a database name gets the default one.
    """
    parsed = urlparse(url)
    if not parsed.scheme.startswith("postgres"):
        return url
    scheme = "postgresql+asyncpg" if parsed.scheme in ("postgresql", "postgres") else parsed.scheme
    query = parse_qs(parsed.query, keep_blank_values=True)
    query.pop("sslmode", None)
    query.pop("channel_binding", None)
    new_query = urlencode(query, doseq=True)
    path = parsed.path if parsed.path.strip("/") else f"/{DEFAULT_DATABASE_NAME}"
    return urlunparse((scheme, parsed.netloc, path, parsed.params, new_query, parsed.fragment))


async_database_url = normalize_database_url(settings.database_url)

_engine_kwargs: dict = {"echo": settings.env == "development", "pool_pre_ping": True}
if async_database_url.startswith("postgresql+asyncpg"):
    _engine_kwargs.update(pool_size=5, max_overflow=10)
    if settings.database_ssl:
        _engine_kwargs["connect_args"] = {"ssl": True}

engine = create_async_engine(async_database_url, **_engine_kwargs)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def bounded(awaitable: Awaitable[T]) -> T:
    """Await a store call under the configured timeout.

    Timeouts and driver failures become a retryable StoreError. IntegrityError is
    passed through so callers can map constraint violations to domain errors.
    """
    try:
        async with asyncio.timeout(settings.store_timeout_seconds):
            return await awaitable
    except TimeoutError as e:
        raise StoreError("The database did not respond in time, please retry") from e
    except IntegrityError:
        raise
    except SQLAlchemyError as e:
        raise StoreError(f"Database error: {type(e).__name__}") from e


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        try:
            yield session
            await bounded(session.commit())
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create tables if using create_all; prefer Alembic in production."""
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
