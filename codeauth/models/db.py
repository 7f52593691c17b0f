from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.asyncio import create_async_engine as _create_async_engine
from sqlalchemy.pool import StaticPool

from codeauth.core.config import Settings
from codeauth.models.base import Base
from codeauth.models.session import Session  # noqa: F401
from codeauth.models.user import User  # noqa: F401


def _enable_sqlite_pragmas(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.execute("PRAGMA journal_mode = WAL")
    cursor.close()


def create_engine(url: str, *, echo: bool = False) -> AsyncEngine:
    """Create an async engine. SQLite connections get foreign keys and WAL enabled."""
    if url.startswith("sqlite") and url.rstrip("/").endswith(("sqlite+aiosqlite:", ":memory:")):
        # In-memory databases live in a single shared connection
        engine = _create_async_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = _create_async_engine(url, echo=echo, pool_pre_ping=True)

    if engine.dialect.name == "sqlite":
        event.listen(engine.sync_engine, "connect", _enable_sqlite_pragmas)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


def build_engine_from_settings(settings: Settings) -> AsyncEngine:
    settings.db_directory.mkdir(parents=True, exist_ok=True)
    return create_engine(settings.db_url, echo=settings.debug)


async def init_models(engine: AsyncEngine) -> None:
    """Create the users and sessions tables if they do not exist."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

