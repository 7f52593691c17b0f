import sys
from logging.config import fileConfig
from pathlib import Path

from alembic import context

sys.path.insert(0, str(Path(__file__).parent.parent))

from codeauth.core.config import get_settings
from codeauth.models.base import Base
from codeauth.models.db import build_engine_from_settings, create_engine
from codeauth.utils.async_helpers import run_async

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Importing codeauth.models.db registers the users and sessions tables
target_metadata = Base.metadata


def _explicit_url() -> str | None:
    """``alembic -x db_url=sqlite+aiosqlite:///path.db upgrade head`` skips loading settings."""
    return context.get_x_argument(as_dictionary=True).get("db_url")


def _configure(**kwargs) -> None:
    # SQLite cannot ALTER most constraints in place; batch mode rebuilds the table
    context.configure(target_metadata=target_metadata, render_as_batch=True, **kwargs)


def run_migrations_offline() -> None:
    url = _explicit_url() or get_settings().db_url
    _configure(url=url, literal_binds=True, dialect_opts={"paramstyle": "named"})
    with context.begin_transaction():
        context.run_migrations()


def _run_sync(connection) -> None:
    _configure(connection=connection)
    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    url = _explicit_url()
    engine = create_engine(url) if url else build_engine_from_settings(get_settings())
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_sync)
            await connection.commit()
    finally:
        await engine.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_async(run_migrations_online())
