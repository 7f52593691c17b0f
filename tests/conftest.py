from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio

from codeauth.core.security import TokenCipher, format_key
from codeauth.models.db import create_engine, create_session_factory, init_models
from codeauth.services.session_engine import SessionEngine


class FakeClock:
    """Controllable UTC clock injected into the engine."""

    def __init__(self, start: datetime | None = None):
        self.now = start or datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def key():
    return TokenCipher.generate_key()


@pytest.fixture
def key_string(key):
    return format_key(key)


@pytest.fixture
def cipher(key):
    return TokenCipher(key, "test-context")


@pytest_asyncio.fixture
async def db_engine():
    engine = create_engine("sqlite+aiosqlite://")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def engine(db_engine, clock):
    return SessionEngine(create_session_factory(db_engine), clock=clock)


@pytest_asyncio.fixture
async def user(engine):
    return await engine.create_user("user-token-1")


@pytest_asyncio.fixture
async def validated_session(engine, user):
    session = await engine.create_session(user.token, "keyA")
    assert await engine.validate_session(session.session_id)
    return await engine.get_session(session.session_id)
