"""
Tests for application wiring against a file-backed database
"""

import pytest

from codeauth.core.config import Settings, get_settings
from codeauth.core.exceptions.base import AppException
from codeauth.core.exceptions.infrastructure import ConfigurationError
from codeauth.core.security import TokenCipher, format_key
from codeauth.main import init_app


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        encryption_key=format_key(TokenCipher.generate_key()),
        unique_key=format_key(TokenCipher.generate_key()),
        db_path=str(tmp_path / "nested" / "sessions.db"),
        log_dir=str(tmp_path / "logs"),
        session_duration_seconds=900,
    )


@pytest.mark.asyncio
async def test_init_app_creates_database_and_wires_engine(settings, tmp_path):
    app = await init_app(settings, configure_logging=False)
    try:
        assert (tmp_path / "nested").is_dir()
        assert app.cipher.supports_deterministic

        token = app.cipher.encrypt("alice", deterministic=True)
        await app.sessions.create_user(token)
        session = await app.sessions.create_session(token, "keyA")

        assert session.session_duration == 900
        assert app.cipher.decrypt_text(session.user_token) == "alice"
    finally:
        await app.close()


@pytest.mark.asyncio
async def test_data_survives_restart(settings):
    app = await init_app(settings, configure_logging=False)
    try:
        await app.sessions.create_user("token-1")
        session = await app.sessions.create_session("token-1", "keyA")
    finally:
        await app.close()

    app = await init_app(settings, configure_logging=False)
    try:
        restored = await app.sessions.get_session(session.session_id)
        assert restored == session
    finally:
        await app.close()


@pytest.fixture
def bad_environment(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ENCRYPTION_KEY", "base64:tooshort")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.mark.asyncio
@pytest.mark.usefixtures("bad_environment")
async def test_malformed_key_raises_configuration_error():
    with pytest.raises(ConfigurationError) as exc_info:
        await init_app(configure_logging=False)

    assert isinstance(exc_info.value, AppException)
    assert "encryption_key" in exc_info.value.message
    assert "tooshort" not in exc_info.value.message


@pytest.mark.usefixtures("bad_environment")
def test_cleanup_script_exits_with_error_on_bad_config():
    from scripts.cleanup_expired_sessions import main

    assert main() == 1
