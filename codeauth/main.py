from dataclasses import dataclass

from loguru import logger
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncEngine

from codeauth.core.config import Settings, get_settings
from codeauth.core.exceptions.infrastructure import ConfigurationError
from codeauth.core.logger import setup_logger
from codeauth.core.security import TokenCipher
from codeauth.models.db import build_engine_from_settings, create_session_factory, init_models
from codeauth.services.session_engine import SessionEngine


@dataclass
class AppContext:
    """Everything a controller layer needs, built once at startup and passed around."""

    settings: Settings
    db_engine: AsyncEngine
    sessions: SessionEngine
    cipher: TokenCipher

    async def close(self) -> None:
        await self.db_engine.dispose()


def _load_settings() -> Settings:
    try:
        return get_settings()
    except ValidationError as e:
        # Field names only; the rejected values may be key material
        fields = ", ".join(".".join(str(part) for part in err["loc"]) for err in e.errors())
        raise ConfigurationError(f"Invalid configuration: {fields}") from e


async def init_app(settings: Settings | None = None, *, configure_logging: bool = True) -> AppContext:
    """Validate configuration, ensure tables exist and wire the engine and cipher.

    Raises:
        ConfigurationError: If settings are missing or malformed.
    """
    settings = settings or _load_settings()
    if configure_logging:
        setup_logger(debug=settings.debug, log_dir=settings.log_dir)

    cipher = TokenCipher.from_settings(settings)
    db_engine = build_engine_from_settings(settings)
    await init_models(db_engine)

    sessions = SessionEngine(
        create_session_factory(db_engine),
        default_duration=settings.session_duration_seconds,
        default_code_validity=settings.code_validity_seconds,
    )

    logger.info(
        f"Session store ready at {settings.db_path} "
        f"(deterministic tokens {'enabled' if cipher.supports_deterministic else 'disabled'})"
    )
    return AppContext(settings=settings, db_engine=db_engine, sessions=sessions, cipher=cipher)
