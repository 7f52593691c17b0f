from functools import lru_cache
from pathlib import Path

from pydantic import Field, computed_field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from codeauth.core.constants import DEFAULT_CODE_VALIDITY, DEFAULT_SESSION_DURATION
from codeauth.core.exceptions.infrastructure import ConfigurationError
from codeauth.core.security import load_key


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Security
    encryption_key: str = Field(description="AEAD key for user tokens, formatted base64:<44 chars>")
    unique_key: str | None = Field(
        default=None,
        description="Optional key for deterministic tokens, same format as encryption_key",
    )
    encryption_context: str = Field(
        default="codeauth",
        description="Associated data binding tokens to this deployment",
    )

    # Session
    session_duration_seconds: int = Field(default=DEFAULT_SESSION_DURATION, gt=0)
    code_validity_seconds: int = Field(default=DEFAULT_CODE_VALIDITY, gt=0)

    # Database
    db_path: str = Field(default="./data/sessions.db", description="Path to SQLite database file")

    # App
    log_dir: str = Field(default="logs")
    debug: bool = Field(default=False)

    @field_validator("encryption_key", "unique_key")
    @classmethod
    def validate_key_format(cls, v: str | None) -> str | None:
        if v is None:
            return v
        try:
            load_key(v)
        except ConfigurationError as e:
            raise ValueError(e.message) from e
        return v

    @computed_field
    @property
    def db_url(self) -> str:
        return f"sqlite+aiosqlite:///{self.db_path}"

    @computed_field
    @property
    def db_directory(self) -> Path:
        return Path(self.db_path).parent

    @property
    def encryption_key_bytes(self) -> bytes:
        return load_key(self.encryption_key)

    @property
    def unique_key_bytes(self) -> bytes | None:
        return load_key(self.unique_key) if self.unique_key else None


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore
