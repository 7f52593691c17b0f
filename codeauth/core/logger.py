import re
import sys
from pathlib import Path

from loguru import logger

REDACTED = "***REDACTED***"

# Keys whose values must never reach a log sink verbatim
SENSITIVE_KEYS = re.compile(
    r"(token|secret|api_key|encryption_key|unique_key|code|session_id)",
    re.IGNORECASE,
)

_FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"
_CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def _redact(key: object, value: object) -> object:
    if isinstance(key, str) and SENSITIVE_KEYS.search(key):
        return REDACTED
    if isinstance(value, dict):
        return sanitize_dict(value)
    if isinstance(value, (list, tuple)):
        return [_redact(None, item) for item in value]
    return value


def sanitize_dict(data: dict) -> dict:
    """Copy of ``data`` with credential-like entries replaced, nested containers included."""
    return {k: _redact(k, v) for k, v in data.items()}


def mask(value: str | None, visible: int = 6) -> str:
    """Keep a short prefix of a session id or token so log lines stay correlatable."""
    if not value:
        return "<empty>"
    if len(value) <= visible:
        return "***"
    return f"{value[:visible]}***"


def setup_logger(debug: bool = False, log_dir: str = "logs") -> None:
    """Send logs to stderr and to a rotated ``codeauth.log`` under ``log_dir``."""
    level = "DEBUG" if debug else "INFO"
    logger.remove()

    logger.add(sys.stderr, level=level, format=_CONSOLE_FORMAT, colorize=True)
    logger.add(
        Path(log_dir) / "codeauth.log",
        level=level,
        format=_FILE_FORMAT,
        rotation="10 MB",
        retention="30 days",
        compression="gz",
        enqueue=True,
    )
