import base64
import binascii
import os
import re
import secrets
from typing import TYPE_CHECKING

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, hmac
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from codeauth.core.constants import (
    CODE_LENGTH,
    DEFAULT_API_KEY_LENGTH,
    KEY_BYTES,
    KEY_PREFIX,
    MIN_API_KEY_LENGTH,
    SESSION_ID_ALPHABET,
    SESSION_ID_LENGTH,
)
from codeauth.core.exceptions.infrastructure import ConfigurationError

if TYPE_CHECKING:
    from codeauth.core.config import Settings

NONCE_BYTES = 12
TAG_BYTES = 16

_BASE64URL = re.compile(r"[A-Za-z0-9_-]*")
_API_KEY_FORMAT = re.compile(r"[A-Za-z0-9_-]+")


def _b64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _b64url_decode(data: str) -> bytes | None:
    if not _BASE64URL.fullmatch(data) or len(data) % 4 == 1:
        return None
    try:
        raw = base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))
    except (binascii.Error, ValueError):
        return None
    # Reject non-canonical encodings (stray bits in the final character)
    if _b64url_encode(raw) != data:
        return None
    return raw


class TokenCipher:
    """Authenticated encryption of upstream identities into opaque, URL-safe tokens.

    Tokens are ``base64url(nonce || ciphertext || tag)`` without padding, sealed
    with ChaCha20-Poly1305. The ``context`` string is bound as associated data,
    so a token minted for one context never opens under another, even with the
    same key.

    With a ``unique_key``, ``encrypt(..., deterministic=True)`` derives the nonce
    from an HMAC of the identity, so the same identity always maps to the same
    token. Without one, deterministic requests quietly use a random nonce.

    Usage:
        cipher = TokenCipher(TokenCipher.generate_key(), "my-app")
        token = cipher.encrypt("external-user-42")
        identity = cipher.decrypt_text(token)  # str | None
    """

    def __init__(self, key: bytes, context: str = "", unique_key: bytes | None = None):
        if not isinstance(key, bytes) or len(key) != KEY_BYTES:
            raise ConfigurationError(f"Key must be exactly {KEY_BYTES} bytes")
        if unique_key is not None and not unique_key:
            raise ConfigurationError("Unique key must not be empty")

        self._aead = ChaCha20Poly1305(key)
        self._aad = context.encode("utf-8")
        self._unique_key = unique_key

    @classmethod
    def from_settings(cls, settings: "Settings") -> "TokenCipher":
        """Build a cipher from application settings (key, unique key, context)."""
        return cls(
            settings.encryption_key_bytes,
            settings.encryption_context,
            settings.unique_key_bytes,
        )

    @staticmethod
    def generate_key() -> bytes:
        """Generate fresh random key material. Store it securely and reuse it."""
        return os.urandom(KEY_BYTES)

    @property
    def supports_deterministic(self) -> bool:
        return self._unique_key is not None

    def _deterministic_nonce(self, identity: bytes) -> bytes:
        h = hmac.HMAC(self._unique_key, hashes.SHA256())
        h.update(len(self._aad).to_bytes(4, "big"))
        h.update(self._aad)
        h.update(identity)
        return h.finalize()[:NONCE_BYTES]

    def encrypt(self, identity: bytes | str, deterministic: bool = False) -> str:
        """Encrypt an identity into a URL-safe token."""
        if isinstance(identity, str):
            identity = identity.encode("utf-8")

        if deterministic and self._unique_key is not None:
            nonce = self._deterministic_nonce(identity)
        else:
            nonce = os.urandom(NONCE_BYTES)

        sealed = self._aead.encrypt(nonce, identity, self._aad)
        return _b64url_encode(nonce + sealed)

    def decrypt(self, token: str) -> bytes | None:
        """Recover the identity from a token, or None if the token does not open.

        Malformed encoding, truncation, tampering, a different key and a
        different context all collapse into the same None result.
        """
        if not isinstance(token, str):
            return None
        raw = _b64url_decode(token)
        if raw is None or len(raw) < NONCE_BYTES + TAG_BYTES:
            return None

        nonce, sealed = raw[:NONCE_BYTES], raw[NONCE_BYTES:]
        try:
            return self._aead.decrypt(nonce, sealed, self._aad)
        except InvalidTag:
            return None

    def decrypt_text(self, token: str) -> str | None:
        """Like decrypt(), for identities that are UTF-8 strings."""
        identity = self.decrypt(token)
        if identity is None:
            return None
        try:
            return identity.decode("utf-8")
        except UnicodeDecodeError:
            return None


def load_key(value: str) -> bytes:
    """Parse a ``base64:<...>`` key string into its 32 raw bytes."""
    if not value or not value.startswith(KEY_PREFIX):
        raise ConfigurationError(f"Key must start with '{KEY_PREFIX}'")
    try:
        key = base64.b64decode(value[len(KEY_PREFIX) :], validate=True)
    except (binascii.Error, ValueError) as e:
        raise ConfigurationError("Key is not valid base64") from e
    if len(key) != KEY_BYTES:
        raise ConfigurationError(f"Key must decode to exactly {KEY_BYTES} bytes")
    return key


def format_key(key: bytes) -> str:
    """Render raw key bytes in the ``base64:`` form used by the environment."""
    return KEY_PREFIX + base64.b64encode(key).decode("ascii")


def generate_code() -> str:
    """Generate a uniform 6-digit one-time code, leading zeros included."""
    return f"{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}"


def generate_session_id() -> str:
    """Generate a 32-character session id (160 bits of entropy)."""
    return "".join(secrets.choice(SESSION_ID_ALPHABET) for _ in range(SESSION_ID_LENGTH))


def generate_api_key(length: int = DEFAULT_API_KEY_LENGTH) -> str:
    """Generate a URL-safe API key of exactly ``length`` characters."""
    if length < MIN_API_KEY_LENGTH:
        raise ValueError(f"Key length must be at least {MIN_API_KEY_LENGTH} characters")
    return secrets.token_urlsafe(length)[:length]


def is_valid_api_key_format(key: str) -> bool:
    return bool(_API_KEY_FORMAT.fullmatch(key))
