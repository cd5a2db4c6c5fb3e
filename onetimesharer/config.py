"""
Store Configuration — Cipher key loading and validated settings.

Reads settings from environment variables:
    OTS_ENCRYPTION_KEY = <32-character key>
    OTS_STORAGE = sqlite | json
    OTS_JSON_PATH, OTS_SQLITE_PATH = backend locations
    OTS_CIPHER_BACKEND = aesgcm | chacha20
    OTS_PORT, OTS_PAYLOAD_LIMIT = HTTP layer settings

Security Note:
    Never log key material. Only log backend names and paths.
"""
import os
import logging
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError, field_validator

from .crypto import KEY_LENGTH, CIPHER_BACKENDS
from .exceptions import ConfigurationError
from .tokens import random_token

logger = logging.getLogger("onetimesharer.config")

STORAGE_BACKENDS = ("sqlite", "json")

DEFAULT_JSON_PATH = "secrets.json"
DEFAULT_SQLITE_PATH = "secrets.db"
DEFAULT_PORT = 8000
DEFAULT_PAYLOAD_LIMIT = 5000


def generate_cipher_key() -> str:
    """Generate a random cipher key of the required length.

    This is a utility for operators to generate new keys.

    Returns:
        Alphanumeric key string of ``KEY_LENGTH`` characters.
    """
    return random_token(KEY_LENGTH)


def load_cipher_key() -> bytes:
    """Load the cipher key from OTS_ENCRYPTION_KEY.

    When the variable is unset an ephemeral key is generated; secrets saved
    under it cannot be read after a restart.

    Returns:
        Raw key bytes.

    Raises:
        ConfigurationError: If the provided key has the wrong length.
    """
    raw = os.environ.get("OTS_ENCRYPTION_KEY", "")
    if not raw:
        logger.warning(
            "OTS_ENCRYPTION_KEY is not set; using an ephemeral key. "
            "Stored secrets will be unreadable after a restart."
        )
        return generate_cipher_key().encode("utf-8")
    key = raw.encode("utf-8")
    if len(key) != KEY_LENGTH:
        raise ConfigurationError(
            f"OTS_ENCRYPTION_KEY must be {KEY_LENGTH} characters long, "
            f"is {len(key)}"
        )
    return key


class StoreConfig(BaseModel):
    """Validated store configuration."""

    cipher_key: bytes = Field(repr=False)
    storage: str = Field(default="sqlite")
    file_path: Path = Field(default=Path(DEFAULT_JSON_PATH))
    database_path: Path = Field(default=Path(DEFAULT_SQLITE_PATH))
    cipher_backend: str = Field(default="aesgcm")
    port: int = Field(default=DEFAULT_PORT, ge=1, le=65535)
    payload_limit: int = Field(default=DEFAULT_PAYLOAD_LIMIT, ge=1)

    @field_validator("cipher_key")
    @classmethod
    def validate_key_length(cls, v: bytes) -> bytes:
        """Cipher key must have the exact required length."""
        if len(v) != KEY_LENGTH:
            raise ValueError(
                f"cipher_key must be exactly {KEY_LENGTH} bytes, got {len(v)}"
            )
        return v

    @field_validator("storage")
    @classmethod
    def validate_storage(cls, v: str) -> str:
        """Validate storage backend is supported."""
        v = v.lower()
        if v not in STORAGE_BACKENDS:
            raise ValueError(f"Unsupported storage backend: {v}")
        return v

    @field_validator("cipher_backend")
    @classmethod
    def validate_cipher(cls, v: str) -> str:
        """Validate cipher backend is supported."""
        v = v.lower()
        if v not in CIPHER_BACKENDS:
            raise ValueError(f"Unsupported cipher backend: {v}")
        return v

    @property
    def storage_path(self) -> Path:
        """Location of the selected backend's dataset."""
        if self.storage == "json":
            return self.file_path
        return self.database_path

    @classmethod
    def from_env(cls) -> "StoreConfig":
        """Create StoreConfig by loading values from environment.

        Returns:
            Populated StoreConfig instance.

        Raises:
            ConfigurationError: If any value is missing or invalid.
        """
        cipher_key = load_cipher_key()
        values = {
            "cipher_key": cipher_key,
            "storage": os.environ.get("OTS_STORAGE", "sqlite"),
            "file_path": os.environ.get("OTS_JSON_PATH", DEFAULT_JSON_PATH),
            "database_path": os.environ.get(
                "OTS_SQLITE_PATH", DEFAULT_SQLITE_PATH
            ),
            "cipher_backend": os.environ.get("OTS_CIPHER_BACKEND", "aesgcm"),
            "port": os.environ.get("OTS_PORT", DEFAULT_PORT),
            "payload_limit": os.environ.get(
                "OTS_PAYLOAD_LIMIT", DEFAULT_PAYLOAD_LIMIT
            ),
        }
        try:
            return cls(**values)
        except ValidationError as err:
            # pydantic echoes input values; keep the key out of the message
            fields = ", ".join(
                str(e["loc"][0]) for e in err.errors() if e.get("loc")
            )
            raise ConfigurationError(
                f"Invalid store configuration: {fields}"
            ) from None
