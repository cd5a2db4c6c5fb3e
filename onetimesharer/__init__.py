"""OneTimeSharer — Secrets that can be retrieved exactly once.

Security Note (Threat Model):
    Retrieval keys and secrets are stored encrypted with a single
    process-wide cipher key. Anyone holding both the dataset and the
    cipher key can recover every live secret; the key must be supplied
    out of band (environment) and never stored next to the dataset.
"""

from .version import __version__
from .crypto import Cipher
from .config import StoreConfig, generate_cipher_key
from .exceptions import (
    OneTimeSharerError,
    ConfigurationError,
    CryptoError,
    NotFoundError,
    StorageError,
)
from .storages import AbstractStore, FileStore, SqliteStore, create_store, open_store

__all__ = [
    "__version__",
    "Cipher",
    "StoreConfig",
    "generate_cipher_key",
    "OneTimeSharerError",
    "ConfigurationError",
    "CryptoError",
    "NotFoundError",
    "StorageError",
    "AbstractStore",
    "FileStore",
    "SqliteStore",
    "create_store",
    "open_store",
]
