"""Storage backends for one-time secrets.

The backend is chosen once from configuration; there is no switching
after construction.
"""
import logging

from ..config import StoreConfig
from ..crypto import Cipher
from .abstract import AbstractStore
from .file import FileStore
from .sqlite import SqliteStore

logger = logging.getLogger("onetimesharer.storage")

__all__ = [
    "AbstractStore",
    "FileStore",
    "SqliteStore",
    "create_store",
    "open_store",
]


def create_store(config: StoreConfig) -> AbstractStore:
    """Build the cipher and the configured backend (not yet opened)."""
    cipher = Cipher(config.cipher_key, backend=config.cipher_backend)
    if config.storage == "json":
        return FileStore(config.file_path, cipher)
    return SqliteStore(config.database_path, cipher)


async def open_store(config: StoreConfig) -> AbstractStore:
    """Build and open the configured backend.

    Raises:
        ConfigurationError: On unusable key or backend path.
        StorageError: If the existing dataset cannot be loaded.
    """
    store = create_store(config)
    logger.info("Selected %s storage at %s", store.name, config.storage_path)
    await store.open()
    return store
