"""OneTimeSharer error types.

Every error crossing the store boundary carries its kind, so callers can
choose a status code and user message. Messages never include plaintext
secrets, retrieval keys or cipher material.
"""


class OneTimeSharerError(Exception):
    """Base error for OneTimeSharer."""


class ConfigurationError(OneTimeSharerError):
    """Raised on invalid startup configuration (key length, backend, paths)."""


class CryptoError(OneTimeSharerError):
    """Raised when encryption or decryption fails."""


class NotFoundError(OneTimeSharerError):
    """Raised when no live secret exists for a key."""


class StorageError(OneTimeSharerError):
    """Raised when the backend cannot read or persist the dataset."""
