"""
AbstractStore — the one-time secret store contract.

Provides the public API shared by every backend:
- ``save(secret)`` — encrypt and persist a secret, return its retrieval key
- ``read(key)`` — atomically consume a secret and return its plaintext
- ``validate(key)`` — advisory existence check, never consumes
- ``close()`` — release backend resources

Backends only implement the persistence primitives (``_insert``, ``_pop``,
``_contains``); token generation and encryption live here so both backends
behave identically.

Note:
    ``validate`` followed by ``read`` is not atomic. Another caller may
    consume the secret in between; only ``read`` enforces at-most-once
    delivery.

Security Note:
    Never log retrieval keys, plaintext or ciphertext values.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from ..codec import decode_ciphertext, encode_ciphertext
from ..crypto import Cipher
from ..exceptions import CryptoError, NotFoundError, StorageError
from ..tokens import random_token, TOKEN_LENGTH

logger = logging.getLogger("onetimesharer.storage")

# A lookup collision between random 32-char tokens is practically
# impossible; the bound only stops a broken generator from looping forever.
MAX_TOKEN_ATTEMPTS = 5


class AbstractStore(ABC):
    """Encrypted one-time secret store.

    Args:
        cipher: Cipher used for both retrieval keys and secret values.
        token_length: Length of generated retrieval keys.
    """

    name: str = "abstract"

    def __init__(self, cipher: Cipher, token_length: int = TOKEN_LENGTH):
        self._cipher = cipher
        self._token_length = token_length
        self._opened = False
        self._closed = False

    def __repr__(self) -> str:
        return f"<{type(self).__name__} opened={self._opened} closed={self._closed}>"

    async def __aenter__(self) -> "AbstractStore":
        await self.open()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    async def _open(self) -> None:
        """Create or verify the backing dataset."""

    @abstractmethod
    async def _close(self) -> None:
        """Release backend resources."""

    @abstractmethod
    async def _insert(self, lookup: str, value: str) -> bool:
        """Durably persist a record.

        Returns:
            False if a record with this lookup key already exists; the
            existing record must be left untouched.
        """

    @abstractmethod
    async def _pop(
        self, lookup: str, decode: Callable[[str], str]
    ) -> Optional[str]:
        """Decode a record's value, then atomically remove the record.

        ``decode`` runs on the stored value ciphertext inside the same atomic
        unit as the removal. If it raises, the record must be left in place.
        The removal must be durable before returning. Returns the decoded
        value, or None when no record exists.
        """

    @abstractmethod
    async def _contains(self, lookup: str) -> bool:
        """Report whether a record exists, without side effects."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._closed:
            raise StorageError(f"{self.name} store is closed")
        if not self._opened:
            raise StorageError(f"{self.name} store is not open")

    def _lookup_for(self, key: str) -> Optional[str]:
        """Return the encrypted lookup identity of a retrieval key.

        Returns None for keys that cannot name a record (empty or not
        encodable as UTF-8).
        """
        if not key:
            return None
        try:
            raw = key.encode("utf-8")
        except UnicodeEncodeError:
            return None
        return encode_ciphertext(self._cipher.encrypt_lookup(raw))

    def _decode_value(self, value: str) -> str:
        """Decrypt a stored value ciphertext back to the secret text."""
        plaintext = self._cipher.decrypt(decode_ciphertext(value))
        try:
            return plaintext.decode("utf-8")
        except UnicodeDecodeError as err:
            raise CryptoError("Failed to decode value") from err

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def open(self) -> None:
        """Initialize the backend. Calling it again is a no-op."""
        if self._closed:
            raise StorageError(f"{self.name} store is closed")
        if self._opened:
            return
        await self._open()
        self._opened = True
        logger.info("Opened %s store", self.name)

    async def save(self, secret: str) -> str:
        """Encrypt and persist a secret.

        Args:
            secret: Non-empty plaintext to share.

        Returns:
            The plaintext retrieval key.

        Raises:
            ValueError: If secret is empty or not encodable as UTF-8.
            StorageError: If the record could not be persisted.
        """
        if not secret:
            raise ValueError("Secret cannot be empty")
        try:
            raw = secret.encode("utf-8")
        except UnicodeEncodeError:
            raise ValueError("Secret is not valid UTF-8 text") from None
        self._ensure_open()
        value = encode_ciphertext(self._cipher.encrypt(raw))
        for _ in range(MAX_TOKEN_ATTEMPTS):
            key = random_token(self._token_length)
            if await self._insert(self._lookup_for(key), value):
                logger.debug("Saved secret in %s store", self.name)
                return key
            logger.warning("Retrieval key collision in %s store, regenerating", self.name)
        raise StorageError(
            f"Could not generate a unique retrieval key after {MAX_TOKEN_ATTEMPTS} attempts"
        )

    async def read(self, key: str) -> str:
        """Consume a secret and return its plaintext.

        The value is decrypted first and the record is deleted in the same
        atomic unit, before the value is returned; a second read of the
        same key raises NotFoundError. A value that fails to decrypt leaves
        the record in place.

        Args:
            key: Retrieval key returned by :meth:`save`.

        Raises:
            NotFoundError: If no live secret exists for the key.
            CryptoError: If the stored value cannot be decrypted.
            StorageError: On I/O or transaction failure.
        """
        self._ensure_open()
        lookup = self._lookup_for(key)
        secret = None
        if lookup is not None:
            secret = await self._pop(lookup, self._decode_value)
        if secret is None:
            logger.debug("Read of missing secret in %s store", self.name)
            raise NotFoundError("Secret not found")
        logger.debug("Consumed secret in %s store", self.name)
        return secret

    async def validate(self, key: str) -> bool:
        """Check whether a live secret exists for a key.

        Advisory only: the secret may be consumed by another caller before
        a subsequent :meth:`read`.
        """
        self._ensure_open()
        lookup = self._lookup_for(key)
        if lookup is None:
            return False
        return await self._contains(lookup)

    async def close(self) -> None:
        """Release backend resources. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        if self._opened:
            await self._close()
            logger.info("Closed %s store", self.name)
