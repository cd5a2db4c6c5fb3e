"""
Cipher — Encryption at rest for stored secrets and their lookup keys.

Two layers derived from one cipher key:
- Value layer: HKDF(cipher_key, "ots-value") → AEAD → [nonce 12B][payload + tag 16B]
- Lookup layer: HKDF(cipher_key, "ots-lookup") → AES-SIV (deterministic)

The lookup layer must be deterministic: a retrieval token is encrypted again
on every read to find its record, so equal tokens have to produce equal
ciphertexts. Values use a random nonce per call.

Security Note:
    Never log plaintext, ciphertext or key material.
"""
import os
import logging
from typing import Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import (
    AESGCM,
    AESSIV,
    ChaCha20Poly1305,
)

from .exceptions import ConfigurationError, CryptoError

logger = logging.getLogger("onetimesharer.crypto")

NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16
KEY_LENGTH = 32  # AES-256
SIV_KEY_LENGTH = 64  # AES-256-SIV uses two 256-bit halves

CIPHER_BACKENDS = {
    "aesgcm": AESGCM,
    "chacha20": ChaCha20Poly1305,
}


def derive_key(seed: bytes, context: str, length: int = KEY_LENGTH) -> bytes:
    """Derive a sub-key using HKDF-SHA256.

    Args:
        seed: Input key material (the cipher key).
        context: Context string for domain separation (e.g. "ots-value").
        length: Derived key length in bytes.

    Returns:
        Derived key bytes.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=length,
        salt=None,  # deterministic derivation: same cipher key, same sub-keys
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


class Cipher:
    """Symmetric encrypt/decrypt capability keyed once at process start.

    Args:
        key: Cipher key, exactly 32 bytes (``str`` keys are UTF-8 encoded).
        backend: AEAD used for values, ``"aesgcm"`` or ``"chacha20"``.

    Raises:
        ConfigurationError: On a key of the wrong length or unknown backend.
    """

    def __init__(self, key: Union[str, bytes], backend: str = "aesgcm"):
        if isinstance(key, str):
            key = key.encode("utf-8")
        if len(key) != KEY_LENGTH:
            raise ConfigurationError(
                f"Cipher key must be exactly {KEY_LENGTH} bytes long, "
                f"got {len(key)}"
            )
        try:
            cipher_cls = CIPHER_BACKENDS[backend]
        except KeyError:
            raise ConfigurationError(
                f"Unsupported cipher backend: {backend}"
            ) from None
        self._backend = backend
        self._value_cipher = cipher_cls(derive_key(key, "ots-value"))
        self._lookup_cipher = AESSIV(
            derive_key(key, "ots-lookup", SIV_KEY_LENGTH)
        )
        logger.debug("Cipher ready (backend=%s)", backend)

    @property
    def backend(self) -> str:
        return self._backend

    # ------------------------------------------------------------------
    # Value layer (randomized)
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt a value with a fresh random nonce.

        Format: [nonce 12B][encrypted_payload + tag 16B]
        """
        nonce = os.urandom(NONCE_SIZE)
        try:
            ct = self._value_cipher.encrypt(nonce, plaintext, None)
        except (ValueError, TypeError, OverflowError) as err:
            raise CryptoError("Failed to encrypt value") from err
        return nonce + ct

    def decrypt(self, ciphertext: bytes) -> bytes:
        """Decrypt a value produced by :meth:`encrypt`.

        Raises:
            CryptoError: If the ciphertext is truncated, tampered with or
                was produced under another key.
        """
        _min = NONCE_SIZE + TAG_SIZE
        if len(ciphertext) < _min:
            raise CryptoError("Malformed ciphertext")
        nonce = ciphertext[:NONCE_SIZE]
        ct = ciphertext[NONCE_SIZE:]
        try:
            return self._value_cipher.decrypt(nonce, ct, None)
        except (InvalidTag, ValueError, TypeError) as err:
            raise CryptoError("Failed to decrypt value") from err

    # ------------------------------------------------------------------
    # Lookup layer (deterministic)
    # ------------------------------------------------------------------

    def encrypt_lookup(self, plaintext: bytes) -> bytes:
        """Deterministically encrypt a retrieval token.

        Equal inputs yield equal outputs, so the result can be used as the
        lookup identity of a record.
        """
        if not plaintext:
            # AES-SIV refuses empty input
            raise CryptoError("Cannot encrypt an empty lookup key")
        try:
            return self._lookup_cipher.encrypt(plaintext, None)
        except (ValueError, TypeError, OverflowError) as err:
            raise CryptoError("Failed to encrypt lookup key") from err
