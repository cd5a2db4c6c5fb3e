"""
Secret Record Codec — storage representation of the encrypted dataset.

Ciphertexts are stored as URL-safe base64 text in both backends. The file
backend persists the whole dataset as one JSON object mapping
``key_ciphertext`` to ``value_ciphertext``.
"""
import base64
import binascii

import orjson

from .exceptions import CryptoError, StorageError


def encode_ciphertext(data: bytes) -> str:
    """Encode ciphertext bytes as URL-safe base64 text."""
    return base64.urlsafe_b64encode(data).decode("ascii")


def decode_ciphertext(text: str) -> bytes:
    """Decode text produced by :func:`encode_ciphertext`.

    Raises:
        CryptoError: If the text is not valid base64.
    """
    try:
        return base64.urlsafe_b64decode(text.encode("ascii"))
    except (binascii.Error, ValueError, UnicodeEncodeError) as err:
        raise CryptoError("Malformed ciphertext encoding") from err


def dumps_dataset(dataset: dict[str, str]) -> bytes:
    """Serialize the dataset to a JSON document."""
    return orjson.dumps(dataset)


def loads_dataset(data: bytes) -> dict[str, str]:
    """Parse a JSON document back into the dataset mapping.

    Args:
        data: Raw document bytes.

    Returns:
        Mapping of key_ciphertext to value_ciphertext.

    Raises:
        StorageError: If the document is not a JSON object whose keys and
            values are all strings.
    """
    try:
        parsed = orjson.loads(data)
    except orjson.JSONDecodeError as err:
        raise StorageError("Secret dataset is not valid JSON") from err
    if not isinstance(parsed, dict):
        raise StorageError("Secret dataset must be a JSON object")
    for value in parsed.values():
        if not isinstance(value, str):
            raise StorageError("Secret dataset values must be strings")
    return parsed
