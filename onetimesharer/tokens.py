"""Retrieval token generation."""
import string
import secrets

TOKEN_LENGTH = 32
TOKEN_ALPHABET = string.ascii_letters + string.digits


def random_token(length: int = TOKEN_LENGTH) -> str:
    """Return an unguessable alphanumeric token.

    Characters are drawn from the ``secrets`` CSPRNG, never from the
    ``random`` module.

    Args:
        length: Number of characters (default 32).

    Returns:
        Token string of exactly ``length`` characters.

    Raises:
        ValueError: If length is not positive.
    """
    if length < 1:
        raise ValueError(f"Token length must be positive, got {length}")
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))
