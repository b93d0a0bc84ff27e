"""
Vault utilities: strict Base64 helpers and random tokens.
"""
import base64
import binascii
import secrets
from typing import Union


def b64encode(data: bytes) -> str:
    """Standard Base64 with padding, as ASCII text."""
    return base64.b64encode(data).decode("ascii")


def b64decode(data: Union[str, bytes]) -> bytes:
    """Decode standard Base64, rejecting characters outside the alphabet.

    Raises:
        ValueError: If ``data`` is not valid Base64.
    """
    try:
        return base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError) as err:
        raise ValueError("invalid base64 data") from err


def to_bytes(data: Union[str, bytes, bytearray, memoryview]) -> bytes:
    """Return ``data`` as bytes, encoding text as UTF-8."""
    if isinstance(data, str):
        return data.encode("utf-8")
    if isinstance(data, (bytes, bytearray, memoryview)):
        return bytes(data)
    raise TypeError(f"expected str or bytes, got {type(data).__name__}")


def generate_secure_token(length: int = 64) -> str:
    """Generate a random hex token from ``length`` random bytes.

    Args:
        length: Number of random bytes (the token has twice as many chars).

    Returns:
        Lowercase hex string.
    """
    if length < 1:
        raise ValueError("token length must be positive")
    return secrets.token_hex(length)
