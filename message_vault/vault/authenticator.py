"""
Vault HMAC Authenticator — message integrity keyed by the master secret.

    key = SHA-256(master secret)
    tag = hex( HMAC-SHA512(key, message) )
"""
import hmac
import hashlib
from typing import Union

from ..exceptions import HashMismatch
from .config import MasterSecret
from .utils import to_bytes


class HmacAuthenticator:
    """Signs and verifies messages with HMAC-SHA512."""

    def __init__(self, master_secret):
        if not isinstance(master_secret, MasterSecret):
            master_secret = MasterSecret(master_secret)
        self._key = hashlib.sha256(bytes(master_secret)).digest()

    @staticmethod
    def digest(key: Union[str, bytes], message: Union[str, bytes]) -> bytes:
        """Raw HMAC-SHA512 of ``message`` under ``key``."""
        return hmac.new(to_bytes(key), to_bytes(message), hashlib.sha512).digest()

    def sign(self, message: Union[str, bytes]) -> str:
        """Return the hex HMAC tag of ``message``."""
        return self.digest(self._key, message).hex()

    def verify(self, message: Union[str, bytes], tag: str) -> bool:
        """Check ``tag`` against ``message`` in constant time.

        Malformed tags (wrong length, not hex) simply fail verification.
        """
        try:
            given = bytes.fromhex(tag)
        except (TypeError, ValueError):
            given = b""
        expected = self.digest(self._key, message)
        return hmac.compare_digest(given, expected)

    def require(self, message: Union[str, bytes], tag: str) -> None:
        """Like ``verify`` but raises HashMismatch on failure."""
        if not self.verify(message, tag):
            raise HashMismatch()
