"""
Vault Password Hasher — salted PBKDF2-HMAC-SHA512 password records.

Record format: ``hex(salt 32B) ":" hex(hash 64B)``

Records are compared, never decrypted, and replaced wholesale on password
change. Password complexity is the caller's policy, not enforced here.

Security Note:
    Never log or return the raw password.
"""
import os
import logging
from dataclasses import dataclass
from typing import Union

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import ConfigurationError, HashMismatch
from .config import KDF_ITERATIONS

logger = logging.getLogger("message_vault.vault")

SALT_SIZE = 32
HASH_SIZE = 64


@dataclass(frozen=True)
class PasswordRecord:
    """Stored password hash and its salt."""
    salt: bytes
    hash: bytes

    def encode(self) -> str:
        return f"{self.salt.hex()}:{self.hash.hex()}"

    def __str__(self) -> str:
        return self.encode()

    @classmethod
    def parse(cls, data: str) -> "PasswordRecord":
        """Parse ``hex(salt):hex(hash)``.

        Raises:
            ValueError: If the record is not in the expected format.
        """
        parts = data.split(":")
        if len(parts) != 2:
            raise ValueError("Password record must be 'salt:hash'")
        salt, digest = (bytes.fromhex(p) for p in parts)
        if len(salt) != SALT_SIZE or len(digest) != HASH_SIZE:
            raise ValueError("Password record has unexpected component sizes")
        return cls(salt, digest)


class PasswordHasher:
    """Hashes and verifies passwords.

    Args:
        iterations: PBKDF2 iteration count; must match the count used when
            the stored records were produced.
    """

    def __init__(self, iterations: int = KDF_ITERATIONS):
        if iterations < 1:
            raise ConfigurationError("Password iterations must be positive")
        self._iterations = iterations

    def _kdf(self, salt: bytes) -> PBKDF2HMAC:
        return PBKDF2HMAC(
            algorithm=hashes.SHA512(),
            length=HASH_SIZE,
            salt=salt,
            iterations=self._iterations,
        )

    def hash(self, password: str) -> PasswordRecord:
        """Hash ``password`` with a fresh random salt."""
        salt = os.urandom(SALT_SIZE)
        return PasswordRecord(salt, self._kdf(salt).derive(password.encode("utf-8")))

    def verify(self, password: str, record: Union[PasswordRecord, str]) -> bool:
        """Recompute the hash with the stored salt and compare in constant time.

        Args:
            password: Candidate password.
            record: PasswordRecord or its encoded ``salt:hash`` form.

        Returns:
            True if the password matches; False otherwise, including for
            malformed records.
        """
        if not isinstance(record, PasswordRecord):
            try:
                record = PasswordRecord.parse(record)
            except (TypeError, ValueError, AttributeError):
                logger.warning("Rejected malformed password record")
                return False
        try:
            self._kdf(record.salt).verify(password.encode("utf-8"), record.hash)
        except InvalidKey:
            return False
        return True

    def require(self, password: str, record: Union[PasswordRecord, str]) -> None:
        """Like ``verify`` but raises HashMismatch on failure."""
        if not self.verify(password, record):
            raise HashMismatch()
