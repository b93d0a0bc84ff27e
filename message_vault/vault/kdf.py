"""
Vault Key Derivation — symmetric keys from the master secret and a salt.

    PBKDF2-HMAC-SHA512(MasterSecret, salt, 100 000 iterations) → 32 bytes

Keys are never persisted: the same (master secret, salt) pair always yields
the same key, so storing the salt next to the ciphertext is enough to
decrypt later, from any process holding the master secret.
"""

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from ..exceptions import ConfigurationError
from .config import MasterSecret, KDF_ITERATIONS

KEY_LENGTH = 32  # AES-256


def pbkdf2_sha512(secret: bytes, salt: bytes, iterations: int, length: int) -> bytes:
    """Run PBKDF2-HMAC-SHA512 once (PBKDF2HMAC instances are single-use)."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA512(),
        length=length,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret)


class KeyDerivation:
    """Derives 256-bit keys from a MasterSecret and a per-operation salt.

    Args:
        master_secret: Validated master secret (raw values are validated too).
        iterations: PBKDF2 iteration count. Envelopes can only be decrypted
            with the count they were produced with.

    Raises:
        ConfigurationError: If the master secret is missing or too short.
    """

    def __init__(self, master_secret, iterations: int = KDF_ITERATIONS):
        if master_secret is None:
            raise ConfigurationError("Master secret is required")
        if not isinstance(master_secret, MasterSecret):
            master_secret = MasterSecret(master_secret)
        if iterations < 1:
            raise ConfigurationError("KDF iterations must be positive")
        self._secret = master_secret
        self._iterations = iterations

    @property
    def iterations(self) -> int:
        return self._iterations

    def derive(self, salt: bytes) -> bytes:
        """Derive the 32-byte key bound to ``salt``.

        Args:
            salt: Per-operation random salt.

        Returns:
            32-byte derived key.
        """
        if not salt:
            raise ValueError("salt cannot be empty")
        return pbkdf2_sha512(bytes(self._secret), salt, self._iterations, KEY_LENGTH)
