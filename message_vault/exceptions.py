"""
Message Vault Exceptions.

Security Note:
    Exception messages must never carry key material, plaintext or
    passwords. Only the kind of failure and non-sensitive metadata.
"""


class VaultError(Exception):
    """Base class for all Message Vault errors."""


class ConfigurationError(VaultError):
    """Master secret missing or too short, or invalid vault settings.

    Raised at startup; no recovery is attempted.
    """


class MalformedEnvelope(VaultError):
    """Envelope layout cannot be parsed (component count or size)."""


class TamperDetected(VaultError):
    """Authentication tag verification failed during decryption."""

    def __init__(self, message: str = "Decryption failed"):
        super().__init__(message)


class InvalidPublicKey(VaultError):
    """Peer public key is not a valid point on the configured curve."""


class HashMismatch(VaultError):
    """Password or HMAC verification failed.

    ``verify()`` methods return ``False`` instead; this error is only raised
    by the explicit ``require()`` helpers and never carries detail.
    """

    def __init__(self, message: str = "Verification failed"):
        super().__init__(message)


class SessionExpired(VaultError):
    """Session token used after its ``expires_at``."""
