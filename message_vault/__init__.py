"""Message Vault.

Authenticated encryption, password hashing, HMAC and session keys for
messages, files and session tokens at rest.
"""
from .version import __version__
from .exceptions import (
    VaultError,
    ConfigurationError,
    MalformedEnvelope,
    TamperDetected,
    InvalidPublicKey,
    HashMismatch,
    SessionExpired,
)
from .engine import CryptoEngine
from .vault import CipherConfig, MasterSecret

__all__ = [
    "__version__",
    "CryptoEngine",
    "CipherConfig",
    "MasterSecret",
    "VaultError",
    "ConfigurationError",
    "MalformedEnvelope",
    "TamperDetected",
    "InvalidPublicKey",
    "HashMismatch",
    "SessionExpired",
]
