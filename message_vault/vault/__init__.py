"""Message Vault — Encryption and key management for data at rest.

Security Note (Threat Model):
    Keys are derived from the master secret and the salt embedded in each
    envelope, so a compromised master secret decrypts every stored envelope
    (no forward secrecy for data at rest). Data that needs forward secrecy
    must use the ECDH shared-secret path instead.
"""

from .config import (
    CipherConfig,
    MasterSecret,
    load_master_secret,
    generate_master_secret,
    ASSOCIATED_DATA,
)
from .kdf import KeyDerivation
from .aead import AeadCipher, Envelope, EncryptedFile
from .ecdh import EcdhExchange, KeyPair, export_private_key, load_private_key
from .authenticator import HmacAuthenticator
from .passwords import PasswordHasher, PasswordRecord
from .session_keys import (
    SessionKeyIssuer,
    SessionToken,
    SessionClaims,
    serialize_value,
    deserialize_value,
)
from .session_registry import SessionRegistry
from .commitment import CommitmentScheme, CommitmentProof
from .key_rotation import rotate_envelopes
from .utils import generate_secure_token

__all__ = [
    "CipherConfig",
    "MasterSecret",
    "load_master_secret",
    "generate_master_secret",
    "ASSOCIATED_DATA",
    "KeyDerivation",
    "AeadCipher",
    "Envelope",
    "EncryptedFile",
    "EcdhExchange",
    "KeyPair",
    "export_private_key",
    "load_private_key",
    "HmacAuthenticator",
    "PasswordHasher",
    "PasswordRecord",
    "SessionKeyIssuer",
    "SessionToken",
    "SessionClaims",
    "serialize_value",
    "deserialize_value",
    "SessionRegistry",
    "CommitmentScheme",
    "CommitmentProof",
    "rotate_envelopes",
    "generate_secure_token",
]
