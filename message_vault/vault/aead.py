"""
Vault AEAD Cipher — Authenticated encryption of message bodies and files.

Envelope layout, persisted by storage and exchanged with callers:

    base64( b64(salt 32B) ":" b64(nonce 12B) ":" b64(tag 16B) ":" b64(ciphertext) )

Each component is Base64 encoded on its own and the joined text is encoded
once more. The key is PBKDF2(master secret, salt) unless the caller supplies
one (e.g. derived from an ECDH shared secret); the salt is always embedded.

Security Note:
    Never log plaintext, keys or ciphertext values. Only lengths.
    Salt and nonce are fresh random values for every call.
"""
import os
import logging
from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..exceptions import MalformedEnvelope, TamperDetected
from .config import ASSOCIATED_DATA
from .kdf import KeyDerivation, KEY_LENGTH
from .utils import b64encode, b64decode, to_bytes

logger = logging.getLogger("message_vault.vault")

SALT_SIZE = 32
NONCE_SIZE = 12  # 96-bit nonce
TAG_SIZE = 16  # GCM tag
SEPARATOR = ":"
FILE_ASSOCIATED_DATA = None  # stored file payloads were sealed without AAD


@dataclass(frozen=True)
class Envelope:
    """Parsed EncryptedEnvelope components."""
    salt: bytes
    nonce: bytes
    tag: bytes
    ciphertext: bytes

    def __post_init__(self):
        _check_sizes(self.salt, self.nonce, self.tag)

    def encode(self) -> str:
        """Serialize to the double Base64 wire format."""
        inner = SEPARATOR.join(
            b64encode(part)
            for part in (self.salt, self.nonce, self.tag, self.ciphertext)
        )
        return b64encode(inner.encode("ascii"))

    @classmethod
    def parse(cls, data: Union[str, bytes]) -> "Envelope":
        """Parse the wire format, checking component count and sizes.

        Raises:
            MalformedEnvelope: If the layout cannot be parsed.
        """
        if not isinstance(data, (str, bytes)):
            logger.warning("Rejected envelope: type %s", type(data).__name__)
            raise MalformedEnvelope(
                f"Envelope must be str or bytes, got {type(data).__name__}"
            )
        try:
            inner = b64decode(data).decode("ascii")
        except (ValueError, UnicodeDecodeError):
            logger.warning("Rejected envelope: outer encoding (length=%d)", len(data))
            raise MalformedEnvelope("Envelope is not valid base64 text") from None
        parts = inner.split(SEPARATOR)
        if len(parts) != 4:
            logger.warning(
                "Rejected envelope: %d component(s) (length=%d)", len(parts), len(data)
            )
            raise MalformedEnvelope(
                f"Envelope must have 4 components, got {len(parts)}"
            )
        try:
            salt, nonce, tag, ciphertext = (b64decode(p) for p in parts)
        except ValueError:
            logger.warning("Rejected envelope: component encoding (length=%d)", len(data))
            raise MalformedEnvelope("Envelope component is not valid base64") from None
        return cls(salt, nonce, tag, ciphertext)


@dataclass(frozen=True)
class EncryptedFile:
    """Raw file ciphertext plus detached ``base64(salt|nonce|tag)`` metadata."""
    data: bytes
    metadata: str


def _check_sizes(salt: bytes, nonce: bytes, tag: bytes) -> None:
    if len(salt) != SALT_SIZE or len(nonce) != NONCE_SIZE or len(tag) != TAG_SIZE:
        logger.warning(
            "Rejected envelope: component sizes salt=%d nonce=%d tag=%d",
            len(salt), len(nonce), len(tag),
        )
        raise MalformedEnvelope(
            f"Invalid component sizes: salt={len(salt)} (expected {SALT_SIZE}), "
            f"nonce={len(nonce)} (expected {NONCE_SIZE}), "
            f"tag={len(tag)} (expected {TAG_SIZE})"
        )


class AeadCipher:
    """AES-256-GCM envelope encryption keyed by the master secret.

    Args:
        kdf: KeyDerivation bound to the master secret.
        associated_data: Protocol tag bound into every operation.
    """

    def __init__(self, kdf: KeyDerivation, associated_data: bytes = ASSOCIATED_DATA):
        self._kdf = kdf
        self._aad = associated_data

    @property
    def associated_data(self) -> bytes:
        return self._aad

    def _key(self, salt: bytes, key: Optional[bytes]) -> bytes:
        if key is None:
            return self._kdf.derive(salt)
        if len(key) != KEY_LENGTH:
            raise ValueError(f"External key must be {KEY_LENGTH} bytes, got {len(key)}")
        return key

    def seal(self, plaintext: Union[str, bytes], key: Optional[bytes] = None) -> Envelope:
        """Encrypt ``plaintext`` and return the parsed envelope.

        Args:
            plaintext: Data to encrypt (text is UTF-8 encoded).
            key: Optional external 32-byte key; derived from the salt if None.

        Returns:
            Envelope with fresh salt and nonce.
        """
        return self._seal(to_bytes(plaintext), key, self._aad)

    def open(self, envelope: Envelope, key: Optional[bytes] = None) -> bytes:
        """Verify and decrypt a parsed envelope.

        Raises:
            TamperDetected: If the authentication tag does not verify.
        """
        return self._open(envelope, key, self._aad)

    def _seal(self, data: bytes, key: Optional[bytes], aad: Optional[bytes]) -> Envelope:
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        cipher = AESGCM(self._key(salt, key))
        ct = cipher.encrypt(nonce, data, aad)
        return Envelope(salt, nonce, ct[-TAG_SIZE:], ct[:-TAG_SIZE])

    def _open(self, envelope: Envelope, key: Optional[bytes], aad: Optional[bytes]) -> bytes:
        cipher = AESGCM(self._key(envelope.salt, key))
        try:
            return cipher.decrypt(
                envelope.nonce, envelope.ciphertext + envelope.tag, aad,
            )
        except InvalidTag:
            logger.warning(
                "Envelope authentication failed (ciphertext length=%d)",
                len(envelope.ciphertext),
            )
            raise TamperDetected() from None

    def encrypt(self, plaintext: Union[str, bytes], key: Optional[bytes] = None) -> str:
        """Encrypt ``plaintext`` into the envelope wire format.

        Args:
            plaintext: Text or bytes; empty input is valid.
            key: Optional external 32-byte key (e.g. from an ECDH secret).

        Returns:
            Envelope string.
        """
        return self.seal(plaintext, key).encode()

    def decrypt(self, envelope: Union[str, bytes], key: Optional[bytes] = None) -> bytes:
        """Decrypt an envelope string.

        Args:
            envelope: Envelope produced by ``encrypt``.
            key: The external key used at encryption time, if any.

        Returns:
            Plaintext bytes.

        Raises:
            MalformedEnvelope: If the envelope cannot be parsed.
            TamperDetected: If authentication fails.
        """
        return self.open(Envelope.parse(envelope), key)

    def decrypt_text(self, envelope: Union[str, bytes], key: Optional[bytes] = None) -> str:
        """Decrypt an envelope holding UTF-8 text."""
        return self.decrypt(envelope, key).decode("utf-8")

    # ------------------------------------------------------------------
    # File payloads
    # ------------------------------------------------------------------

    def encrypt_file(self, data: bytes) -> EncryptedFile:
        """Encrypt a file payload, keeping salt, nonce and tag in metadata.

        The ciphertext keeps the payload size so it can go to object storage
        as-is, while the metadata is stored alongside the file record.
        File payloads carry no associated data, so files stored before the
        protocol tag existed still decrypt.
        """
        sealed = self._seal(to_bytes(data), None, FILE_ASSOCIATED_DATA)
        metadata = b64encode(sealed.salt + sealed.nonce + sealed.tag)
        return EncryptedFile(sealed.ciphertext, metadata)

    def decrypt_file(self, data: bytes, metadata: str) -> bytes:
        """Decrypt a file payload produced by ``encrypt_file``.

        Raises:
            MalformedEnvelope: If the metadata cannot be parsed.
            TamperDetected: If authentication fails.
        """
        try:
            raw = b64decode(metadata)
        except ValueError:
            raise MalformedEnvelope("File metadata is not valid base64") from None
        if len(raw) != SALT_SIZE + NONCE_SIZE + TAG_SIZE:
            raise MalformedEnvelope(
                f"File metadata must be {SALT_SIZE + NONCE_SIZE + TAG_SIZE} bytes, "
                f"got {len(raw)}"
            )
        envelope = Envelope(
            raw[:SALT_SIZE],
            raw[SALT_SIZE:SALT_SIZE + NONCE_SIZE],
            raw[SALT_SIZE + NONCE_SIZE:],
            bytes(data),
        )
        return self._open(envelope, None, FILE_ASSOCIATED_DATA)
