"""
Vault ECDH Exchange — P-384 key pairs and shared secrets.

A shared secret computed here is hashed into a 32-byte key before it is
handed to the AEAD cipher; the raw secret is never used as a key. Public
key transport is the caller's concern.

Security Note:
    Private keys never leave process memory unencrypted: use
    ``export_private_key`` with a passphrase to persist one.
"""
import hashlib
import logging
from dataclasses import dataclass
from typing import Union

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from ..exceptions import InvalidPublicKey
from .utils import b64encode, b64decode

logger = logging.getLogger("message_vault.vault")

CURVE = ec.SECP384R1()  # NIST P-384
SHARED_SECRET_SIZE = 48

PeerKey = Union[ec.EllipticCurvePublicKey, bytes, str]


@dataclass(frozen=True)
class KeyPair:
    """ECDH key pair. ``private_key`` belongs to the generating party only."""
    private_key: ec.EllipticCurvePrivateKey
    public_key: ec.EllipticCurvePublicKey

    def public_bytes(self) -> bytes:
        """Public key as an X9.62 uncompressed point."""
        return self.public_key.public_bytes(
            encoding=serialization.Encoding.X962,
            format=serialization.PublicFormat.UncompressedPoint,
        )

    def public_b64(self) -> str:
        """Public key point, Base64 encoded for transport."""
        return b64encode(self.public_bytes())

    def __repr__(self) -> str:
        return f"<KeyPair curve={self.public_key.curve.name}>"


class EcdhExchange:
    """Elliptic-curve Diffie-Hellman on NIST P-384."""

    curve = CURVE

    def generate_key_pair(self) -> KeyPair:
        """Generate a fresh P-384 key pair."""
        private_key = ec.generate_private_key(self.curve)
        return KeyPair(private_key, private_key.public_key())

    def load_public_key(self, peer_public_key: PeerKey) -> ec.EllipticCurvePublicKey:
        """Load a peer public key from an object, point bytes or Base64 text.

        Raises:
            InvalidPublicKey: If the value is not a point on P-384.
        """
        if isinstance(peer_public_key, ec.EllipticCurvePublicKey):
            if peer_public_key.curve.name != self.curve.name:
                raise InvalidPublicKey(
                    f"Public key is on {peer_public_key.curve.name}, "
                    f"expected {self.curve.name}"
                )
            return peer_public_key
        if isinstance(peer_public_key, str):
            try:
                peer_public_key = b64decode(peer_public_key)
            except ValueError:
                raise InvalidPublicKey("Public key is not valid base64") from None
        if not isinstance(peer_public_key, (bytes, bytearray)):
            raise InvalidPublicKey(
                f"Unsupported public key type {type(peer_public_key).__name__}"
            )
        try:
            return ec.EllipticCurvePublicKey.from_encoded_point(
                self.curve, bytes(peer_public_key),
            )
        except ValueError:
            logger.warning(
                "Rejected peer public key (length=%d)", len(peer_public_key),
            )
            raise InvalidPublicKey("Public key is not a valid point on the curve") from None

    def compute_shared_secret(
        self,
        private_key: ec.EllipticCurvePrivateKey,
        peer_public_key: PeerKey,
    ) -> bytes:
        """Compute the ECDH shared secret with a peer.

        Args:
            private_key: This party's private key.
            peer_public_key: The other party's public key.

        Returns:
            48-byte shared secret (same for both parties).

        Raises:
            InvalidPublicKey: If the peer key is not valid.
        """
        peer = self.load_public_key(peer_public_key)
        return private_key.exchange(ec.ECDH(), peer)

    @staticmethod
    def derive_key(shared_secret: bytes) -> bytes:
        """Hash a shared secret into a 32-byte AEAD key (SHA-256)."""
        if not shared_secret:
            raise ValueError("shared secret cannot be empty")
        return hashlib.sha256(shared_secret).digest()


def export_private_key(private_key: ec.EllipticCurvePrivateKey, passphrase: bytes) -> bytes:
    """Export a private key as passphrase-encrypted PKCS#8 PEM."""
    if not passphrase:
        raise ValueError("A passphrase is required to export a private key")
    return private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.BestAvailableEncryption(passphrase),
    )


def load_private_key(pem: bytes, passphrase: bytes) -> ec.EllipticCurvePrivateKey:
    """Load a private key exported by ``export_private_key``."""
    key = serialization.load_pem_private_key(pem, password=passphrase)
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise ValueError("PEM does not hold an elliptic-curve private key")
    return key
