"""
CryptoEngine — one entry point wiring every vault component together.

Built once at process startup (``CryptoEngine.from_env()``), so a missing or
short master secret fails before the first request is served. All
operations are CPU-bound and touch no shared mutable state; the only state is
an immutable bundle of components, replaced as a whole by ``rotate()``.
"""
import asyncio
import logging
from dataclasses import dataclass
from functools import partial
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Optional, Union

from cryptography.hazmat.primitives.asymmetric import ec

from .vault.config import CipherConfig, MasterSecret
from .vault.kdf import KeyDerivation
from .vault.aead import AeadCipher, EncryptedFile
from .vault.ecdh import EcdhExchange, KeyPair, PeerKey
from .vault.authenticator import HmacAuthenticator
from .vault.passwords import PasswordHasher, PasswordRecord
from .vault.session_keys import SessionKeyIssuer, SessionToken
from .vault.session_registry import SessionRegistry
from .vault.commitment import CommitmentScheme, CommitmentProof

logger = logging.getLogger("message_vault.engine")


@dataclass(frozen=True)
class Components:
    """Immutable set of components bound to one master secret."""
    config: CipherConfig
    kdf: KeyDerivation
    cipher: AeadCipher
    authenticator: HmacAuthenticator
    passwords: PasswordHasher
    sessions: SessionKeyIssuer

    @classmethod
    def build(cls, config: CipherConfig) -> "Components":
        kdf = KeyDerivation(config.master_secret, config.kdf_iterations)
        cipher = AeadCipher(kdf, config.associated_data)
        return cls(
            config=config,
            kdf=kdf,
            cipher=cipher,
            authenticator=HmacAuthenticator(config.master_secret),
            passwords=PasswordHasher(config.password_iterations),
            sessions=SessionKeyIssuer(
                cipher,
                lifetime=config.session_lifetime,
                enforce_expiry=config.enforce_session_expiry,
            ),
        )


class CryptoEngine:
    """Facade over the vault components.

    Args:
        config: Validated CipherConfig.
    """

    def __init__(self, config: CipherConfig):
        self._components = Components.build(config)
        self._ecdh = EcdhExchange()
        self._commitments = CommitmentScheme()
        self._executor = ThreadPoolExecutor(
            max_workers=config.max_workers,
            thread_name_prefix="vault-crypto",
        )
        logger.info(
            "CryptoEngine ready (kdf_iterations=%d, workers=%d)",
            config.kdf_iterations, config.max_workers,
        )

    @classmethod
    def from_env(cls) -> "CryptoEngine":
        """Build the engine from environment configuration.

        Raises:
            ConfigurationError: If the master secret is missing or too short.
        """
        return cls(CipherConfig.from_env())

    def __enter__(self) -> "CryptoEngine":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def close(self) -> None:
        """Shut down the worker pool."""
        self._executor.shutdown(wait=True)

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------

    @property
    def components(self) -> Components:
        return self._components

    @property
    def config(self) -> CipherConfig:
        return self._components.config

    @property
    def cipher(self) -> AeadCipher:
        return self._components.cipher

    @property
    def sessions(self) -> SessionKeyIssuer:
        return self._components.sessions

    @property
    def ecdh(self) -> EcdhExchange:
        return self._ecdh

    def rotate(self, master_secret: Union[str, bytes, MasterSecret]) -> AeadCipher:
        """Switch to a new master secret.

        The component bundle is replaced in a single assignment; operations
        already running keep the bundle they started with.

        Returns:
            The retired cipher, for use with ``rotate_envelopes``.
        """
        if not isinstance(master_secret, MasterSecret):
            master_secret = MasterSecret(master_secret)
        current = self._components
        config = current.config.model_copy(update={"master_secret": master_secret})
        self._components = Components.build(config)
        logger.info("Master secret rotated")
        return current.cipher

    # ------------------------------------------------------------------
    # Messages and files
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: Union[str, bytes]) -> str:
        return self._components.cipher.encrypt(plaintext)

    def decrypt(self, envelope: str) -> bytes:
        return self._components.cipher.decrypt(envelope)

    def decrypt_text(self, envelope: str) -> str:
        return self._components.cipher.decrypt_text(envelope)

    def encrypt_file(self, data: bytes) -> EncryptedFile:
        return self._components.cipher.encrypt_file(data)

    def decrypt_file(self, data: bytes, metadata: str) -> bytes:
        return self._components.cipher.decrypt_file(data, metadata)

    # ------------------------------------------------------------------
    # Forward-secret path
    # ------------------------------------------------------------------

    def generate_key_pair(self) -> KeyPair:
        return self._ecdh.generate_key_pair()

    def compute_shared_secret(
        self, private_key: ec.EllipticCurvePrivateKey, peer_public_key: PeerKey,
    ) -> bytes:
        return self._ecdh.compute_shared_secret(private_key, peer_public_key)

    def _peer_key(self, private_key, peer_public_key) -> bytes:
        secret = self._ecdh.compute_shared_secret(private_key, peer_public_key)
        return self._ecdh.derive_key(secret)

    def encrypt_for_peer(
        self,
        plaintext: Union[str, bytes],
        private_key: ec.EllipticCurvePrivateKey,
        peer_public_key: PeerKey,
    ) -> str:
        """Encrypt with a key derived from the ECDH shared secret."""
        key = self._peer_key(private_key, peer_public_key)
        return self._components.cipher.encrypt(plaintext, key=key)

    def decrypt_from_peer(
        self,
        envelope: str,
        private_key: ec.EllipticCurvePrivateKey,
        peer_public_key: PeerKey,
    ) -> bytes:
        """Decrypt an envelope produced by ``encrypt_for_peer``."""
        key = self._peer_key(private_key, peer_public_key)
        return self._components.cipher.decrypt(envelope, key=key)

    # ------------------------------------------------------------------
    # Integrity, passwords, proofs
    # ------------------------------------------------------------------

    def sign(self, message: Union[str, bytes]) -> str:
        return self._components.authenticator.sign(message)

    def verify_signature(self, message: Union[str, bytes], tag: str) -> bool:
        return self._components.authenticator.verify(message, tag)

    def hash_password(self, password: str) -> str:
        """Hash ``password`` into its stored ``salt:hash`` form."""
        return self._components.passwords.hash(password).encode()

    def verify_password(self, password: str, record: Union[str, PasswordRecord]) -> bool:
        return self._components.passwords.verify(password, record)

    def commit(self, secret: Union[str, bytes]) -> CommitmentProof:
        return self._commitments.commit(secret)

    def verify_commitment(self, proof: CommitmentProof, secret: Union[str, bytes]) -> bool:
        return self._commitments.verify(proof, secret)

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def issue_session(self, lifetime: Optional[int] = None) -> SessionToken:
        return self._components.sessions.issue(lifetime)

    def session_registry(self, store: Any) -> SessionRegistry:
        """SessionRegistry over ``store`` sealed with the current cipher."""
        return SessionRegistry(self._components.cipher, store)

    # ------------------------------------------------------------------
    # Worker pool
    # ------------------------------------------------------------------

    async def run_in_pool(self, func: Callable, *args, **kwargs) -> Any:
        """Run a CPU-bound vault operation on the bounded worker pool.

        Keeps the PBKDF2 cost off the event loop, e.g.
        ``await engine.run_in_pool(engine.decrypt, envelope)``.
        """
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, partial(func, *args, **kwargs),
        )
