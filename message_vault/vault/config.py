"""
Vault Configuration — Master secret loading and validated settings.

Reads the master secret from environment variables:
    MESSAGE_ENCRYPTION_KEY = <text secret, at least 32 bytes>
    JWT_SECRET = <fallback when MESSAGE_ENCRYPTION_KEY is not set>

Optional tuning:
    VAULT_KDF_ITERATIONS, VAULT_PASSWORD_ITERATIONS,
    VAULT_SESSION_LIFETIME, VAULT_ENFORCE_SESSION_EXPIRY, VAULT_MAX_WORKERS

Security Note:
    Never log the master secret. Only log its source variable and length.
"""
import os
import secrets
import logging
from typing import Optional, Union
from collections.abc import Mapping

from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import ConfigurationError

logger = logging.getLogger("message_vault.vault")

MASTER_SECRET_ENV = ("MESSAGE_ENCRYPTION_KEY", "JWT_SECRET")
MIN_SECRET_LENGTH = 32
KDF_ITERATIONS = 100_000
SESSION_LIFETIME = 24 * 60 * 60  # 24 hours

# Bound into every AEAD operation. Part of the persisted format: changing it
# invalidates every envelope already stored.
ASSOCIATED_DATA = b"MILITARY_GRADE_ENCRYPTION_V1"


class MasterSecret:
    """Process-wide immutable master secret.

    Validated on construction, so a short secret fails at startup and
    never at first use.

    Raises:
        ConfigurationError: If the secret is empty or shorter than 32 bytes.
    """

    __slots__ = ("_value",)

    def __init__(self, value: Union[str, bytes]):
        if isinstance(value, str):
            value = value.encode("utf-8")
        if not isinstance(value, (bytes, bytearray)):
            raise ConfigurationError(
                f"Master secret must be str or bytes, got {type(value).__name__}"
            )
        if len(value) < MIN_SECRET_LENGTH:
            raise ConfigurationError(
                f"Master secret must be at least {MIN_SECRET_LENGTH} bytes, "
                f"got {len(value)}"
            )
        object.__setattr__(self, "_value", bytes(value))

    def __setattr__(self, name, value):
        raise AttributeError("MasterSecret is immutable")

    def __bytes__(self) -> bytes:
        return self._value

    def __len__(self) -> int:
        return len(self._value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MasterSecret):
            return NotImplemented
        return secrets.compare_digest(self._value, other._value)

    def __hash__(self) -> int:
        return hash(self._value)

    def __repr__(self) -> str:
        return f"<MasterSecret length={len(self._value)}>"


def load_master_secret(environ: Optional[Mapping[str, str]] = None) -> MasterSecret:
    """Load the master secret from MESSAGE_ENCRYPTION_KEY (or JWT_SECRET).

    Args:
        environ: Mapping to read from, defaults to ``os.environ``.

    Returns:
        Validated MasterSecret.

    Raises:
        ConfigurationError: If no variable is set or the value is too short.
    """
    env = os.environ if environ is None else environ
    for name in MASTER_SECRET_ENV:
        value = env.get(name)
        if value:
            secret = MasterSecret(value)
            logger.debug("Loaded master secret from %s (%d bytes)", name, len(secret))
            return secret
    raise ConfigurationError(
        "No master secret found in environment. "
        "Set MESSAGE_ENCRYPTION_KEY=<secret of at least 32 characters>"
    )


def generate_master_secret() -> str:
    """Generate a random master secret suitable for MESSAGE_ENCRYPTION_KEY.

    This is a utility for operators to generate new secrets.

    Returns:
        URL-safe text secret of 64 characters.
    """
    return secrets.token_urlsafe(48)


class CipherConfig(BaseModel):
    """Validated vault configuration."""

    master_secret: MasterSecret
    kdf_iterations: int = Field(default=KDF_ITERATIONS, ge=1)
    password_iterations: int = Field(default=KDF_ITERATIONS, ge=1)
    session_lifetime: int = Field(default=SESSION_LIFETIME, ge=60)
    enforce_session_expiry: bool = Field(default=False)
    max_workers: int = Field(default=4, ge=1, le=64)
    associated_data: bytes = Field(default=ASSOCIATED_DATA)

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("master_secret", mode="before")
    @classmethod
    def validate_master_secret(cls, v):
        """Wrap raw secrets, enforcing the minimum length."""
        if isinstance(v, MasterSecret):
            return v
        return MasterSecret(v)

    @field_validator("associated_data")
    @classmethod
    def validate_associated_data(cls, v: bytes) -> bytes:
        """Associated data must identify the protocol version."""
        if not v:
            raise ValueError("associated_data cannot be empty")
        return v

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "CipherConfig":
        """Create CipherConfig by loading values from environment.

        Returns:
            Populated CipherConfig instance.

        Raises:
            ConfigurationError: If the secret or any setting is invalid.
        """
        env = os.environ if environ is None else environ
        values = {"master_secret": load_master_secret(env)}
        for field, name in (
            ("kdf_iterations", "VAULT_KDF_ITERATIONS"),
            ("password_iterations", "VAULT_PASSWORD_ITERATIONS"),
            ("session_lifetime", "VAULT_SESSION_LIFETIME"),
            ("enforce_session_expiry", "VAULT_ENFORCE_SESSION_EXPIRY"),
            ("max_workers", "VAULT_MAX_WORKERS"),
        ):
            raw = env.get(name)
            if raw is not None:
                values[field] = raw
        try:
            return cls(**values)
        except ValidationError as err:
            raise ConfigurationError(
                f"Invalid vault configuration: {err.error_count()} error(s) in "
                f"{sorted({str(e['loc'][0]) for e in err.errors()})}"
            ) from None
