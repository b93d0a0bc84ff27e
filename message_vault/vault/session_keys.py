"""
Vault Session Keys — short-lived session key issuance and payload encryption.

A SessionToken carries its own random AES-256 key; payloads encrypted for a
session use that key instead of one derived from the master secret. Tokens
are stateless here: persistence and lookup belong to the caller (see
``SessionRegistry`` for a Redis-backed option).

Expiry is advisory unless the issuer is built with ``enforce_expiry=True``:
callers must check ``token.is_expired()`` before decrypting otherwise.

Security Note:
    Never log session keys or payloads. Only log session ids.
"""
import base64
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Optional, Union

import orjson
from pydantic import BaseModel, Field, ValidationError, field_validator

from ..exceptions import MalformedEnvelope, SessionExpired, TamperDetected
from .aead import AeadCipher
from .config import SESSION_LIFETIME
from .kdf import KEY_LENGTH
from .utils import generate_secure_token

logger = logging.getLogger("message_vault.vault")

SESSION_ID_SIZE = 32
_HEX64 = r"^[0-9a-f]{64}$"
_BYTES_WRAPPER_KEY = "__vault_bytes_b64__"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class SessionToken(BaseModel):
    """Session id, session key and absolute expiry.

    A token past ``expires_at`` is logically dead even if still stored.
    """

    session_id: str = Field(pattern=_HEX64)
    encryption_key: str = Field(pattern=_HEX64, repr=False)
    expires_at: datetime

    model_config = {"frozen": True}

    @field_validator("expires_at")
    @classmethod
    def validate_expires_at(cls, v: datetime) -> datetime:
        """Store expiry as an aware UTC datetime."""
        return _as_utc(v)

    @property
    def key(self) -> bytes:
        """Raw 32-byte session key."""
        return bytes.fromhex(self.encryption_key)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = _as_utc(now) if now else _utcnow()
        return now >= self.expires_at

    def remaining(self, now: Optional[datetime] = None) -> int:
        """Whole seconds left before expiry (0 when expired)."""
        now = _as_utc(now) if now else _utcnow()
        return max(0, int((self.expires_at - now).total_seconds()))


class SessionClaims(BaseModel):
    """Claims sealed into an encrypted session string."""

    user_id: Union[int, str]
    created_at: datetime
    expires_at: datetime
    nonce: str

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = _as_utc(now) if now else _utcnow()
        return now >= _as_utc(self.expires_at)


# ---------------------------------------------------------------------------
# Value serialization
# ---------------------------------------------------------------------------

def serialize_value(value: Any) -> bytes:
    """Serialize a Python value to bytes for encryption.

    Supports: str, int, float, dict, list, bytes, bool, None, datetime.
    bytes values are wrapped as {"__vault_bytes_b64__": "<base64>"}.

    Returns:
        orjson-encoded bytes.
    """
    if isinstance(value, bytes):
        wrapped = {_BYTES_WRAPPER_KEY: base64.b64encode(value).decode("ascii")}
        return orjson.dumps(wrapped)
    return orjson.dumps(value)


def deserialize_value(data: bytes) -> Any:
    """Deserialize bytes produced by ``serialize_value``."""
    parsed = orjson.loads(data)
    if isinstance(parsed, dict) and _BYTES_WRAPPER_KEY in parsed and len(parsed) == 1:
        return base64.b64decode(parsed[_BYTES_WRAPPER_KEY])
    return parsed


class SessionKeyIssuer:
    """Issues session tokens and encrypts payloads with their keys.

    Args:
        cipher: AeadCipher bound to the master secret.
        lifetime: Default token lifetime in seconds (24 hours).
        enforce_expiry: Reject payload operations on expired tokens.
    """

    def __init__(
        self,
        cipher: AeadCipher,
        lifetime: int = SESSION_LIFETIME,
        enforce_expiry: bool = False,
    ):
        if lifetime <= 0:
            raise ValueError("Session lifetime must be positive")
        self._cipher = cipher
        self._lifetime = lifetime
        self._enforce_expiry = enforce_expiry

    @property
    def lifetime(self) -> int:
        return self._lifetime

    def issue(self, lifetime: Optional[int] = None) -> SessionToken:
        """Issue a token with a random id, a random key and an expiry."""
        seconds = self._lifetime if lifetime is None else lifetime
        token = SessionToken(
            session_id=secrets.token_hex(SESSION_ID_SIZE),
            encryption_key=secrets.token_hex(KEY_LENGTH),
            expires_at=_utcnow() + timedelta(seconds=seconds),
        )
        logger.debug("Issued session %s (lifetime=%ds)", token.session_id, seconds)
        return token

    def _check(self, token: SessionToken) -> None:
        if self._enforce_expiry and token.is_expired():
            logger.info("Rejected expired session %s", token.session_id)
            raise SessionExpired(f"Session {token.session_id} has expired")

    def encrypt_payload(self, token: SessionToken, data: Union[str, bytes]) -> str:
        """Encrypt ``data`` with the session's own key."""
        self._check(token)
        return self._cipher.encrypt(data, key=token.key)

    def decrypt_payload(self, token: SessionToken, envelope: str) -> bytes:
        """Decrypt a payload encrypted for ``token``.

        Raises:
            SessionExpired: Only when expiry is enforced.
            MalformedEnvelope: If the envelope cannot be parsed.
            TamperDetected: If authentication fails.
        """
        self._check(token)
        return self._cipher.decrypt(envelope, key=token.key)

    # ------------------------------------------------------------------
    # Master-secret session data
    # ------------------------------------------------------------------

    def encrypt_session_data(self, value: Any) -> str:
        """Serialize and encrypt structured session data."""
        return self._cipher.encrypt(serialize_value(value))

    def decrypt_session_data(self, envelope: str) -> Any:
        """Decrypt and deserialize data from ``encrypt_session_data``."""
        return deserialize_value(self._cipher.decrypt(envelope))

    def seal_session(self, user_id: Union[int, str], lifetime: Optional[int] = None) -> str:
        """Create an encrypted, self-expiring session string for a user."""
        seconds = self._lifetime if lifetime is None else lifetime
        now = _utcnow()
        claims = SessionClaims(
            user_id=user_id,
            created_at=now,
            expires_at=now + timedelta(seconds=seconds),
            nonce=generate_secure_token(16),
        )
        return self._cipher.encrypt(orjson.dumps(claims.model_dump(mode="json")))

    def open_session(self, sealed: str) -> Optional[SessionClaims]:
        """Decrypt a sealed session string.

        Returns:
            The claims, or None when the string is expired, tampered with
            or malformed.
        """
        try:
            claims = SessionClaims.model_validate(
                orjson.loads(self._cipher.decrypt(sealed))
            )
        except (MalformedEnvelope, TamperDetected) as err:
            logger.info("Rejected sealed session: %s", type(err).__name__)
            return None
        except (orjson.JSONDecodeError, ValidationError):
            logger.warning("Rejected sealed session: invalid claims")
            return None
        if claims.is_expired():
            return None
        return claims
