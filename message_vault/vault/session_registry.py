"""
SessionRegistry — SessionToken persistence in an injected key-value store.

Keeps the crypto core stateless: tokens live in an external async store
(a Redis client or anything exposing ``setex``/``get``/``delete``), keyed by
session id, so any service instance can resolve them.

Tokens are sealed with the master-secret AEAD path before they are written,
so the store never holds session keys in clear. Entries expire with the
token; expired tokens are neither stored nor returned.

Security Note:
    Never log session keys. Only log session ids and operations.
"""
import logging
from typing import Any, Optional

import orjson
from pydantic import ValidationError

from ..exceptions import MalformedEnvelope, TamperDetected
from .aead import AeadCipher
from .session_keys import SessionToken

logger = logging.getLogger("message_vault.vault")


class SessionRegistry:
    """Stores sealed SessionTokens in an async key-value store.

    Args:
        cipher: AeadCipher bound to the master secret.
        store: Async client with ``setex(key, ttl, value)``, ``get(key)`` and
            ``delete(key)`` (e.g. ``redis.asyncio.Redis``).
        prefix: Key namespace inside the store.
    """

    def __init__(self, cipher: AeadCipher, store: Any, prefix: str = "vault:session"):
        if store is None:
            raise ValueError("SessionRegistry requires a key-value store")
        self._cipher = cipher
        self._store = store
        self._prefix = prefix

    def _store_key(self, session_id: str) -> str:
        """Build store key."""
        return f"{self._prefix}:{session_id}"

    async def store(self, token: SessionToken) -> bool:
        """Seal and persist ``token`` with a TTL equal to its remaining lifetime.

        Returns:
            False if the token is already expired (nothing is written).
        """
        ttl = token.remaining()
        if ttl <= 0:
            logger.debug("Skipped storing expired session %s", token.session_id)
            return False
        sealed = self._cipher.encrypt(orjson.dumps(token.model_dump(mode="json")))
        await self._store.setex(self._store_key(token.session_id), ttl, sealed)
        logger.debug("Stored session %s (ttl=%ds)", token.session_id, ttl)
        return True

    async def lookup(self, session_id: str) -> Optional[SessionToken]:
        """Return the live token for ``session_id``, or None.

        Unknown, expired and undecryptable entries all return None.
        """
        raw = await self._store.get(self._store_key(session_id))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("ascii", errors="replace")
        try:
            token = SessionToken.model_validate(orjson.loads(self._cipher.decrypt(raw)))
        except (MalformedEnvelope, TamperDetected) as err:
            logger.error(
                "Failed to open stored session %s: %s", session_id, type(err).__name__,
            )
            return None
        except (orjson.JSONDecodeError, ValidationError):
            logger.error("Stored session %s holds an invalid token", session_id)
            return None
        if token.session_id != session_id or token.is_expired():
            return None
        return token

    async def revoke(self, session_id: str) -> None:
        """Remove ``session_id`` from the store."""
        await self._store.delete(self._store_key(session_id))
        logger.debug("Revoked session %s", session_id)
