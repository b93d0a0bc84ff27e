"""
Vault Commitment Proof — hash commitment plus HMAC challenge response.

    commitment = hex( SHA-512(secret) )
    challenge  = hex( 32 random bytes )
    response   = hex( HMAC-SHA512(key=secret, msg=challenge) )

This is NOT a zero-knowledge proof: the verifier needs the secret to check
the response. Use a Schnorr-style identification protocol where real
zero-knowledge properties are required.
"""
import hmac
import hashlib
import secrets
from typing import Union

from pydantic import BaseModel

from .authenticator import HmacAuthenticator
from .utils import to_bytes

CHALLENGE_SIZE = 32


class CommitmentProof(BaseModel):
    """Commitment, challenge and response, all hex encoded."""

    commitment: str
    challenge: str
    response: str

    model_config = {"frozen": True}


class CommitmentScheme:
    """Builds and checks CommitmentProofs."""

    @staticmethod
    def _commitment(secret: bytes) -> str:
        return hashlib.sha512(secret).hexdigest()

    @staticmethod
    def _response(secret: bytes, challenge: str) -> str:
        return HmacAuthenticator.digest(secret, challenge).hex()

    def commit(self, secret: Union[str, bytes]) -> CommitmentProof:
        """Commit to ``secret`` and answer a fresh random challenge."""
        data = to_bytes(secret)
        challenge = secrets.token_hex(CHALLENGE_SIZE)
        return CommitmentProof(
            commitment=self._commitment(data),
            challenge=challenge,
            response=self._response(data, challenge),
        )

    def verify(self, proof: CommitmentProof, secret: Union[str, bytes]) -> bool:
        """Recompute commitment and response for ``secret`` and compare."""
        data = to_bytes(secret)
        commitment_ok = hmac.compare_digest(
            proof.commitment.encode("ascii", errors="replace"),
            self._commitment(data).encode("ascii"),
        )
        response_ok = hmac.compare_digest(
            proof.response.encode("ascii", errors="replace"),
            self._response(data, proof.challenge).encode("ascii"),
        )
        return commitment_ok and response_ok
