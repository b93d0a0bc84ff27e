"""
Vault Key Rotation — Batch re-encryption of envelopes under a new master secret.

Envelopes carry no key identifier, so the caller supplies both ciphers: one
bound to the old master secret and one bound to the new. Rows that fail to
decrypt are counted and left untouched; re-running the rotation on the
remaining rows is safe.

Security Note:
    Plaintext exists in memory only during re-encryption of each row.
    Never log plaintext or ciphertext values.
"""
import logging
from typing import Any
from collections.abc import Iterable, Iterator

from ..exceptions import MalformedEnvelope, TamperDetected
from .aead import AeadCipher

logger = logging.getLogger("message_vault.vault")


def _batches(rows: Iterable[tuple[Any, str]], size: int) -> Iterator[list[tuple[Any, str]]]:
    batch = []
    for row in rows:
        batch.append(row)
        if len(batch) >= size:
            yield batch
            batch = []
    if batch:
        yield batch


def rotate_envelopes(
    rows: Iterable[tuple[Any, str]],
    old_cipher: AeadCipher,
    new_cipher: AeadCipher,
    batch_size: int = 100,
) -> tuple[dict[Any, str], dict]:
    """Re-encrypt ``(row_id, envelope)`` pairs from the old secret to the new.

    Args:
        rows: Iterable of (row_id, envelope) pairs.
        old_cipher: Cipher bound to the master secret being retired.
        new_cipher: Cipher bound to the new master secret.
        batch_size: Rows processed per logged batch.

    Returns:
        Tuple of (mapping row_id -> new envelope, stats dict with keys
        total, rotated, errors).
    """
    if batch_size < 1:
        raise ValueError("batch_size must be positive")
    updated: dict[Any, str] = {}
    stats = {"total": 0, "rotated": 0, "errors": 0}

    logger.info("Starting envelope rotation (batch_size=%d)", batch_size)

    for batch_num, batch in enumerate(_batches(rows, batch_size), start=1):
        logger.info("Processing batch %d (%d rows)", batch_num, len(batch))
        for row_id, envelope in batch:
            stats["total"] += 1
            try:
                plaintext = old_cipher.decrypt(envelope)
                updated[row_id] = new_cipher.encrypt(plaintext)
                stats["rotated"] += 1
            except (MalformedEnvelope, TamperDetected) as err:
                logger.error(
                    "Error rotating envelope id=%s: %s", row_id, type(err).__name__,
                )
                stats["errors"] += 1

    logger.info("Envelope rotation complete: %s", stats)
    return updated, stats
