"""Shared fixtures for Message Vault tests.

Most fixtures use a reduced PBKDF2 iteration count: the properties under
test do not depend on it and the default cost would make the suite slow.
"""
import pytest

from message_vault.engine import CryptoEngine
from message_vault.vault.aead import AeadCipher
from message_vault.vault.config import CipherConfig, MasterSecret
from message_vault.vault.kdf import KeyDerivation

MASTER_SECRET = "unit-test-master-secret-0123456789-abcdef"
OTHER_SECRET = "another-master-secret-for-rotation-tests-42"
FAST_ITERATIONS = 1000


@pytest.fixture
def master_secret():
    return MasterSecret(MASTER_SECRET)


@pytest.fixture
def kdf(master_secret):
    return KeyDerivation(master_secret, iterations=FAST_ITERATIONS)


@pytest.fixture
def cipher(kdf):
    return AeadCipher(kdf)


@pytest.fixture
def config(master_secret):
    return CipherConfig(
        master_secret=master_secret,
        kdf_iterations=FAST_ITERATIONS,
        password_iterations=FAST_ITERATIONS,
        max_workers=2,
    )


@pytest.fixture
def engine(config):
    with CryptoEngine(config) as eng:
        yield eng


@pytest.fixture
def clean_env(monkeypatch):
    """Environment without any vault variables."""
    for name in (
        "MESSAGE_ENCRYPTION_KEY",
        "JWT_SECRET",
        "VAULT_KDF_ITERATIONS",
        "VAULT_PASSWORD_ITERATIONS",
        "VAULT_SESSION_LIFETIME",
        "VAULT_ENFORCE_SESSION_EXPIRY",
        "VAULT_MAX_WORKERS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch
