"""
Tests for key derivation and the AEAD envelope cipher.

Tests cover:
- Deterministic key derivation
- Round trips (text, binary, empty)
- Envelope wire format and size checks
- Tamper detection on every region
- Salt/nonce freshness
- File payload encryption
"""
import base64
import os

import pytest
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from message_vault.exceptions import MalformedEnvelope, TamperDetected
from message_vault.vault.aead import (
    NONCE_SIZE,
    SALT_SIZE,
    TAG_SIZE,
    AeadCipher,
    Envelope,
)
from message_vault.vault.config import ASSOCIATED_DATA
from message_vault.vault.kdf import KEY_LENGTH, KeyDerivation

from .conftest import MASTER_SECRET, OTHER_SECRET


def _flip(data: bytes, index: int) -> bytes:
    buf = bytearray(data)
    buf[index] ^= 0x01
    return bytes(buf)


def _b64(size: int) -> str:
    return base64.b64encode(b"a" * size).decode()


class TestKeyDerivation:
    """Tests for KeyDerivation."""

    def test_key_length(self, kdf):
        """Test derived keys are 32 bytes."""
        assert len(kdf.derive(os.urandom(32))) == KEY_LENGTH

    def test_deterministic(self, kdf):
        """Test the same salt yields the same key."""
        salt = os.urandom(32)
        assert kdf.derive(salt) == kdf.derive(salt)

    def test_different_salts(self, kdf):
        """Test different salts yield different keys."""
        assert kdf.derive(b"a" * 32) != kdf.derive(b"b" * 32)

    def test_different_secrets(self):
        """Test different master secrets yield different keys."""
        salt = os.urandom(32)
        first = KeyDerivation(MASTER_SECRET, iterations=10)
        second = KeyDerivation(OTHER_SECRET, iterations=10)
        assert first.derive(salt) != second.derive(salt)

    def test_default_iterations(self):
        """Test the default iteration count."""
        assert KeyDerivation(MASTER_SECRET).iterations == 100_000

    def test_empty_salt(self, kdf):
        """Test an empty salt is rejected."""
        with pytest.raises(ValueError):
            kdf.derive(b"")


class TestRoundTrip:
    """decrypt(encrypt(p)) == p."""

    @pytest.mark.parametrize("plaintext", [
        b"",
        b"hello world",
        bytes(range(256)),
        b"\x00" * 1024,
        os.urandom(4096),
    ])
    def test_bytes(self, cipher, plaintext):
        """Test arbitrary binary content round trips."""
        assert cipher.decrypt(cipher.encrypt(plaintext)) == plaintext

    def test_text(self, cipher):
        """Test text is UTF-8 encoded and decoded."""
        message = "mensaje cifrado ✓ 你好"
        envelope = cipher.encrypt(message)
        assert cipher.decrypt_text(envelope) == message
        assert cipher.decrypt(envelope) == message.encode("utf-8")

    def test_empty_plaintext_has_valid_tag(self, cipher):
        """Test empty plaintext gives empty ciphertext and a 16-byte tag."""
        envelope = Envelope.parse(cipher.encrypt(b""))
        assert envelope.ciphertext == b""
        assert len(envelope.tag) == TAG_SIZE

    def test_ciphertext_length_equals_plaintext(self, cipher):
        """Test there is no padding."""
        envelope = Envelope.parse(cipher.encrypt(b"x" * 37))
        assert len(envelope.ciphertext) == 37

    def test_hello_world_twice(self, cipher):
        """Test two encryptions differ and both decrypt to the message."""
        first = cipher.encrypt("hello world")
        second = cipher.encrypt("hello world")
        assert first != second
        assert cipher.decrypt_text(first) == "hello world"
        assert cipher.decrypt_text(second) == "hello world"

    def test_other_process_same_secret(self, cipher):
        """Test a new cipher with the same secret decrypts stored envelopes."""
        envelope = cipher.encrypt(b"persisted")
        restarted = AeadCipher(KeyDerivation(MASTER_SECRET, iterations=1000))
        assert restarted.decrypt(envelope) == b"persisted"

    def test_wrong_secret(self, cipher):
        """Test a different master secret cannot decrypt."""
        envelope = cipher.encrypt(b"secret")
        other = AeadCipher(KeyDerivation(OTHER_SECRET, iterations=1000))
        with pytest.raises(TamperDetected):
            other.decrypt(envelope)

    def test_external_key(self, cipher):
        """Test encryption with a caller supplied key."""
        key = os.urandom(32)
        envelope = cipher.encrypt(b"peer data", key=key)
        assert cipher.decrypt(envelope, key=key) == b"peer data"
        with pytest.raises(TamperDetected):
            cipher.decrypt(envelope)

    def test_external_key_length(self, cipher):
        """Test external keys must be 32 bytes."""
        with pytest.raises(ValueError):
            cipher.encrypt(b"data", key=b"short")


class TestWireFormat:
    """Tests for the envelope wire format."""

    def test_double_base64_layout(self, cipher):
        """Test the outer and inner encodings and component sizes."""
        envelope = cipher.encrypt(b"payload")
        inner = base64.b64decode(envelope).decode("ascii")
        parts = inner.split(":")
        assert len(parts) == 4
        salt, nonce, tag, ct = (base64.b64decode(p) for p in parts)
        assert len(salt) == SALT_SIZE
        assert len(nonce) == NONCE_SIZE
        assert len(tag) == TAG_SIZE
        assert len(ct) == len(b"payload")

    def test_encode_parse(self):
        """Test Envelope.encode and Envelope.parse are inverse."""
        env = Envelope(b"s" * 32, b"n" * 12, b"t" * 16, b"ciphertext")
        assert Envelope.parse(env.encode()) == env

    def test_associated_data_bound(self, kdf):
        """Test a different protocol tag cannot decrypt."""
        envelope = AeadCipher(kdf).encrypt(b"data")
        other = AeadCipher(kdf, associated_data=b"OTHER_PROTOCOL_V2")
        with pytest.raises(TamperDetected):
            other.decrypt(envelope)

    def test_default_associated_data(self, cipher):
        """Test the protocol tag constant."""
        assert cipher.associated_data == ASSOCIATED_DATA == b"MILITARY_GRADE_ENCRYPTION_V1"


class TestMalformedEnvelope:
    """Envelopes with a bad layout are rejected before decryption."""

    @staticmethod
    def _wrap(*parts: str) -> str:
        return base64.b64encode(":".join(parts).encode()).decode()

    def test_not_base64(self, cipher):
        """Test garbage input."""
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt("not base64 at all!!")

    def test_wrong_component_count(self, cipher):
        """Test three components."""
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt(self._wrap(_b64(32), _b64(12), _b64(16)))

    def test_extra_component(self, cipher):
        """Test five components."""
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt(self._wrap(_b64(32), _b64(12), _b64(16), _b64(4), _b64(4)))

    @pytest.mark.parametrize("sizes", [
        (31, 12, 16),
        (32, 16, 16),
        (32, 12, 15),
        (0, 0, 0),
    ])
    def test_wrong_sizes(self, cipher, sizes):
        """Test component size checks for salt, nonce and tag."""
        salt, nonce, tag = sizes
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt(self._wrap(_b64(salt), _b64(nonce), _b64(tag), _b64(8)))

    def test_inner_not_base64(self, cipher):
        """Test an invalid inner component."""
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt(self._wrap("@@@", "@@@", "@@@", "@@@"))

    @pytest.mark.parametrize("value", [None, 42, ["a"]])
    def test_not_text(self, cipher, value):
        """Test non-text values such as a NULL column."""
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt(value)

    def test_empty_string(self, cipher):
        """Test an empty envelope."""
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt("")


class TestTamperDetection:
    """Flipping a bit anywhere in the envelope is detected."""

    @pytest.fixture
    def sealed(self, cipher):
        return Envelope.parse(cipher.encrypt(b"attack at dawn, bring coffee"))

    def test_every_ciphertext_bit(self, cipher, sealed):
        """Test every single bit flip in the ciphertext region."""
        for index in range(len(sealed.ciphertext)):
            for bit in range(8):
                buf = bytearray(sealed.ciphertext)
                buf[index] ^= 1 << bit
                tampered = Envelope(sealed.salt, sealed.nonce, sealed.tag, bytes(buf))
                with pytest.raises(TamperDetected):
                    cipher.decrypt(tampered.encode())

    def test_every_tag_byte(self, cipher, sealed):
        """Test a bit flip in each tag byte."""
        for index in range(TAG_SIZE):
            tampered = Envelope(
                sealed.salt, sealed.nonce, _flip(sealed.tag, index), sealed.ciphertext,
            )
            with pytest.raises(TamperDetected):
                cipher.decrypt(tampered.encode())

    def test_nonce(self, cipher, sealed):
        """Test a modified nonce."""
        tampered = Envelope(sealed.salt, _flip(sealed.nonce, 0), sealed.tag, sealed.ciphertext)
        with pytest.raises(TamperDetected):
            cipher.decrypt(tampered.encode())

    def test_salt(self, cipher, sealed):
        """Test a modified salt derives a different key."""
        tampered = Envelope(_flip(sealed.salt, 5), sealed.nonce, sealed.tag, sealed.ciphertext)
        with pytest.raises(TamperDetected):
            cipher.decrypt(tampered.encode())

    def test_truncated_ciphertext(self, cipher, sealed):
        """Test a shortened ciphertext."""
        tampered = Envelope(sealed.salt, sealed.nonce, sealed.tag, sealed.ciphertext[:-1])
        with pytest.raises(TamperDetected):
            cipher.decrypt(tampered.encode())

    def test_message_is_generic(self, cipher, sealed):
        """Test the error carries no plaintext."""
        tampered = Envelope(sealed.salt, sealed.nonce, _flip(sealed.tag, 0), sealed.ciphertext)
        with pytest.raises(TamperDetected) as exc:
            cipher.decrypt(tampered.encode())
        assert "attack" not in str(exc.value)


class TestFreshness:
    """Salt and nonce are fresh for every call."""

    def test_ten_thousand_encryptions(self):
        """Test 10,000 encryptions of the same plaintext never repeat salt or nonce."""
        cipher = AeadCipher(KeyDerivation(MASTER_SECRET, iterations=1))
        salts = set()
        nonces = set()
        for _ in range(10_000):
            sealed = cipher.seal(b"same plaintext")
            salts.add(sealed.salt)
            nonces.add(sealed.nonce)
        assert len(salts) == 10_000
        assert len(nonces) == 10_000


class TestFileEncryption:
    """Tests for file payloads with detached metadata."""

    def test_round_trip(self, cipher):
        """Test file bytes round trip."""
        data = os.urandom(10_000)
        encrypted = cipher.encrypt_file(data)
        assert len(encrypted.data) == len(data)
        assert encrypted.data != data
        assert cipher.decrypt_file(encrypted.data, encrypted.metadata) == data

    def test_metadata_layout(self, cipher):
        """Test metadata holds salt, nonce and tag."""
        encrypted = cipher.encrypt_file(b"file")
        assert len(base64.b64decode(encrypted.metadata)) == SALT_SIZE + NONCE_SIZE + TAG_SIZE

    def test_tampered_file(self, cipher):
        """Test modified file bytes are detected."""
        encrypted = cipher.encrypt_file(b"important document")
        with pytest.raises(TamperDetected):
            cipher.decrypt_file(_flip(encrypted.data, 3), encrypted.metadata)

    def test_bad_metadata(self, cipher):
        """Test malformed metadata."""
        encrypted = cipher.encrypt_file(b"doc")
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt_file(encrypted.data, base64.b64encode(b"short").decode())
        with pytest.raises(MalformedEnvelope):
            cipher.decrypt_file(encrypted.data, "***")

    def test_stored_file_without_associated_data(self, kdf, cipher):
        """Test files sealed with plain AES-GCM and no associated data decrypt."""
        salt = os.urandom(SALT_SIZE)
        nonce = os.urandom(NONCE_SIZE)
        sealed = AESGCM(kdf.derive(salt)).encrypt(nonce, b"legacy file", None)
        data, tag = sealed[:-TAG_SIZE], sealed[-TAG_SIZE:]
        metadata = base64.b64encode(salt + nonce + tag).decode()
        assert cipher.decrypt_file(data, metadata) == b"legacy file"

    def test_file_not_bound_to_protocol_tag(self, kdf, cipher):
        """Test file payloads open regardless of the message protocol tag."""
        encrypted = cipher.encrypt_file(b"shared")
        other = AeadCipher(kdf, associated_data=b"OTHER_PROTOCOL_V2")
        assert other.decrypt_file(encrypted.data, encrypted.metadata) == b"shared"

    def test_file_metadata_is_not_a_message(self, cipher):
        """Test file components do not open as a message envelope."""
        encrypted = cipher.encrypt_file(b"doc")
        raw = base64.b64decode(encrypted.metadata)
        envelope = Envelope(
            raw[:SALT_SIZE], raw[SALT_SIZE:SALT_SIZE + NONCE_SIZE],
            raw[SALT_SIZE + NONCE_SIZE:], encrypted.data,
        )
        with pytest.raises(TamperDetected):
            cipher.decrypt(envelope.encode())
