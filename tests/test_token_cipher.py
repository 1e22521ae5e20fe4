"""Token cipher tests: round trip, random IVs, blob format and tamper detection."""

import base64
import os

import pytest
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from seller_admin.errors import ConfigurationError, DecryptionError
from seller_admin.token_cipher import TokenCipher


@pytest.fixture
def key() -> bytes:
    return os.urandom(32)


@pytest.fixture
def token_cipher(key) -> TokenCipher:
    return TokenCipher(key)


def _flip(blob: str, index: int) -> str:
    raw = bytearray(base64.b64decode(blob))
    raw[index] ^= 0x01
    return base64.b64encode(bytes(raw)).decode("ascii")


# ============================================================================
# ROUND TRIP
# ============================================================================

@pytest.mark.parametrize(
    "plaintext",
    [
        "",
        "a",
        "exactly-16-bytes",
        "test_access_token_not_real_" + "x" * 200,
        "jeton d'accès é ü 東京 🚚",
    ],
)
def test_encrypt_decrypt_roundtrip(token_cipher, plaintext):
    assert token_cipher.decrypt(token_cipher.encrypt(plaintext)) == plaintext


def test_encrypt_uses_fresh_iv_each_call(token_cipher):
    first = token_cipher.encrypt("same-token")
    second = token_cipher.encrypt("same-token")

    assert first != second
    assert base64.b64decode(first)[:16] != base64.b64decode(second)[:16]


def test_blob_is_iv_followed_by_padded_blocks(token_cipher):
    raw = base64.b64decode(token_cipher.encrypt("twenty-byte-token-xx"))

    # 16-byte IV + 20 bytes padded up to two AES blocks
    assert len(raw) == 16 + 32


def test_plaintext_not_visible_in_blob(token_cipher):
    blob = token_cipher.encrypt("secret-token-value-12345")
    assert "secret" not in blob
    assert b"secret" not in base64.b64decode(blob)


def test_decrypts_blob_built_by_another_aes_cbc_implementation(key, token_cipher):
    iv = os.urandom(16)
    padder = padding.PKCS7(128).padder()
    padded = padder.update("external-token".encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    blob = base64.b64encode(iv + encryptor.update(padded) + encryptor.finalize()).decode()

    assert token_cipher.decrypt(blob) == "external-token"


# ============================================================================
# FAILURES
# ============================================================================

@pytest.mark.parametrize("index", range(16, 48))
def test_flipping_any_ciphertext_byte_fails(token_cipher, index):
    # One full block of plaintext plus one block of padding; bytes 0-15 are the IV
    blob = token_cipher.encrypt("exactly-16-bytes")
    assert len(base64.b64decode(blob)) == 48

    with pytest.raises(DecryptionError):
        token_cipher.decrypt(_flip(blob, index))


@pytest.mark.parametrize("index", range(16))
def test_flipping_iv_byte_changes_plaintext(token_cipher, index):
    # CBC without a MAC: the IV only XORs into the first block
    blob = token_cipher.encrypt("exactly-16-bytes")
    assert token_cipher.decrypt(_flip(blob, index)) != "exactly-16-bytes"


def test_wrong_key_fails(token_cipher):
    blob = token_cipher.encrypt("twenty-byte-token-xx")
    other = TokenCipher(os.urandom(32))

    with pytest.raises(DecryptionError):
        other.decrypt(blob)


@pytest.mark.parametrize(
    "blob",
    [
        "not base64 at all!",
        base64.b64encode(b"short").decode(),
        base64.b64encode(os.urandom(16)).decode(),
        base64.b64encode(os.urandom(16 + 10)).decode(),
    ],
    ids=["not-base64", "shorter-than-iv", "iv-only", "not-block-aligned"],
)
def test_malformed_blob_fails(token_cipher, blob):
    with pytest.raises(DecryptionError):
        token_cipher.decrypt(blob)


# ============================================================================
# KEY CONFIGURATION
# ============================================================================

def test_from_base64_key_roundtrip(key):
    encoded = base64.b64encode(key).decode()
    first = TokenCipher.from_base64_key(encoded)
    second = TokenCipher.from_base64_key(encoded)

    assert second.decrypt(first.encrypt("shared-key-token")) == "shared-key-token"


def test_missing_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        TokenCipher.from_base64_key("")


def test_invalid_base64_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        TokenCipher.from_base64_key("%%%not-base64%%%")


def test_wrong_key_length_is_configuration_error():
    with pytest.raises(ConfigurationError):
        TokenCipher(os.urandom(20))
