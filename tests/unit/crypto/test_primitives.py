"""Unit tests for cryptographic primitives."""

import base64

import pytest

from wpmcp_core.crypto import (
    InvalidTag,
    SecretBox,
    constant_time_equals,
    decrypt,
    encrypt,
    generate_uuid,
    hash_password,
    random_hex,
    random_token,
    sha256_hex,
    sign_hmac,
    verify_hmac,
    verify_password,
)


class TestPasswordHashing:
    """Tests for hash_password / verify_password."""

    def test_roundtrip(self):
        """Test a hashed password verifies."""
        stored = hash_password("correct horse battery staple")
        assert verify_password("correct horse battery staple", stored)

    def test_wrong_password_rejected(self):
        """Test a different password does not verify."""
        stored = hash_password("secret-one")
        assert not verify_password("secret-two", stored)

    def test_salt_differs_per_call(self):
        """Test the same password hashes differently each time."""
        assert hash_password("same") != hash_password("same")

    def test_stored_form_is_salt_plus_key(self):
        """Test stored value decodes to 16-byte salt + 32-byte key."""
        raw = base64.b64decode(hash_password("pw"))
        assert len(raw) == 48

    @pytest.mark.parametrize("stored", ["", "not-base64!!", base64.b64encode(b"short").decode()])
    def test_malformed_hash_returns_false(self, stored):
        """Test malformed stored values never raise."""
        assert verify_password("pw", stored) is False


class TestConstantTimeEquals:
    """Tests for constant_time_equals."""

    def test_equal_strings(self):
        assert constant_time_equals("abc", "abc")

    def test_different_strings(self):
        assert not constant_time_equals("abc", "abd")

    def test_length_mismatch(self):
        """Test differing lengths compare unequal."""
        assert not constant_time_equals("abc", "abcd")

    def test_mixed_str_and_bytes(self):
        assert constant_time_equals("abc", b"abc")


class TestSecretBox:
    """Tests for SecretBox AES-GCM encryption."""

    def test_roundtrip(self, secret_box):
        """Test encrypt then decrypt returns the plaintext."""
        token = secret_box.encrypt("app password 123")
        assert secret_box.decrypt(token) == "app password 123"

    def test_nonce_is_random(self, secret_box):
        """Test two encryptions of the same text differ."""
        assert secret_box.encrypt("x") != secret_box.encrypt("x")

    def test_ciphertext_layout(self, secret_box):
        """Test ciphertext is nonce (12) + plaintext + tag (16)."""
        raw = base64.b64decode(secret_box.encrypt("hello"))
        assert len(raw) == 12 + len("hello") + 16

    def test_tampered_ciphertext_fails(self, secret_box):
        """Test a flipped byte is detected by the auth tag."""
        raw = bytearray(base64.b64decode(secret_box.encrypt("hello")))
        raw[-1] ^= 0x01
        with pytest.raises(InvalidTag):
            secret_box.decrypt(base64.b64encode(bytes(raw)).decode())

    def test_wrong_key_fails(self, secret_box):
        """Test ciphertext does not open under another master key."""
        other = SecretBox("another-master-key-that-is-long-enough")
        with pytest.raises(InvalidTag):
            other.decrypt(secret_box.encrypt("hello"))

    def test_short_ciphertext_rejected(self, secret_box):
        with pytest.raises(ValueError):
            secret_box.decrypt(base64.b64encode(b"tiny").decode())

    def test_invalid_base64_rejected(self, secret_box):
        with pytest.raises(ValueError):
            secret_box.decrypt("%%%not base64%%%")

    def test_empty_master_key_rejected(self):
        with pytest.raises(ValueError):
            SecretBox("")

    def test_repr_hides_key(self, secret_box):
        assert "hidden" in repr(secret_box)

    def test_module_level_helpers(self):
        """Test encrypt/decrypt helpers derive the same box for the same key."""
        key = "module-level-helper-key-0123456789"
        assert decrypt(encrypt("value", key), key) == "value"


class TestHmac:
    """Tests for HMAC signing."""

    def test_sign_is_deterministic(self):
        assert sign_hmac("data", "secret") == sign_hmac("data", "secret")

    def test_verify_accepts_valid_signature(self):
        sig = sign_hmac("data", "secret")
        assert verify_hmac("data", "secret", sig)

    def test_verify_rejects_other_secret(self):
        sig = sign_hmac("data", "secret")
        assert not verify_hmac("data", "other", sig)

    def test_signature_is_hex_sha256(self):
        assert len(sign_hmac(b"data", b"secret")) == 64


class TestRandomness:
    """Tests for random helpers."""

    def test_random_hex_length(self):
        assert len(random_hex(32)) == 64

    def test_random_token_unique(self):
        assert len({random_token() for _ in range(50)}) == 50

    def test_uuid_format(self):
        assert len(generate_uuid()) == 36

    def test_sha256_hex(self):
        assert sha256_hex("abc") == (
            "ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad"
        )
