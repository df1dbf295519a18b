"""Cryptographic primitives for the trust layer.

- Password hashing: PBKDF2-HMAC-SHA256, 100 000 iterations, 16-byte salt.
  Stored form is base64(salt || derived_key).
- Symmetric encryption: AES-256-GCM with a 12-byte random nonce. Stored form
  is base64(nonce || ciphertext || tag). The key is derived once from the
  master secret.
- HMAC-SHA256 signing with constant-time verification.

Nothing in this module logs its inputs.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import os
import secrets
import uuid
from functools import lru_cache

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

PBKDF2_ITERATIONS = 100_000
SALT_LENGTH = 16
KEY_LENGTH = 32
NONCE_LENGTH = 12
DEFAULT_KEY_SALT = b"wp-mcp-saas-salt"

__all__ = [
    "InvalidTag",
    "SecretBox",
    "constant_time_equals",
    "decrypt",
    "encrypt",
    "generate_uuid",
    "hash_password",
    "random_hex",
    "random_token",
    "sha256_hex",
    "sign_hmac",
    "verify_hmac",
    "verify_password",
]


def _derive(secret: bytes, salt: bytes, iterations: int = PBKDF2_ITERATIONS) -> bytes:
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(secret)


def hash_password(plaintext: str) -> str:
    """Hash a password for storage.

    Args:
        plaintext: Password to hash

    Returns:
        base64(salt || key); a fresh salt is used for every call
    """
    salt = os.urandom(SALT_LENGTH)
    key = _derive(plaintext.encode("utf-8"), salt)
    return base64.b64encode(salt + key).decode("ascii")


def verify_password(plaintext: str, stored: str) -> bool:
    """Verify a password against a stored hash.

    Malformed stored values return False rather than raising.
    """
    try:
        raw = base64.b64decode(stored, validate=True)
    except (ValueError, TypeError):
        return False
    if len(raw) != SALT_LENGTH + KEY_LENGTH:
        return False

    salt, expected = raw[:SALT_LENGTH], raw[SALT_LENGTH:]
    candidate = _derive(plaintext.encode("utf-8"), salt)
    return hmac.compare_digest(candidate, expected)


def constant_time_equals(a: str | bytes, b: str | bytes) -> bool:
    """Compare two secrets without an early exit on the first differing byte.

    A length mismatch returns False immediately; lengths are not secret.
    """
    if isinstance(a, str):
        a = a.encode("utf-8")
    if isinstance(b, str):
        b = b.encode("utf-8")
    if len(a) != len(b):
        return False
    return hmac.compare_digest(a, b)


class SecretBox:
    """AES-256-GCM encryption under a key derived from a master secret.

    The derivation runs once, at construction. The salt is fixed and
    non-secret, so the same master secret always yields the same key and
    previously stored ciphertexts stay readable across restarts.
    """

    def __init__(
        self,
        master_key: str | bytes,
        salt: str | bytes = DEFAULT_KEY_SALT,
        iterations: int = PBKDF2_ITERATIONS,
    ) -> None:
        if isinstance(master_key, str):
            master_key = master_key.encode("utf-8")
        if isinstance(salt, str):
            salt = salt.encode("utf-8")
        if not master_key:
            raise ValueError("master key must not be empty")
        self._aead = AESGCM(_derive(master_key, salt, iterations))

    def encrypt(self, plaintext: str) -> str:
        """Encrypt text. Returns base64(nonce || ciphertext || tag)."""
        nonce = os.urandom(NONCE_LENGTH)
        ciphertext = self._aead.encrypt(nonce, plaintext.encode("utf-8"), None)
        return base64.b64encode(nonce + ciphertext).decode("ascii")

    def decrypt(self, token: str) -> str:
        """Decrypt a value produced by ``encrypt``.

        Raises:
            InvalidTag: If the ciphertext was tampered with or the key differs
            ValueError: If the value is not valid base64 or is too short
        """
        raw = base64.b64decode(token, validate=True)
        if len(raw) <= NONCE_LENGTH:
            raise ValueError("ciphertext too short")
        nonce, ciphertext = raw[:NONCE_LENGTH], raw[NONCE_LENGTH:]
        return self._aead.decrypt(nonce, ciphertext, None).decode("utf-8")

    def __repr__(self) -> str:
        return "SecretBox(<key hidden>)"


@lru_cache(maxsize=8)
def _box_for(key: str) -> SecretBox:
    return SecretBox(key)


def encrypt(plaintext: str, key: str) -> str:
    """Encrypt with a box derived from ``key``."""
    return _box_for(key).encrypt(plaintext)


def decrypt(ciphertext: str, key: str) -> str:
    """Decrypt with a box derived from ``key``."""
    return _box_for(key).decrypt(ciphertext)


def sign_hmac(data: str | bytes, secret: str | bytes) -> str:
    """HMAC-SHA256 hex digest."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    if isinstance(secret, str):
        secret = secret.encode("utf-8")
    return hmac.new(secret, data, hashlib.sha256).hexdigest()


def verify_hmac(data: str | bytes, secret: str | bytes, signature: str) -> bool:
    """Check an HMAC-SHA256 hex digest in constant time."""
    return constant_time_equals(sign_hmac(data, secret), signature)


def sha256_hex(value: str) -> str:
    """Plain SHA-256 hex digest, used for deterministic secret lookup."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def random_token(nbytes: int = 32) -> str:
    """URL-safe random token."""
    return secrets.token_urlsafe(nbytes)


def random_hex(nbytes: int = 32) -> str:
    """Random hex string of ``2 * nbytes`` characters."""
    return secrets.token_hex(nbytes)


def generate_uuid() -> str:
    return str(uuid.uuid4())
