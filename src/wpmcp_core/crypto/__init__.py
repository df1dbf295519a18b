"""Cryptographic primitives: password hashing, AES-GCM, HMAC, randomness."""

from .primitives import (
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
