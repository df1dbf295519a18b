"""API key generation and validation.

Key format: wpm_{environment}_{32_random_alphanumeric_chars}
- environment: "live" or "test"
- Total length: 41 chars
- Regex: ^wpm_(live|test)_[a-zA-Z0-9]{32}$

Keys are never stored in plain text. On creation:
1. Generate key: wpm_live_{random_32_chars}
2. Store sha256(key) so a presented key can be looked up directly
3. Return the key to the caller once
4. Key prefix (first 12 chars) stored for identification in the dashboard and logs
"""

from __future__ import annotations

import re
import secrets
import string

from wpmcp_core.crypto import sha256_hex

# Key format validation
API_KEY_REGEX = re.compile(r"^wpm_(live|test)_[a-zA-Z0-9]{32}$")
ENVIRONMENTS = ("live", "test")
PREFIX_LENGTH = 12

# Characters for random part of key
KEY_CHARS = string.ascii_letters + string.digits


def generate_api_key(environment: str = "live") -> str:
    """Generate a new API key.

    Args:
        environment: "live" or "test"

    Returns:
        Full API key: wpm_{environment}_{random_32_chars}

    Example:
        generate_api_key() -> "wpm_live_a1B2c3D4e5F6g7H8i9J0k1L2m3N4o5P6"
    """
    if environment not in ENVIRONMENTS:
        raise ValueError("environment must be 'live' or 'test'")

    random_part = "".join(secrets.choice(KEY_CHARS) for _ in range(32))
    return f"wpm_{environment}_{random_part}"


def extract_key_prefix(api_key: str) -> str:
    """Extract the display prefix of an API key.

    Example:
        extract_key_prefix("wpm_live_a1B2c3...") -> "wpm_live_a1B"
    """
    if not api_key.startswith("wpm_"):
        return "invalid"
    return api_key[:PREFIX_LENGTH]


def hash_api_key(api_key: str) -> str:
    """Hash an API key for storage and lookup (SHA-256 hex)."""
    return sha256_hex(api_key)


def validate_api_key_format(api_key: str) -> bool:
    """Validate API key format."""
    return bool(API_KEY_REGEX.match(api_key))
