"""
Cryptographic helpers: code hashing and constant-time comparison.
"""

from __future__ import annotations

import hashlib
import hmac


def hash_token(token: str) -> str:
    """Return the hex-encoded SHA-256 digest of *token*.

    Used to hash OTP codes and link tokens before storing them in the
    database so the plaintext is never persisted.

    Args:
        token: The plaintext token string to hash.

    Returns:
        64-character lowercase hex string.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def token_matches(supplied: str, token_hash: str) -> bool:
    """Compare *supplied* against a stored :func:`hash_token` digest.

    Both sides are fixed-length digests, compared with
    :func:`hmac.compare_digest`, so timing does not depend on how many
    leading characters of the code were right.
    """
    return hmac.compare_digest(hash_token(supplied), token_hash)
