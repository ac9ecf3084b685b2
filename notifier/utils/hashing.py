"""Identifier generation and keyed hashing."""

import hashlib
import hmac
import uuid


def new_id() -> str:
    """Random 32-character hex identifier used as primary key for every record."""
    return uuid.uuid4().hex


def sign(value: str, secret: str, length: int = 16) -> str:
    """Truncated HMAC-SHA256 of ``value`` (hex).

    Example:
        >>> len(sign("alice@example.com", "s3cret"))
        16
    """
    digest = hmac.new(secret.encode("utf-8"), value.encode("utf-8"), hashlib.sha256)
    return digest.hexdigest()[:length]


def verify_signature(value: str, signature: str, secret: str) -> bool:
    """Constant-time check of a signature produced by ``sign``."""
    expected = sign(value, secret)
    return hmac.compare_digest(expected, signature)
