"""Stateless unsubscribe tokens.

A token is the URL-safe base64 form of the recipient address, so the same
recipient always gets the same link and no lookup table is needed to verify
it. When a secret is configured a truncated HMAC is appended after a dot,
which stops anyone from unsubscribing an address they merely know.
"""

import base64
import binascii
from typing import Optional

from notifier.utils.hashing import sign, verify_signature

from .exceptions import InvalidUnsubscribeToken


def encode_token(email: str, secret: Optional[str] = None) -> str:
    """Build the unsubscribe token for ``email``.

    Example:
        >>> encode_token("alice@example.com")
        'YWxpY2VAZXhhbXBsZS5jb20'
    """
    normalized = email.strip().lower()
    encoded = base64.urlsafe_b64encode(normalized.encode("utf-8")).decode("ascii").rstrip("=")
    if secret:
        return f"{encoded}.{sign(normalized, secret)}"
    return encoded


def decode_token(token: str, secret: Optional[str] = None) -> str:
    """Recover the address from a token produced by ``encode_token``.

    Raises:
        InvalidUnsubscribeToken: If the token is malformed, or a secret is
            configured and the signature is missing or wrong
    """
    if not token or not token.strip():
        raise InvalidUnsubscribeToken("Unsubscribe token is empty")

    encoded, _, signature = token.strip().partition(".")
    padded = encoded + "=" * (-len(encoded) % 4)
    try:
        email = base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError) as e:
        raise InvalidUnsubscribeToken(f"Unsubscribe token is not valid base64: {e}") from e

    if "@" not in email:
        raise InvalidUnsubscribeToken("Unsubscribe token does not encode an email address")

    if secret:
        if not signature:
            raise InvalidUnsubscribeToken("Unsubscribe token is missing its signature")
        if not verify_signature(email, signature, secret):
            raise InvalidUnsubscribeToken("Unsubscribe token signature does not match")

    return email
