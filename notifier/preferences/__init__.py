"""Per-user delivery preferences and unsubscribe handling."""

from .exceptions import InvalidUnsubscribeToken, PreferenceError, ProtectedPreferenceError
from .gate import PROTECTED_FLAG, PreferenceGate
from .tokens import decode_token, encode_token

__all__ = [
    "PreferenceGate",
    "PROTECTED_FLAG",
    "PreferenceError",
    "InvalidUnsubscribeToken",
    "ProtectedPreferenceError",
    "encode_token",
    "decode_token",
]
