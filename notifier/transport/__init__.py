"""Mail transports and the send-rate limiter."""

from .base import MailTransport, OutboundMessage, SendResult
from .exceptions import (
    TransportConfigurationError,
    TransportError,
    TransportHTTPError,
    TransportResponseError,
    TransportTimeoutError,
)
from .factory import build_transport
from .rate_limiter import RateLimiter
from .resend import ResendTransport
from .smtp import SMTPTransport

__all__ = [
    "MailTransport",
    "OutboundMessage",
    "SendResult",
    "SMTPTransport",
    "ResendTransport",
    "RateLimiter",
    "build_transport",
    "TransportError",
    "TransportHTTPError",
    "TransportTimeoutError",
    "TransportResponseError",
    "TransportConfigurationError",
]
