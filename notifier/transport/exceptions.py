"""Custom exceptions for mail transports."""


class TransportError(Exception):
    """Base exception for all transport errors.

    Transports convert these into failed ``SendResult`` values, so the
    dispatcher sees them as ordinary delivery failures that count toward a
    message's attempts.
    """


class TransportHTTPError(TransportError):
    """The mail API answered with a 4xx or 5xx status."""

    def __init__(self, message: str, status_code: int, url: str) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TransportTimeoutError(TransportError):
    """The transport did not answer within its configured timeout."""


class TransportResponseError(TransportError):
    """The mail API answered with a body that could not be understood."""


class TransportConfigurationError(TransportError):
    """The transport was configured with missing or invalid settings."""
