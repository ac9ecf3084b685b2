"""Resend HTTP API transport.

Uses the single-message endpoint for ``send`` and the batch endpoint for
``send_bulk``. The batch endpoint is all-or-nothing: an HTTP error fails
every message of the call.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import requests

from notifier.logging import get_logger

from .base import MailTransport, OutboundMessage, SendResult
from .exceptions import (
    TransportConfigurationError,
    TransportError,
    TransportHTTPError,
    TransportResponseError,
    TransportTimeoutError,
)

logger = get_logger(__name__, component="transport")

API_URL = "https://api.resend.com"
MAX_BATCH_SIZE = 100


class ResendTransport(MailTransport):
    """Sends messages through the Resend REST API.

    Args:
        api_key: Resend API key
        from_address: Sender address (must belong to a verified domain)
        from_name: Display name for the sender
        timeout: HTTP timeout in seconds
        session: Optional requests session (for testing)
    """

    name = "resend"

    def __init__(
        self,
        api_key: str,
        from_address: str,
        from_name: str = "Notifier",
        timeout: float = 30,
        session: Optional[requests.Session] = None,
        base_url: str = API_URL,
    ):
        if not api_key or not api_key.strip():
            raise TransportConfigurationError("Resend API key is required")
        if not from_address:
            raise TransportConfigurationError("Sender address is required")

        self.from_header = f"{from_name} <{from_address}>" if from_name else from_address
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_key.strip()}",
                "Content-Type": "application/json",
                "User-Agent": "notification-pipeline/1.0",
            }
        )

    def _payload(self, message: OutboundMessage) -> Dict[str, Any]:
        return {
            "from": self.from_header,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
            "text": message.text,
        }

    def _post(self, path: str, body: Any) -> Any:
        """POST JSON to the API.

        Raises:
            TransportHTTPError: On 4xx or 5xx status
            TransportTimeoutError: On timeout
            TransportResponseError: On an unparseable body
        """
        url = f"{self.base_url}{path}"
        try:
            response = self._session.post(url, json=body, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            logger.warning(
                f"Request to {url} timed out after {self.timeout} seconds",
                extra={"event": "transport.resend.timeout", "url": url},
            )
            raise TransportTimeoutError(f"Request to {url} timed out after {self.timeout} seconds") from e
        except requests.exceptions.RequestException as e:
            logger.error(
                f"Request to {url} failed: {e}",
                extra={"event": "transport.resend.error", "error_type": type(e).__name__},
            )
            raise TransportHTTPError(f"Request to {url} failed: {e}", status_code=0, url=url) from e

        if response.status_code >= 400:
            retryable = response.status_code == 429 or response.status_code >= 500
            logger.log(
                logging.WARNING if retryable else logging.ERROR,
                f"HTTP {response.status_code} error from {url}",
                extra={"event": "transport.resend.http_error", "status_code": response.status_code},
            )
            raise TransportHTTPError(
                f"HTTP {response.status_code}: {self._error_detail(response)}",
                status_code=response.status_code,
                url=url,
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportResponseError(f"Failed to parse JSON response from {url}: {e}") from e

    @staticmethod
    def _error_detail(response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.reason or "error"
        if isinstance(body, dict) and body.get("message"):
            return str(body["message"])
        return response.reason or "error"

    def send(self, message: OutboundMessage) -> SendResult:
        try:
            data = self._post("/emails", self._payload(message))
        except TransportError as e:
            return SendResult.failed(message.id, str(e))

        if not isinstance(data, dict) or not data.get("id"):
            return SendResult.failed(message.id, "Resend response did not include a message id")
        return SendResult.ok(message.id, message_id=str(data["id"]))

    def send_bulk(self, messages: Sequence[OutboundMessage]) -> List[SendResult]:
        """Deliver through the batch endpoint, in chunks of ``MAX_BATCH_SIZE``.

        Results are matched to messages by position in each chunk.
        """
        results: List[SendResult] = []
        for start in range(0, len(messages), MAX_BATCH_SIZE):
            chunk = list(messages[start:start + MAX_BATCH_SIZE])
            try:
                data = self._post("/emails/batch", [self._payload(m) for m in chunk])
            except TransportError as e:
                results.extend(SendResult.failed(m.id, str(e)) for m in chunk)
                continue

            entries = data.get("data") if isinstance(data, dict) else None
            if not isinstance(entries, list):
                entries = []
            for index, message in enumerate(chunk):
                entry = entries[index] if index < len(entries) else None
                if isinstance(entry, dict) and entry.get("id"):
                    results.append(SendResult.ok(message.id, message_id=str(entry["id"])))
                else:
                    results.append(
                        SendResult.failed(message.id, "Resend batch response had no id for this message")
                    )
        return results

    def close(self) -> None:
        self._session.close()
