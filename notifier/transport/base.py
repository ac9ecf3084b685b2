"""Mail transport interface.

A transport turns rendered messages into delivered email and reports one
``SendResult`` per message. Failures are reported, not raised: a bounce for
one recipient must never fail the other messages of a batch.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence


@dataclass(frozen=True)
class OutboundMessage:
    """One rendered email handed to a transport.

    ``id`` is the queue message id; results are matched back on it.
    """

    id: str
    to: str
    subject: str
    html: str
    text: str


@dataclass(frozen=True)
class SendResult:
    id: str
    success: bool
    message_id: Optional[str] = None  # transport's own id, used for tracking
    error: Optional[str] = None

    @classmethod
    def ok(cls, id: str, message_id: Optional[str] = None) -> "SendResult":
        return cls(id=id, success=True, message_id=message_id)

    @classmethod
    def failed(cls, id: str, error: str) -> "SendResult":
        return cls(id=id, success=False, error=error)


class MailTransport(ABC):
    """Base class for every transport.

    Subclasses implement ``send``. ``send_bulk`` defaults to one ``send`` per
    message; transports with a real batch API override it.
    """

    name = "transport"

    @abstractmethod
    def send(self, message: OutboundMessage) -> SendResult:
        """Deliver one message.

        Returns:
            SendResult; ``success`` False carries the error text
        """

    def send_bulk(self, messages: Sequence[OutboundMessage]) -> List[SendResult]:
        """Deliver several messages in one logical call.

        Returns:
            One result per message, in no particular order; a message without
            a result is treated as failed by the dispatcher
        """
        return [self.send(message) for message in messages]

    def close(self) -> None:
        """Release connections held by the transport."""
