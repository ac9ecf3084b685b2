"""SMTP transport built on smtplib.

Port 465 uses implicit TLS; any other port connects in plain text and
upgrades with STARTTLS when ``use_tls`` is set.
"""

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr, make_msgid
from typing import Callable, List, Optional, Sequence

from email_validator import EmailNotValidError, validate_email

from notifier.config.environment import EnvironmentConfig
from notifier.logging import get_logger

from .base import MailTransport, OutboundMessage, SendResult
from .exceptions import TransportConfigurationError

logger = get_logger(__name__, component="transport")


class SMTPTransport(MailTransport):
    """Sends messages through an SMTP relay.

    Args:
        host: SMTP server host
        port: SMTP server port
        from_address: Envelope and header sender address
        from_name: Display name for the sender
        username: Login user (optional; must be paired with password)
        password: Login password
        use_tls: Upgrade plain connections with STARTTLS
        timeout: Socket timeout in seconds for connect and every command
        smtp_factory: Factory for SMTP instances (for mocking)
        smtp_ssl_factory: Factory for SMTP_SSL instances (for mocking)
    """

    name = "smtp"

    def __init__(
        self,
        host: str,
        port: int,
        from_address: str,
        from_name: str = "Notifier",
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30,
        smtp_factory: Optional[Callable] = None,
        smtp_ssl_factory: Optional[Callable] = None,
    ):
        if not host:
            raise TransportConfigurationError("SMTP host is required")
        if not from_address:
            raise TransportConfigurationError("Sender address is required")

        self.host = host
        self.port = port
        self.from_address = from_address
        self.from_name = from_name
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout
        self.smtp_factory = smtp_factory or smtplib.SMTP
        self.smtp_ssl_factory = smtp_ssl_factory or smtplib.SMTP_SSL

    @classmethod
    def from_environment(cls, env: EnvironmentConfig, use_tls: bool = True, timeout: float = 30) -> "SMTPTransport":
        return cls(
            host=env.smtp_host,
            port=env.smtp_port,
            from_address=env.mail_from_address,
            from_name=env.mail_from_name,
            username=env.smtp_user,
            password=env.smtp_pass,
            use_tls=use_tls,
            timeout=timeout,
        )

    def _connect(self):
        if self.port == 465:
            logger.debug(f"Connecting to {self.host}:{self.port} with implicit TLS")
            context = ssl.create_default_context()
            smtp = self.smtp_ssl_factory(self.host, self.port, timeout=self.timeout, context=context)
        else:
            logger.debug(f"Connecting to {self.host}:{self.port}")
            smtp = self.smtp_factory(self.host, self.port, timeout=self.timeout)
            if self.use_tls:
                smtp.starttls(context=ssl.create_default_context())

        if self.username and self.password:
            smtp.login(self.username, self.password)
        return smtp

    def _close(self, smtp) -> None:
        try:
            smtp.quit()
        except (smtplib.SMTPException, OSError) as e:
            logger.warning(f"Error closing SMTP connection: {e}")

    def build_message(self, message: OutboundMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = formataddr((self.from_name, self.from_address))
        email["To"] = message.to
        email["Subject"] = message.subject
        email["Message-ID"] = make_msgid(domain=self.from_address.rpartition("@")[2] or None)
        email.set_content(message.text)
        email.add_alternative(message.html, subtype="html")
        return email

    def _deliver(self, smtp, message: OutboundMessage) -> SendResult:
        try:
            validate_email(message.to, check_deliverability=False)
        except EmailNotValidError as e:
            return SendResult.failed(message.id, f"Invalid recipient address '{message.to}': {e}")

        email = self.build_message(message)
        try:
            smtp.send_message(email)
        except smtplib.SMTPRecipientsRefused as e:
            return SendResult.failed(message.id, f"Recipient refused: {e}")
        except smtplib.SMTPDataError as e:
            return SendResult.failed(message.id, f"Message rejected: {e}")
        return SendResult.ok(message.id, message_id=email["Message-ID"].strip("<>"))

    def send(self, message: OutboundMessage) -> SendResult:
        return self.send_bulk([message])[0]

    def send_bulk(self, messages: Sequence[OutboundMessage]) -> List[SendResult]:
        """Deliver every message over a single SMTP session.

        Per-recipient rejections fail only that message; a connection or
        protocol error fails the messages not yet delivered.
        """
        results: List[SendResult] = []
        if not messages:
            return results

        smtp = None
        try:
            smtp = self._connect()
            for message in messages:
                results.append(self._deliver(smtp, message))
        except TimeoutError as e:
            error = f"SMTP timeout after {self.timeout}s: {e}"
            logger.warning(error, extra={"event": "transport.smtp.timeout", "host": self.host})
            results.extend(self._fail_remaining(messages, results, error))
        except smtplib.SMTPException as e:
            error = f"SMTP error during message delivery: {e}"
            logger.error(error, extra={"event": "transport.smtp.error", "host": self.host})
            results.extend(self._fail_remaining(messages, results, error))
        except OSError as e:
            error = f"Network error during SMTP connection: {e}"
            logger.error(error, extra={"event": "transport.smtp.error", "host": self.host})
            results.extend(self._fail_remaining(messages, results, error))
        finally:
            if smtp is not None:
                self._close(smtp)

        logger.debug(
            f"SMTP session delivered {sum(r.success for r in results)}/{len(messages)} message(s)",
            extra={"event": "transport.smtp.session", "host": self.host},
        )
        return results

    @staticmethod
    def _fail_remaining(
        messages: Sequence[OutboundMessage], done: Sequence[SendResult], error: str
    ) -> List[SendResult]:
        finished = {result.id for result in done}
        return [SendResult.failed(m.id, error) for m in messages if m.id not in finished]
