"""Factory for instantiating the configured mail transport."""

from notifier.config.environment import EnvironmentConfig
from notifier.config.models import TransportConfig
from notifier.logging import get_logger

from .base import MailTransport
from .exceptions import TransportConfigurationError
from .resend import ResendTransport
from .smtp import SMTPTransport

logger = get_logger(__name__, component="transport")


def build_transport(config: TransportConfig, env: EnvironmentConfig) -> MailTransport:
    """Create the transport named by ``config.type``.

    Raises:
        TransportConfigurationError: If the type is unknown or its settings are invalid

    Example:
        >>> transport = build_transport(TransportConfig(type="smtp"), env_config)
        >>> transport.send(message)
    """
    transport_type = str(config.type).lower()

    if transport_type == "smtp":
        transport = SMTPTransport.from_environment(
            env, use_tls=config.use_tls, timeout=config.timeout_seconds
        )
    elif transport_type == "resend":
        transport = ResendTransport(
            api_key=env.resend_api_key or "",
            from_address=env.mail_from_address,
            from_name=env.mail_from_name,
            timeout=config.timeout_seconds,
        )
    else:
        raise TransportConfigurationError(
            f"Unknown transport type: {config.type}. Supported types: resend, smtp"
        )

    logger.debug(
        "Created mail transport",
        extra={"event": "transport.created", "transport": transport.name},
    )
    return transport
