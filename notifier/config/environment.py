"""Environment variable loading and validation."""

import os
from typing import List, Optional

from email_validator import EmailNotValidError, validate_email

from .exceptions import ConfigurationError

DEFAULT_DATABASE_URL = "sqlite:///./data/notifier.db"
VALID_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class EnvironmentConfig:
    """Secrets and deployment-specific settings read from the environment."""

    def __init__(
        self,
        database_url: Optional[str] = None,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_pass: Optional[str] = None,
        mail_from_address: Optional[str] = None,
        mail_from_name: Optional[str] = None,
        resend_api_key: Optional[str] = None,
        redis_url: Optional[str] = None,
        unsubscribe_secret: Optional[str] = None,
        user_directory_file: Optional[str] = None,
        log_level: Optional[str] = None,
    ):
        self.database_url = database_url or DEFAULT_DATABASE_URL
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.smtp_user = smtp_user
        self.smtp_pass = smtp_pass
        self.mail_from_address = mail_from_address
        self.mail_from_name = mail_from_name or "Notifier"
        self.resend_api_key = resend_api_key
        self.redis_url = redis_url
        self.unsubscribe_secret = unsubscribe_secret
        self.user_directory_file = user_directory_file
        self.log_level = log_level


def load_environment_config(
    transport_type: str = "smtp",
    cache_backend: str = "memory",
) -> EnvironmentConfig:
    """Load and validate environment variables.

    Always required:
    - MAIL_FROM_ADDRESS: sender address for every outbound message

    Required for the SMTP transport:
    - SMTP_HOST, SMTP_PORT (SMTP_USER/SMTP_PASS optional but paired)

    Required for the Resend transport:
    - RESEND_API_KEY

    Required for the Redis cache backend:
    - REDIS_URL

    Optional:
    - DATABASE_URL (default: sqlite:///./data/notifier.db)
    - MAIL_FROM_NAME, UNSUBSCRIBE_SECRET, USER_DIRECTORY_FILE, LOG_LEVEL

    Args:
        transport_type: Configured transport, decides which credentials are required
        cache_backend: Configured cache backend

    Returns:
        EnvironmentConfig with validated values

    Raises:
        ConfigurationError: If required variables are missing or invalid
    """
    errors: List[str] = []

    mail_from_address = os.getenv("MAIL_FROM_ADDRESS")
    if not mail_from_address:
        errors.append("Missing required environment variable: MAIL_FROM_ADDRESS")
    else:
        try:
            mail_from_address = validate_email(
                mail_from_address, check_deliverability=False
            ).normalized
        except EmailNotValidError as e:
            errors.append(f"Invalid MAIL_FROM_ADDRESS '{mail_from_address}': {e}")

    smtp_host = os.getenv("SMTP_HOST")
    smtp_port_str = os.getenv("SMTP_PORT")
    smtp_user = os.getenv("SMTP_USER")
    smtp_pass = os.getenv("SMTP_PASS")
    smtp_port = None

    if smtp_port_str:
        try:
            smtp_port = int(smtp_port_str)
            if not 1 <= smtp_port <= 65535:
                errors.append(f"Invalid SMTP_PORT: {smtp_port}. Must be between 1 and 65535.")
        except ValueError:
            errors.append(f"Invalid SMTP_PORT: '{smtp_port_str}'. Must be a valid integer.")

    if transport_type == "smtp":
        if not smtp_host:
            errors.append("Missing required environment variable: SMTP_HOST")
        if not smtp_port_str:
            errors.append("Missing required environment variable: SMTP_PORT")
        if bool(smtp_user) != bool(smtp_pass):
            errors.append("SMTP_USER and SMTP_PASS must be set together for authentication.")

    resend_api_key = os.getenv("RESEND_API_KEY")
    if transport_type == "resend" and not resend_api_key:
        errors.append("Missing required environment variable: RESEND_API_KEY")

    redis_url = os.getenv("REDIS_URL")
    if cache_backend == "redis" and not redis_url:
        errors.append("Missing required environment variable: REDIS_URL")

    log_level = os.getenv("LOG_LEVEL")
    if log_level and log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(
            f"Invalid LOG_LEVEL: '{log_level}'. Must be one of: {', '.join(VALID_LOG_LEVELS)}"
        )

    if errors:
        raise ConfigurationError(
            "Environment variable validation failed",
            errors=errors,
            suggestions=[
                "Copy .env.example to .env and fill in your credentials",
                "Only the credentials of the configured transport are required",
            ],
        )

    return EnvironmentConfig(
        database_url=os.getenv("DATABASE_URL"),
        smtp_host=smtp_host,
        smtp_port=smtp_port,
        smtp_user=smtp_user,
        smtp_pass=smtp_pass,
        mail_from_address=mail_from_address,
        mail_from_name=os.getenv("MAIL_FROM_NAME"),
        resend_api_key=resend_api_key,
        redis_url=redis_url,
        unsubscribe_secret=os.getenv("UNSUBSCRIBE_SECRET"),
        user_directory_file=os.getenv("USER_DIRECTORY_FILE"),
        log_level=log_level.upper() if log_level else None,
    )
