"""Configuration schema models using Pydantic."""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from notifier.domain.models import NotificationType

from .duration import DurationParseError, parse_duration, validate_duration_range


class LogLevel(str, Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LogFormat(str, Enum):
    JSON = "json"
    KEY_VALUE = "key-value"


class TransportType(str, Enum):
    """Supported outbound mail transports."""

    SMTP = "smtp"
    RESEND = "resend"


class CacheBackend(str, Enum):
    MEMORY = "memory"
    REDIS = "redis"


def _check_duration(value: str, min_seconds: int, max_seconds: int, label: str) -> str:
    try:
        seconds = parse_duration(value)
        validate_duration_range(seconds, min_seconds, max_seconds, label=label)
    except DurationParseError as e:
        raise ValueError(str(e)) from e
    return value


class DispatcherConfig(BaseModel):
    """Dispatch loop settings."""

    poll_interval: str = Field("30s", description="Time between dispatch passes")
    batch_size: int = Field(50, ge=1, le=1000, description="Messages fetched per pass")
    max_workers: int = Field(4, ge=1, le=64, description="Concurrent single sends per pass")
    send_timeout_seconds: float = Field(
        30, gt=0, le=600, description="Upper bound on one transport call"
    )
    stale_claim_after: str = Field(
        "10m", description="Age after which an unresolved claim is recovered"
    )

    @field_validator("poll_interval")
    @classmethod
    def validate_poll_interval(cls, v: str) -> str:
        return _check_duration(v, 1, 3600, "Poll interval")

    @field_validator("stale_claim_after")
    @classmethod
    def validate_stale_claim_after(cls, v: str) -> str:
        return _check_duration(v, 60, 86400, "Stale claim threshold")

    @property
    def poll_interval_seconds(self) -> int:
        return parse_duration(self.poll_interval)

    @property
    def stale_claim_after_seconds(self) -> int:
        return parse_duration(self.stale_claim_after)

    @model_validator(mode="after")
    def stale_threshold_covers_send_timeout(self):
        if self.stale_claim_after_seconds <= self.send_timeout_seconds:
            raise ValueError(
                "stale_claim_after must be longer than send_timeout_seconds, "
                "otherwise in-flight sends would be recovered"
            )
        return self


class TransportConfig(BaseModel):
    """Mail transport selection and limits (credentials come from the environment)."""

    type: TransportType = Field(TransportType.SMTP, description="smtp or resend")
    use_tls: bool = Field(True, description="Use STARTTLS (SMTP on ports other than 465)")
    timeout_seconds: int = Field(30, ge=1, le=300, description="Network timeout")
    rate_limit_per_minute: int = Field(
        100, ge=0, description="Sends allowed per rolling minute (0 disables limiting)"
    )

    model_config = {"use_enum_values": True}


class BrandingConfig(BaseModel):
    """Values injected into every template render."""

    base_url: str = Field("http://localhost:8000", description="Public base URL")
    support_email: str = Field("support@example.com")
    company_name: str = Field("Notifier")

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        stripped = v.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return stripped


class CacheConfig(BaseModel):
    backend: CacheBackend = Field(CacheBackend.MEMORY, description="memory or redis")
    template_ttl_seconds: int = Field(300, ge=1, description="Template lookup cache TTL")

    model_config = {"use_enum_values": True}


class RetentionConfig(BaseModel):
    """How long processed rows are kept before cleanup deletes them."""

    events_days: int = Field(30, ge=1)
    queue_days: int = Field(7, ge=1)
    logs_days: int = Field(90, ge=1)
    cleanup_interval: str = Field("24h")

    @field_validator("cleanup_interval")
    @classmethod
    def validate_cleanup_interval(cls, v: str) -> str:
        return _check_duration(v, 60, 7 * 86400, "Cleanup interval")

    @property
    def cleanup_interval_seconds(self) -> int:
        return parse_duration(self.cleanup_interval)


class ApiConfig(BaseModel):
    enabled: bool = Field(True, description="Serve tracking/unsubscribe endpoints")
    host: str = Field("127.0.0.1")
    port: int = Field(8000, ge=1, le=65535)


class LoggingConfig(BaseModel):
    level: LogLevel = Field(LogLevel.INFO, description="Log level")
    format: LogFormat = Field(LogFormat.KEY_VALUE, description="json or key-value")

    model_config = {"use_enum_values": True}


class CategoryOverride(BaseModel):
    """Per-category adjustments to the built-in delivery table."""

    max_attempts: Optional[int] = Field(None, ge=1, le=20)
    retry_delay_seconds: Optional[float] = Field(None, gt=0)
    batchable: Optional[bool] = None


class AppConfig(BaseModel):
    """Root configuration object for the notification pipeline.

    Every section is optional; an empty file yields a working default setup.
    """

    dispatcher: DispatcherConfig = Field(default_factory=DispatcherConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    branding: BrandingConfig = Field(default_factory=BrandingConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    retention: RetentionConfig = Field(default_factory=RetentionConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    categories: Dict[str, CategoryOverride] = Field(default_factory=dict)

    @field_validator("categories")
    @classmethod
    def known_categories(cls, v: Dict[str, CategoryOverride]) -> Dict[str, CategoryOverride]:
        known = {t.value for t in NotificationType}
        unknown = sorted(set(v) - known)
        if unknown:
            raise ValueError(f"Unknown notification categories: {', '.join(unknown)}")
        return v

    def category_overrides(self) -> Dict[str, Dict]:
        """Overrides in the shape ``CategoryRegistry`` expects."""
        return {
            name: override.model_dump(exclude_none=True)
            for name, override in self.categories.items()
        }
