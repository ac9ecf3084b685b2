"""Configuration management for the notification pipeline."""

from .environment import EnvironmentConfig, load_environment_config
from .exceptions import ConfigurationError
from .loader import load_config, parse_config, read_config_file
from .models import (
    ApiConfig,
    AppConfig,
    BrandingConfig,
    CacheBackend,
    CacheConfig,
    CategoryOverride,
    DispatcherConfig,
    LogFormat,
    LoggingConfig,
    LogLevel,
    RetentionConfig,
    TransportConfig,
    TransportType,
)

__all__ = [
    "load_config",
    "parse_config",
    "read_config_file",
    "load_environment_config",
    "AppConfig",
    "ApiConfig",
    "BrandingConfig",
    "CacheConfig",
    "CategoryOverride",
    "DispatcherConfig",
    "LoggingConfig",
    "RetentionConfig",
    "TransportConfig",
    "EnvironmentConfig",
    "CacheBackend",
    "LogFormat",
    "LogLevel",
    "TransportType",
    "ConfigurationError",
]
