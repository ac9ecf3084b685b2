"""Non-fatal configuration checks surfaced as UserWarnings."""

import warnings
from typing import Any, Dict, List

from .duration import DurationParseError, parse_duration


def check_for_warnings(config_dict: Dict[str, Any]) -> List[str]:
    """Inspect the raw configuration for settings that work but look wrong.

    Args:
        config_dict: Raw configuration dictionary (before validation)

    Returns:
        List of warning messages
    """
    messages: List[str] = []

    dispatcher = config_dict.get("dispatcher") or {}
    if isinstance(dispatcher, dict):
        poll_interval = dispatcher.get("poll_interval")
        if poll_interval is not None:
            try:
                if parse_duration(poll_interval) < 5:
                    messages.append(
                        f"Very short dispatcher.poll_interval ({poll_interval}) "
                        "will hit the database on almost every second"
                    )
            except DurationParseError:
                pass  # reported by model validation

        batch_size = dispatcher.get("batch_size")
        if isinstance(batch_size, int) and batch_size > 500:
            messages.append(
                f"Large dispatcher.batch_size ({batch_size}) may exceed the transport rate limit in one pass"
            )

    transport = config_dict.get("transport") or {}
    if isinstance(transport, dict) and transport.get("rate_limit_per_minute") == 0:
        messages.append("transport.rate_limit_per_minute is 0: outbound sends are not rate limited")

    categories = config_dict.get("categories") or {}
    if isinstance(categories, dict):
        security = categories.get("security_alert") or {}
        if isinstance(security, dict) and security.get("batchable"):
            messages.append("Batching security_alert delays critical notifications")

    return messages


def emit_warnings(messages: List[str]) -> None:
    for message in messages:
        warnings.warn(message, UserWarning, stacklevel=2)
