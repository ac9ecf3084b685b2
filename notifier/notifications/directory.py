"""User directory: resolves user ids to recipients.

The directory is owned by the host application. ``InMemoryUserDirectory``
serves tests and small deployments, optionally loaded from a YAML file:

    users:
      - id: u_123
        email: alice@example.com
        first_name: Alice
        last_name: Smith
"""

import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, Iterable, Optional

import yaml

from notifier.config.exceptions import ConfigurationError
from notifier.logging import get_logger

from .models import Recipient

logger = get_logger(__name__, component="directory")


class UserDirectory(ABC):
    @abstractmethod
    def resolve(self, user_id: str) -> Optional[Recipient]:
        """Return the recipient for ``user_id``, or None if unknown."""

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[Recipient]:
        """Return the recipient owning ``email`` (case-insensitive), or None."""


class InMemoryUserDirectory(UserDirectory):
    def __init__(self, recipients: Iterable[Recipient] = ()):
        self._by_id: Dict[str, Recipient] = {}
        self._lock = threading.Lock()
        for recipient in recipients:
            self.add(recipient)

    def add(self, recipient: Recipient) -> None:
        with self._lock:
            self._by_id[recipient.user_id] = recipient

    def remove(self, user_id: str) -> None:
        with self._lock:
            self._by_id.pop(user_id, None)

    def resolve(self, user_id: str) -> Optional[Recipient]:
        with self._lock:
            return self._by_id.get(user_id)

    def find_by_email(self, email: str) -> Optional[Recipient]:
        wanted = email.strip().lower()
        with self._lock:
            for recipient in self._by_id.values():
                if recipient.email.lower() == wanted:
                    return recipient
        return None

    def __len__(self) -> int:
        return len(self._by_id)


def load_user_directory(path: str) -> InMemoryUserDirectory:
    """Build a directory from a YAML file.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    file_path = Path(path)
    if not file_path.exists():
        raise ConfigurationError(
            f"User directory file not found: {path}",
            suggestions=["Set USER_DIRECTORY_FILE to an existing YAML file"],
        )

    try:
        with open(file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in user directory file {path}: {e}") from e

    entries = data.get("users") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigurationError(
            f"User directory file {path} must contain a 'users' list",
            suggestions=["See config.example.yaml for the expected layout"],
        )

    errors = []
    recipients = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("id") or not entry.get("email"):
            errors.append(f"users[{index}]: 'id' and 'email' are required")
            continue
        recipients.append(
            Recipient(
                user_id=str(entry["id"]),
                email=str(entry["email"]).strip(),
                first_name=str(entry.get("first_name") or ""),
                last_name=str(entry.get("last_name") or ""),
                display_name=str(entry.get("display_name") or ""),
            )
        )

    if errors:
        raise ConfigurationError(f"Invalid user directory file {path}", errors=errors)

    logger.info(
        f"Loaded {len(recipients)} user(s) from {path}",
        extra={"event": "directory.loaded", "users": len(recipients)},
    )
    return InMemoryUserDirectory(recipients)
