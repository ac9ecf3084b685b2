"""Preference gate: per-user opt-outs for each notification category.

Security alerts can never be disabled. The stored flag is pinned to True by
the model, and ``may_deliver`` does not consult it at all.
"""

from typing import Any, Dict, Mapping, Optional

from pydantic import ValidationError

from notifier.domain.categories import CategoryRegistry
from notifier.domain.models import (
    PREFERENCE_FLAGS,
    DigestFrequency,
    NotificationType,
    PreferenceRecord,
)
from notifier.logging import get_logger
from notifier.persistence.database import Database
from notifier.persistence.repositories import PreferenceRepository
from notifier.utils.timestamps import Clock, utc_now

from .exceptions import PreferenceError, ProtectedPreferenceError

logger = get_logger(__name__, component="preferences")

PROTECTED_FLAG = "security_alerts"
UPDATABLE_FIELDS = PREFERENCE_FLAGS + ("digest_frequency",)


class PreferenceGate:
    """Decides whether a category may be delivered to a user.

    Args:
        database: Database holding the preference records
        registry: Category table (maps categories to preference flags)
        clock: Source of "now" for record timestamps
    """

    def __init__(
        self,
        database: Database,
        registry: Optional[CategoryRegistry] = None,
        clock: Clock = utc_now,
    ):
        self.database = database
        self.registry = registry or CategoryRegistry()
        self.clock = clock

    def may_deliver(self, user_id: str, category: str) -> bool:
        """Whether ``category`` may be sent to ``user_id``.

        A user without a stored record gets every category: a missing
        record must not suppress a first notification. No record is created.

        Raises:
            ValueError: If ``category`` is not a known notification category
        """
        config = self.registry.get(category)
        if not config.requires_preference_check:
            return True

        with self.database.session() as session:
            record = PreferenceRepository(session).get(user_id)

        if record is None:
            return True
        if record.digest_frequency == DigestFrequency.NEVER.value:
            return False
        return record.flag(config.preference_key)

    def get_preferences(self, user_id: str) -> PreferenceRecord:
        """Return the user's record, creating it with defaults on first access."""
        with self.database.session() as session:
            repo = PreferenceRepository(session)
            record = repo.get(user_id)
            if record is not None:
                return record

            now = self.clock()
            record = repo.save(PreferenceRecord(user_id=user_id, created_at=now, updated_at=now))

        logger.info(
            f"Created default preferences for user {user_id}",
            extra={"event": "preferences.created", "user_id": user_id},
        )
        return record

    def update_preferences(self, user_id: str, updates: Mapping[str, Any]) -> PreferenceRecord:
        """Apply a partial update to the user's record.

        Setting ``security_alerts`` to False is ignored (and logged); the flag
        stays True.

        Args:
            user_id: User to update
            updates: Mapping of preference flag or ``digest_frequency`` to new value

        Returns:
            The stored record after the update

        Raises:
            PreferenceError: If a key is unknown or a value is invalid
        """
        unknown = sorted(set(updates) - set(UPDATABLE_FIELDS))
        if unknown:
            raise PreferenceError(f"Unknown preference fields: {', '.join(unknown)}")

        if PROTECTED_FLAG in updates and not updates[PROTECTED_FLAG]:
            logger.warning(
                f"Ignoring attempt to disable security alerts for user {user_id}",
                extra={"event": "preferences.security_override", "user_id": user_id},
            )

        current = self.get_preferences(user_id)
        merged: Dict[str, Any] = {**current.model_dump(), **dict(updates)}
        merged["updated_at"] = self.clock()

        try:
            record = PreferenceRecord.model_validate(merged)
        except ValidationError as e:
            raise PreferenceError(f"Invalid preference values: {e}") from e

        with self.database.session() as session:
            stored = PreferenceRepository(session).save(record)

        logger.info(
            f"Updated preferences for user {user_id}",
            extra={
                "event": "preferences.updated",
                "user_id": user_id,
                "fields": ",".join(sorted(updates)),
            },
        )
        return stored

    def unsubscribe(self, user_id: str, category: Optional[str] = None) -> PreferenceRecord:
        """Turn off one preference, or every non-security preference.

        Args:
            user_id: User to unsubscribe
            category: Notification category (``stock_alert``) or preference
                flag (``stock_alerts``); None turns off every non-security flag

        Raises:
            ProtectedPreferenceError: If ``category`` maps to security alerts
            PreferenceError: If ``category`` is not recognised
        """
        if category:
            flag = self.resolve_flag(category)
            updates = {flag: False}
        else:
            updates = {flag: False for flag in PREFERENCE_FLAGS if flag != PROTECTED_FLAG}

        record = self.update_preferences(user_id, updates)
        logger.info(
            f"User {user_id} unsubscribed from {category or 'all non-critical notifications'}",
            extra={"event": "preferences.unsubscribed", "user_id": user_id, "category": category},
        )
        return record

    def resolve_flag(self, category: str) -> str:
        """Map a category or flag name to its preference flag."""
        if category in PREFERENCE_FLAGS:
            flag = category
        else:
            try:
                flag = self.registry.get(NotificationType(category)).preference_key
            except ValueError:
                raise PreferenceError(f"Invalid notification type: {category}") from None
            if flag is None:
                flag = PROTECTED_FLAG

        if flag == PROTECTED_FLAG:
            raise ProtectedPreferenceError("Security alerts cannot be unsubscribed from")
        return flag

    def preferences_summary(self) -> Dict[str, Any]:
        """Aggregate opt-in counts across every stored record."""
        with self.database.session() as session:
            repo = PreferenceRepository(session)
            return {
                "total_users": repo.count(),
                "enabled": repo.flag_counts(),
                "digest_frequency": repo.digest_counts(),
            }
