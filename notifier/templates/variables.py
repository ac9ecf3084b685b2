"""Default variables injected into every render."""

from typing import Any, Dict, Mapping, Optional
from urllib.parse import urlencode

from notifier.config.models import BrandingConfig
from notifier.notifications.models import Recipient
from notifier.preferences.tokens import encode_token
from notifier.utils.timestamps import Clock, utc_now

UNSUBSCRIBE_PATH = "/api/notifications/unsubscribe"


class VariableBuilder:
    """Merges an event payload with the branding and per-recipient defaults.

    Default variables take precedence over payload keys of the same name, so
    a payload cannot forge the unsubscribe link.

    Args:
        branding: Base URL, support address and company name
        token_secret: Optional secret used to sign unsubscribe tokens
        clock: Source of the current year
    """

    def __init__(
        self,
        branding: Optional[BrandingConfig] = None,
        token_secret: Optional[str] = None,
        clock: Clock = utc_now,
    ):
        self.branding = branding or BrandingConfig()
        self.token_secret = token_secret
        self.clock = clock

    def unsubscribe_url(self, email: str, category: Optional[str] = None) -> str:
        params = {"token": encode_token(email, self.token_secret)}
        if category:
            params["category"] = category
        return f"{self.branding.base_url}{UNSUBSCRIBE_PATH}?{urlencode(params)}"

    def defaults(self, recipient: Recipient, category: Optional[str] = None) -> Dict[str, Any]:
        branding = self.branding
        return {
            "base_url": branding.base_url,
            "support_email": branding.support_email,
            "company_name": branding.company_name,
            "current_year": self.clock().year,
            "unsubscribe_url": self.unsubscribe_url(recipient.email, category),
            "user": recipient.as_variables(),
        }

    def build(
        self,
        payload: Mapping[str, Any],
        recipient: Recipient,
        category: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Variable bag for one message.

        Example:
            >>> bag = builder.build({"task": {"title": "Ship"}}, recipient, "task_assigned")
            >>> bag["task"]["title"], bag["user"]["email"]
            ('Ship', 'alice@example.com')
        """
        return {**dict(payload), **self.defaults(recipient, category)}
