"""Template catalog: persisted, typed templates with cached lookup."""

from typing import List, Optional

from notifier.cache.base import Cache
from notifier.domain.models import EmailTemplate, NotificationType
from notifier.logging import get_logger
from notifier.notifications.models import TemplateNotFoundError, TemplateValidationError
from notifier.persistence.database import Database
from notifier.persistence.repositories import TemplateRepository
from notifier.utils.hashing import new_id
from notifier.utils.timestamps import Clock, utc_now

from .defaults import DEFAULT_TEMPLATES
from .validation import extract_variables, validate_template

logger = get_logger(__name__, component="templates")

CACHE_PREFIX = "template:type:"


class TemplateCatalog:
    """Admits, stores and looks up email templates.

    Lookups by category go through the cache; every write that could change
    which template is active for a category evicts that category's entry.

    Args:
        database: Database holding the ``email_templates`` table
        cache: Cache capability for category lookups (None disables caching)
        clock: Source of created/updated timestamps
        ttl_seconds: Lifetime of a cached lookup
    """

    def __init__(
        self,
        database: Database,
        cache: Optional[Cache] = None,
        clock: Clock = utc_now,
        ttl_seconds: float = 300,
    ):
        self.database = database
        self.cache = cache
        self.clock = clock
        self.ttl_seconds = ttl_seconds

    def admit(
        self,
        name: str,
        type: str,
        subject: str,
        html_template: str,
        text_template: str,
        is_active: bool = True,
    ) -> EmailTemplate:
        """Validate a template and store it, replacing any template of the same name.

        Returns:
            The stored template, with ``variables`` extracted from its parts

        Raises:
            TemplateValidationError: If the category is unknown or any part
                fails validation
        """
        errors = []
        try:
            NotificationType(type)
        except ValueError:
            errors.append(f"Unknown notification type: {type}")
        if not name or not name.strip():
            errors.append("Template name is required")
        errors.extend(validate_template(subject, html_template, text_template))

        if errors:
            logger.warning(
                f"Rejected template '{name}' with {len(errors)} error(s)",
                extra={"event": "template.rejected", "template": name, "error_count": len(errors)},
            )
            raise TemplateValidationError(f"Template '{name}' failed validation", errors)

        now = self.clock()
        template = EmailTemplate(
            id=new_id(),
            name=name,
            type=type,
            subject=subject,
            html_template=html_template,
            text_template=text_template,
            variables=extract_variables(subject, html_template, text_template),
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )

        with self.database.session() as session:
            repo = TemplateRepository(session)
            existing = repo.get_by_name(template.name)
            if existing is None:
                stored = repo.add(template)
                action = "created"
            else:
                stored = repo.replace(template)
                action = "replaced"

        self._evict(type)
        if existing is not None and existing.type != type:
            self._evict(existing.type)

        logger.info(
            f"Template '{stored.name}' {action}",
            extra={"event": f"template.{action}", "template": stored.name, "type": stored.type},
        )
        return stored

    def get_by_type(self, notification_type: str) -> EmailTemplate:
        """Active template for a category.

        Raises:
            TemplateNotFoundError: If the category has no active template
        """
        key = CACHE_PREFIX + notification_type
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return EmailTemplate.model_validate(cached)

        with self.database.session() as session:
            template = TemplateRepository(session).get_active_by_type(notification_type)

        if template is None:
            raise TemplateNotFoundError(f"No active template for notification type: {notification_type}")

        if self.cache is not None:
            self.cache.set(key, template.model_dump(mode="json"), self.ttl_seconds)
        return template

    def get_by_name(self, name: str) -> Optional[EmailTemplate]:
        with self.database.session() as session:
            return TemplateRepository(session).get_by_name(name)

    def list_active(self) -> List[EmailTemplate]:
        with self.database.session() as session:
            return TemplateRepository(session).list_active()

    def deactivate(self, template_id: str) -> bool:
        """Deactivate a template so it is no longer used for new messages.

        Returns:
            True if the template was active and is now inactive
        """
        with self.database.session() as session:
            repo = TemplateRepository(session)
            template = repo.get(template_id)
            if template is None:
                return False
            changed = repo.deactivate(template_id, self.clock())

        if changed:
            self._evict(template.type)
            logger.info(
                f"Template '{template.name}' deactivated",
                extra={"event": "template.deactivated", "template": template.name},
            )
        return changed

    def seed_defaults(self) -> int:
        """Install the built-in template for every category that has none.

        Existing templates (active or not) are never overwritten.

        Returns:
            Number of templates installed
        """
        installed = 0
        for default in DEFAULT_TEMPLATES:
            if self.get_by_name(default.name) is not None:
                continue
            self.admit(
                name=default.name,
                type=default.type,
                subject=default.subject,
                html_template=default.html_template,
                text_template=default.text_template,
            )
            installed += 1

        logger.info(
            f"Seeded {installed} default template(s)",
            extra={"event": "template.seeded", "installed": installed},
        )
        return installed

    def _evict(self, notification_type: str) -> None:
        if self.cache is not None:
            self.cache.delete(CACHE_PREFIX + notification_type)
