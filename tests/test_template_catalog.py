"""Tests for the template catalog and the default variable builder."""

from unittest.mock import Mock

import pytest

from notifier.notifications.models import Recipient, TemplateNotFoundError, TemplateValidationError
from notifier.templates.catalog import CACHE_PREFIX, TemplateCatalog
from notifier.templates.variables import VariableBuilder


@pytest.fixture
def empty_catalog(database, cache, clock):
    return TemplateCatalog(database, cache=cache, clock=clock)


class TestAdmit:
    def test_admit_extracts_variables(self, empty_catalog):
        template = empty_catalog.admit(
            name="custom-task",
            type="task_assigned",
            subject="Task: {{task.title}}",
            html_template="<p>{{task.title}} for {{user.first_name}}</p>",
            text_template="{{task.title}}",
        )

        assert template.id
        assert template.is_active is True
        assert template.variables == ["task.title", "user.first_name"]
        assert empty_catalog.get_by_type("task_assigned").name == "custom-task"

    def test_rejects_unknown_type_and_bad_syntax(self, empty_catalog):
        with pytest.raises(TemplateValidationError) as exc_info:
            empty_catalog.admit(
                name="broken",
                type="carrier_pigeon",
                subject="Hi {name}",
                html_template="{{#if a}}",
                text_template="ok",
            )

        errors = exc_info.value.errors
        assert "Unknown notification type: carrier_pigeon" in errors
        assert any("single-brace" in e for e in errors)
        assert any("Unclosed" in e for e in errors)
        assert empty_catalog.get_by_name("broken") is None

    def test_same_name_replaces(self, empty_catalog):
        empty_catalog.admit("digest", "system_maintenance", "v1", "<p>v1</p>", "v1")
        empty_catalog.admit("digest", "system_maintenance", "v2", "<p>v2</p>", "v2")

        assert empty_catalog.get_by_name("digest").subject == "v2"
        assert len(empty_catalog.list_active()) == 1

    def test_admit_evicts_cached_lookup(self, empty_catalog, cache):
        empty_catalog.admit("alert", "stock_alert", "old", "<p>old</p>", "old")
        assert empty_catalog.get_by_type("stock_alert").subject == "old"
        assert cache.get(CACHE_PREFIX + "stock_alert") is not None

        empty_catalog.admit("alert", "stock_alert", "new", "<p>new</p>", "new")

        assert empty_catalog.get_by_type("stock_alert").subject == "new"


class TestLookup:
    def test_missing_type_raises(self, empty_catalog):
        with pytest.raises(TemplateNotFoundError):
            empty_catalog.get_by_type("invoice_overdue")

    def test_lookup_served_from_cache(self, database, clock):
        cache = Mock()
        cache.get.return_value = None
        catalog = TemplateCatalog(database, cache=cache, clock=clock, ttl_seconds=120)
        catalog.admit("alert", "stock_alert", "s", "<p>h</p>", "t")

        catalog.get_by_type("stock_alert")

        key, value, ttl = cache.set.call_args.args
        assert key == "template:type:stock_alert"
        assert value["name"] == "alert"
        assert ttl == 120

        cache.get.return_value = value
        assert catalog.get_by_type("stock_alert").name == "alert"

    def test_cache_entry_expires(self, empty_catalog, cache, clock):
        empty_catalog.admit("alert", "stock_alert", "s", "<p>h</p>", "t")
        empty_catalog.get_by_type("stock_alert")

        clock.advance(301)

        assert cache.get(CACHE_PREFIX + "stock_alert") is None

    def test_works_without_cache(self, database, clock):
        catalog = TemplateCatalog(database, cache=None, clock=clock)
        catalog.admit("alert", "stock_alert", "s", "<p>h</p>", "t")
        assert catalog.get_by_type("stock_alert").subject == "s"

    def test_deactivate(self, empty_catalog):
        template = empty_catalog.admit("alert", "stock_alert", "s", "<p>h</p>", "t")
        empty_catalog.get_by_type("stock_alert")

        assert empty_catalog.deactivate(template.id) is True
        assert empty_catalog.deactivate(template.id) is False
        with pytest.raises(TemplateNotFoundError):
            empty_catalog.get_by_type("stock_alert")

    def test_deactivate_unknown(self, empty_catalog):
        assert empty_catalog.deactivate("f" * 32) is False


class TestSeedDefaults:
    def test_seed_installs_every_category(self, empty_catalog):
        assert empty_catalog.seed_defaults() == 14
        assert len(empty_catalog.list_active()) == 14

    def test_seed_is_idempotent(self, empty_catalog):
        empty_catalog.seed_defaults()
        assert empty_catalog.seed_defaults() == 0

    def test_seed_keeps_customised_templates(self, empty_catalog):
        empty_catalog.admit("stock-alert", "stock_alert", "Custom", "<p>c</p>", "c")

        assert empty_catalog.seed_defaults() == 13
        assert empty_catalog.get_by_type("stock_alert").subject == "Custom"


class TestVariableBuilder:
    @pytest.fixture
    def recipient(self):
        return Recipient(user_id="u1", email="Carol@Example.com", first_name="Carol")

    def test_defaults(self, branding, clock, recipient):
        builder = VariableBuilder(branding=branding, clock=clock)

        bag = builder.defaults(recipient, "stock_alert")

        assert bag["base_url"] == "https://app.example.com"
        assert bag["support_email"] == "help@example.com"
        assert bag["company_name"] == "Acme"
        assert bag["current_year"] == 2026
        assert bag["user"]["first_name"] == "Carol"
        assert bag["user"]["name"] == "Carol"
        assert bag["unsubscribe_url"].startswith(
            "https://app.example.com/api/notifications/unsubscribe?token="
        )
        assert bag["unsubscribe_url"].endswith("&category=stock_alert")

    def test_signed_unsubscribe_url(self, branding, clock, recipient):
        unsigned = VariableBuilder(branding=branding, clock=clock).unsubscribe_url(recipient.email)
        signed = VariableBuilder(branding=branding, token_secret="k", clock=clock).unsubscribe_url(
            recipient.email
        )

        assert "." not in unsigned.split("token=")[1]
        assert signed.split("token=")[1].count(".") == 1

    def test_defaults_override_payload(self, branding, clock, recipient):
        builder = VariableBuilder(branding=branding, clock=clock)

        bag = builder.build({"base_url": "https://evil.example", "order": {"id": 7}}, recipient)

        assert bag["base_url"] == "https://app.example.com"
        assert bag["order"] == {"id": 7}
