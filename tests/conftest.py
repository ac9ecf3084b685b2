"""Shared fixtures: an in-memory database, a fake clock and a wired pipeline."""

import pytest

from notifier.analytics.service import AnalyticsService
from notifier.analytics.tracking import TrackingService
from notifier.cache.memory import InMemoryCache
from notifier.config.models import BrandingConfig
from notifier.dispatcher.service import Dispatcher
from notifier.domain.categories import CategoryRegistry
from notifier.logging.context import clear_log_context
from notifier.notifications.directory import InMemoryUserDirectory
from notifier.notifications.models import Recipient
from notifier.notifications.service import NotificationService
from notifier.persistence.database import Database
from notifier.preferences.gate import PreferenceGate
from notifier.templates.catalog import TemplateCatalog
from notifier.templates.variables import VariableBuilder
from tests.helpers import FakeClock, RecordingTransport

ALICE = Recipient(user_id="u_alice", email="alice@example.com", first_name="Alice", last_name="Smith")
BOB = Recipient(user_id="u_bob", email="bob@example.com", first_name="Bob", last_name="Jones")


@pytest.fixture(autouse=True)
def _isolate_log_context():
    clear_log_context()
    yield
    clear_log_context()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def database():
    db = Database("sqlite:///:memory:")
    yield db
    db.close()


@pytest.fixture
def cache(clock):
    return InMemoryCache(clock=clock)


@pytest.fixture
def registry():
    return CategoryRegistry()


@pytest.fixture
def directory():
    return InMemoryUserDirectory([ALICE, BOB])


@pytest.fixture
def transport():
    return RecordingTransport()


@pytest.fixture
def branding():
    return BrandingConfig(
        base_url="https://app.example.com",
        support_email="help@example.com",
        company_name="Acme",
    )


@pytest.fixture
def catalog(database, cache, clock):
    catalog = TemplateCatalog(database, cache=cache, clock=clock)
    catalog.seed_defaults()
    return catalog


@pytest.fixture
def gate(database, registry, clock):
    return PreferenceGate(database, registry=registry, clock=clock)


@pytest.fixture
def service(database, directory, catalog, gate, registry, branding, clock):
    return NotificationService(
        database,
        directory=directory,
        catalog=catalog,
        gate=gate,
        variables=VariableBuilder(branding=branding, clock=clock),
        registry=registry,
        clock=clock,
    )


@pytest.fixture
def dispatcher(database, transport, registry, clock):
    return Dispatcher(database, transport, registry=registry, clock=clock, max_workers=2)


@pytest.fixture
def tracking(database, clock):
    return TrackingService(database, clock=clock)


@pytest.fixture
def analytics(database, clock):
    return AnalyticsService(database, clock=clock)


ENV_VARS = (
    "DATABASE_URL",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USER",
    "SMTP_PASS",
    "MAIL_FROM_ADDRESS",
    "MAIL_FROM_NAME",
    "RESEND_API_KEY",
    "REDIS_URL",
    "UNSUBSCRIBE_SECRET",
    "USER_DIRECTORY_FILE",
    "LOG_LEVEL",
)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every variable the service reads."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


@pytest.fixture
def mock_env_vars(clean_env):
    """Minimal environment for the default SMTP transport."""
    clean_env.setenv("SMTP_HOST", "smtp.example.com")
    clean_env.setenv("SMTP_PORT", "587")
    clean_env.setenv("MAIL_FROM_ADDRESS", "notify@example.com")
    return clean_env
