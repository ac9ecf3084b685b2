"""Main entry point for the notification pipeline service."""

from dotenv import load_dotenv
load_dotenv()

import argparse
import os
import signal
import sys
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

import uvicorn

from notifier.analytics.service import AnalyticsService
from notifier.analytics.tracking import TrackingService
from notifier.cache import build_cache
from notifier.cache.base import Cache
from notifier.config.environment import EnvironmentConfig
from notifier.config.exceptions import ConfigurationError
from notifier.config.loader import load_config
from notifier.config.models import AppConfig
from notifier.dispatcher.service import Dispatcher
from notifier.domain.categories import CategoryRegistry
from notifier.logging import get_logger
from notifier.logging.config import configure_logging
from notifier.notifications.directory import InMemoryUserDirectory, UserDirectory, load_user_directory
from notifier.notifications.service import NotificationService
from notifier.persistence.database import Database
from notifier.persistence.retention import RetentionService
from notifier.preferences.gate import PreferenceGate
from notifier.scheduler import ScheduledJob, SchedulerService
from notifier.templates.catalog import TemplateCatalog
from notifier.templates.variables import VariableBuilder
from notifier.transport.base import MailTransport
from notifier.transport.factory import build_transport
from notifier.transport.rate_limiter import RateLimiter
from notifier.utils.timestamps import Clock, utc_now

logger = get_logger(__name__, component="cli")


@dataclass
class Services:
    """Every long-lived component, constructed once and passed by reference."""

    database: Database
    cache: Cache
    transport: MailTransport
    catalog: TemplateCatalog
    gate: PreferenceGate
    notifications: NotificationService
    dispatcher: Dispatcher
    retention: RetentionService
    tracking: TrackingService
    analytics: AnalyticsService

    def close(self) -> None:
        self.transport.close()
        self.cache.close()
        self.database.close()


def build_services(
    app_config: AppConfig,
    env_config: EnvironmentConfig,
    directory: Optional[UserDirectory] = None,
    transport: Optional[MailTransport] = None,
    clock: Clock = utc_now,
) -> Services:
    """Wire the pipeline from configuration.

    Args:
        directory: User directory (defaults to USER_DIRECTORY_FILE, or empty)
        transport: Mail transport (defaults to the configured one)
        clock: Source of "now" shared by every component
    """
    database = Database(env_config.database_url)
    cache = build_cache(app_config.cache.backend, env_config.redis_url, clock=clock)
    registry = CategoryRegistry(app_config.category_overrides())

    if directory is None:
        if env_config.user_directory_file:
            directory = load_user_directory(env_config.user_directory_file)
        else:
            logger.warning(
                "USER_DIRECTORY_FILE is not set; no recipients can be resolved",
                extra={"event": "directory.empty"},
            )
            directory = InMemoryUserDirectory()

    transport = transport or build_transport(app_config.transport, env_config)
    catalog = TemplateCatalog(
        database, cache=cache, clock=clock, ttl_seconds=app_config.cache.template_ttl_seconds
    )
    gate = PreferenceGate(database, registry=registry, clock=clock)
    variables = VariableBuilder(
        branding=app_config.branding, token_secret=env_config.unsubscribe_secret, clock=clock
    )
    notifications = NotificationService(
        database,
        directory=directory,
        catalog=catalog,
        gate=gate,
        variables=variables,
        registry=registry,
        clock=clock,
        token_secret=env_config.unsubscribe_secret,
    )

    dispatcher_config = app_config.dispatcher
    rate_limiter = RateLimiter(cache, app_config.transport.rate_limit_per_minute, clock=clock)
    dispatcher = Dispatcher(
        database,
        transport,
        registry=registry,
        rate_limiter=rate_limiter,
        clock=clock,
        batch_size=dispatcher_config.batch_size,
        max_workers=dispatcher_config.max_workers,
        send_timeout_seconds=dispatcher_config.send_timeout_seconds,
        stale_claim_after_seconds=dispatcher_config.stale_claim_after_seconds,
    )

    retention_config = app_config.retention
    retention = RetentionService(
        database,
        events_days=retention_config.events_days,
        queue_days=retention_config.queue_days,
        logs_days=retention_config.logs_days,
        clock=clock,
    )

    return Services(
        database=database,
        cache=cache,
        transport=transport,
        catalog=catalog,
        gate=gate,
        notifications=notifications,
        dispatcher=dispatcher,
        retention=retention,
        tracking=TrackingService(database, clock=clock),
        analytics=AnalyticsService(database, clock=clock),
    )


def load_runtime_config(
    config_path: Optional[Path], log_level_override: Optional[str]
) -> Tuple[AppConfig, EnvironmentConfig]:
    """Load configuration and settle the effective log level.

    Priority for the log level: CLI, then LOG_LEVEL, then the config file.
    """
    app_config, env_config = load_config(config_path)

    if log_level_override:
        env_config.log_level = log_level_override
    elif not env_config.log_level:
        env_config.log_level = app_config.logging.level or "INFO"

    return app_config, env_config


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Notification pipeline - queued email delivery with retries, batching and preferences"
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: config.yaml, then config/config.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (overrides config and environment)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "--manual-run",
        action="store_true",
        help="Run a single dispatch pass immediately and exit",
    )
    mode.add_argument(
        "--seed-templates",
        action="store_true",
        help="Install the built-in templates for categories without one and exit",
    )
    mode.add_argument(
        "--cleanup",
        action="store_true",
        help="Run retention cleanup once and exit",
    )
    return parser


def run_daemon(services: Services, app_config: AppConfig) -> int:
    """Run the scheduler (and the API when enabled) until a signal arrives."""
    shutdown_event = threading.Event()
    scheduler_service = SchedulerService(
        jobs=[
            ScheduledJob(
                id="dispatch",
                name="Dispatch pass",
                func=services.dispatcher.process_queue,
                interval_seconds=app_config.dispatcher.poll_interval_seconds,
            ),
            ScheduledJob(
                id="retention",
                name="Retention cleanup",
                func=services.retention.run,
                interval_seconds=app_config.retention.cleanup_interval_seconds,
                run_immediately=False,
            ),
        ],
        shutdown_event=shutdown_event,
    )
    scheduler_service.start()

    if app_config.api.enabled:
        from notifier.api import create_app

        api = create_app(
            services.database,
            services.notifications,
            services.tracking,
            services.analytics,
            base_url=app_config.branding.base_url,
        )
        logger.info(
            f"Serving API on {app_config.api.host}:{app_config.api.port}",
            extra={"event": "service.api.starting", "port": app_config.api.port},
        )
        # uvicorn installs its own SIGINT/SIGTERM handlers and returns on shutdown
        uvicorn.run(api, host=app_config.api.host, port=app_config.api.port, log_config=None)
        scheduler_service.shutdown(wait=False)
        return 0

    def signal_handler(signum, frame):
        logger.info(
            f"Received signal {signum}, shutting down",
            extra={"event": "service.signal_received", "signal": signum},
        )
        scheduler_service.shutdown(wait=False)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    logger.info("Scheduler started. Press Ctrl+C to stop", extra={"event": "service.daemon_mode.started"})
    try:
        shutdown_event.wait()
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, shutting down", extra={"event": "service.keyboard_interrupt"})
        scheduler_service.shutdown(wait=False)
    return 0


def main(argv=None) -> int:
    """Entry point for the ``notifier`` console script.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    start_time = time.time()
    args = build_parser().parse_args(argv)
    services = None

    try:
        app_config, env_config = load_runtime_config(args.config, args.log_level)
        configure_logging(
            level=env_config.log_level,
            format_type=app_config.logging.format,
            environment=os.environ.get("ENVIRONMENT", "local"),
        )

        logger.info(
            "Notification pipeline starting",
            extra={
                "event": "service.starting",
                "transport": app_config.transport.type,
                "cache_backend": app_config.cache.backend,
                "log_level": env_config.log_level,
            },
        )

        services = build_services(app_config, env_config)

        if args.seed_templates:
            installed = services.catalog.seed_defaults()
            print(f"Installed {installed} template(s)")
            return 0

        if args.cleanup:
            result = services.retention.run()
            print(
                f"Deleted {result.events_deleted} event(s), {result.queue_deleted} queue row(s), "
                f"{result.logs_deleted} log entr{'y' if result.logs_deleted == 1 else 'ies'}"
            )
            return 0

        if args.manual_run:
            logger.info("Executing manual dispatch pass", extra={"event": "service.manual_run.starting"})
            result = services.dispatcher.process_queue()
            logger.info(
                f"Manual pass completed: {result.sent} sent, {result.retried} retried, {result.failed} failed",
                extra={"event": "service.manual_run.completed", **result.as_dict()},
            )
            return 1 if result.error else 0

        services.catalog.seed_defaults()
        return run_daemon(services, app_config)

    except ConfigurationError as e:
        print(f"Configuration Error: {e}", file=sys.stderr)
        logger.error(
            f"Configuration error: {e}",
            extra={"event": "config.error", "error_type": "ConfigurationError"},
        )
        return 1
    except KeyboardInterrupt:
        print("\nShutdown requested by user", file=sys.stderr)
        return 0
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        logger.critical(
            "Fatal error during startup",
            extra={"event": "service.startup.failed", "error_type": type(e).__name__},
            exc_info=True,
        )
        return 1
    finally:
        if services is not None:
            services.close()
        logger.info(
            "Notification pipeline stopped",
            extra={"event": "service.stopping", "uptime_seconds": round(time.time() - start_time, 2)},
        )


if __name__ == "__main__":
    sys.exit(main())
