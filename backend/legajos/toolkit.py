"""
Toolkit assembly.

Builds the cache, retry executor, progress registry, notification queue
and selection coordinator from Settings and owns their lifecycles.
"""

from dataclasses import dataclass
from typing import Optional

import structlog

from .constants import APP_NAME, APP_VERSION
from .core.config import Settings, get_settings
from .core.logging import LogBuffer, configure_logging
from .domain.entities import LegajoData
from .infrastructure.http.fetcher import FetchJson, HttpxFetcher, LegajoEndpoints
from .services.cache.ttl_cache import CacheConfig, TTLCache
from .services.notifications.queue import NotificationConfig, NotificationQueue
from .services.progress.registry import ProgressConfig, ProgressRegistry
from .services.retry.executor import RetryExecutor, RetryPolicy
from .services.selection.coordinator import LegajoSelector

logger = structlog.get_logger()


@dataclass
class ResilienceToolkit:
    """All toolkit components sharing one configuration."""

    settings: Settings
    log_buffer: LogBuffer
    cache: TTLCache[LegajoData]
    retry: RetryExecutor
    progress: ProgressRegistry
    notifications: NotificationQueue
    fetcher: FetchJson
    selector: LegajoSelector

    def start(self) -> None:
        """Start background sweeps. Requires a running event loop."""
        if self.settings.ENABLE_CACHE:
            self.cache.start_cleanup()
        self.progress.start_cleanup()
        logger.info(
            "Toolkit started",
            app=APP_NAME,
            version=APP_VERSION,
            environment=self.settings.ENVIRONMENT,
        )

    async def close(self) -> None:
        self.cache.destroy()
        self.progress.destroy()
        self.notifications.clear()
        if isinstance(self.fetcher, HttpxFetcher):
            await self.fetcher.close()
        logger.info("Toolkit closed", app=APP_NAME)

    async def __aenter__(self) -> "ResilienceToolkit":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


def build_toolkit(
    settings: Optional[Settings] = None,
    fetcher: Optional[FetchJson] = None,
    log_buffer: Optional[LogBuffer] = None,
    retry: Optional[RetryExecutor] = None,
) -> ResilienceToolkit:
    """
    Build a toolkit from settings.

    Args:
        settings: Toolkit settings (cached environment settings by default)
        fetcher: FetchJson implementation (an HttpxFetcher by default)
        log_buffer: Buffer to attach to the logging pipeline
        retry: Retry executor to use instead of one built from settings

    Returns:
        Assembled ResilienceToolkit
    """
    settings = settings or get_settings()
    log_buffer = configure_logging(settings, log_buffer)

    cache: TTLCache[LegajoData] = TTLCache(
        CacheConfig(
            default_ttl_seconds=settings.CACHE_DEFAULT_TTL_SECONDS,
            max_size=settings.CACHE_MAX_SIZE,
            cleanup_interval_seconds=settings.CACHE_CLEANUP_INTERVAL_SECONDS,
        ),
        name="legajos",
    )
    retry = retry or RetryExecutor(
        RetryPolicy(
            max_attempts=settings.RETRY_MAX_ATTEMPTS,
            base_delay_seconds=settings.RETRY_BASE_DELAY_SECONDS,
            max_delay_seconds=settings.RETRY_MAX_DELAY_SECONDS,
            backoff_multiplier=settings.RETRY_BACKOFF_MULTIPLIER,
            jitter=settings.RETRY_JITTER,
        )
    )
    progress = ProgressRegistry(
        ProgressConfig(
            max_trackers=settings.PROGRESS_MAX_TRACKERS,
            auto_cleanup=settings.PROGRESS_AUTO_CLEANUP,
            cleanup_delay_seconds=settings.PROGRESS_CLEANUP_DELAY_SECONDS,
            cleanup_interval_seconds=settings.PROGRESS_CLEANUP_INTERVAL_SECONDS,
        )
    )
    notifications = NotificationQueue(
        NotificationConfig(
            default_duration_seconds=settings.NOTIFICATION_DEFAULT_DURATION_SECONDS,
            max_notifications=settings.NOTIFICATION_MAX_COUNT,
            deduplicate=settings.NOTIFICATION_DEDUPLICATE,
        )
    )
    fetcher = fetcher or HttpxFetcher(timeout=settings.API_TIMEOUT_SECONDS)

    selector = LegajoSelector(
        fetch=fetcher,
        endpoints=LegajoEndpoints.from_settings(settings),
        cache=cache,
        retry=retry,
        progress=progress,
        notifications=notifications,
        cache_ttl_seconds=settings.CACHE_DEFAULT_TTL_SECONDS,
        enable_cache=settings.ENABLE_CACHE,
        enable_retry=settings.ENABLE_RETRY,
        log_buffer=log_buffer,
    )

    logger.debug(
        "Toolkit built",
        environment=settings.ENVIRONMENT,
        cache_enabled=settings.ENABLE_CACHE,
        retry_enabled=settings.ENABLE_RETRY,
    )
    return ResilienceToolkit(
        settings=settings,
        log_buffer=log_buffer,
        cache=cache,
        retry=retry,
        progress=progress,
        notifications=notifications,
        fetcher=fetcher,
        selector=selector,
    )
