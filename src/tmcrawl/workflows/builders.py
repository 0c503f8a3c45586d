"""Assemble a PlaywrightCrawler wired to the navigation lifecycle."""

from __future__ import annotations

import logging
import random
from datetime import timedelta
from typing import Optional

from crawlee import ConcurrencySettings
from crawlee.crawlers import PlaywrightCrawler
from crawlee.sessions import SessionPool

from .artifact_sink import ArtifactSink
from .crawl_config import CrawlSettings
from .handlers import ExtractionHandler, NavigationLifecycle
from .proxy import build_proxy_configuration
from .record_sink import RecordSink

logger = logging.getLogger(__name__)

BROWSERS = ("chromium", "firefox", "webkit")


def browser_type_for(name: str, rng: Optional[random.Random] = None) -> str:
    normalized = (name or "").strip().lower()
    if normalized == "random":
        return (rng or random).choice(BROWSERS)
    if normalized not in BROWSERS:
        raise ValueError(f"Unsupported browser type: {name}")
    return normalized


def build_lifecycle(settings: CrawlSettings) -> NavigationLifecycle:
    return NavigationLifecycle(settings, RecordSink(settings), ArtifactSink(settings))


def build_playwright_crawler(
    handler: ExtractionHandler,
    settings: Optional[CrawlSettings] = None,
    lifecycle: Optional[NavigationLifecycle] = None,
) -> PlaywrightCrawler:
    """Create a crawler whose default route runs ``handler(ctx, navigation)``."""

    settings = settings or CrawlSettings.from_env()
    lifecycle = lifecycle or build_lifecycle(settings)
    browser_type = browser_type_for(settings.browser_type)

    crawler = PlaywrightCrawler(
        browser_type=browser_type,
        headless=settings.headless,
        use_incognito_pages=settings.browser_incognito,
        max_request_retries=max(0, settings.request_attempts_max - 1),
        concurrency_settings=ConcurrencySettings(
            max_concurrency=settings.concurrency_max,
            desired_concurrency=settings.concurrency_max,
            max_tasks_per_minute=settings.requests_per_minute_max,
        ),
        use_session_pool=settings.session_pool_enabled,
        session_pool=SessionPool(
            create_session_settings={"max_usage_count": settings.session_requests_max},
        )
        if settings.session_pool_enabled
        else None,
        request_handler_timeout=timedelta(seconds=settings.request_handler_timeout_secs),
        navigation_timeout=timedelta(seconds=settings.navigation_timeout_secs),
        proxy_configuration=build_proxy_configuration(settings),
    )
    crawler.router.default_handler(lifecycle.wrap(handler))
    crawler.pre_navigation_hook(lifecycle.on_pre_navigation)
    crawler.post_navigation_hook(lifecycle.on_landing)
    crawler.error_handler(lifecycle.on_error)
    crawler.failed_request_handler(lifecycle.on_failure)

    logger.info(
        "Built PlaywrightCrawler browser=%s headless=%s concurrency=%s rpm=%s attempts=%s",
        browser_type,
        settings.headless,
        settings.concurrency_max,
        settings.requests_per_minute_max,
        settings.request_attempts_max,
    )
    return crawler
