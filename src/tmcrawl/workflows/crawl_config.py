"""Crawl settings (sinks, local fallbacks, engine limits, proxy).

Every setting is read from ``TMC_<NAME>`` first and ``<NAME>`` second so a
shared environment can host several crawlers side by side. Values are
resolved once into a :class:`CrawlSettings`; callers can construct their own
instance to override any of them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping, Optional

from dotenv import load_dotenv

ENV_PREFIX = "TMC_"

DEFAULT_ENVIRONMENT = "development"
DEFAULT_CLICKHOUSE_DB = "tmc_development"
DEFAULT_S3_REGION = "us-east-1"
DEFAULT_PROXY_URL_TEMPLATE = "http://{{USERNAME}}:{{PASSWORD}}@{{HOST}}:{{PORT}}"
BROWSER_TYPES = ("chromium", "firefox", "webkit", "random")


def _env(name: str, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    source = os.environ if environ is None else environ
    value = source.get(f"{ENV_PREFIX}{name}")
    if value is None:
        value = source.get(name)
    return value


def _env_str(name: str, default: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    value = _env(name, environ)
    if value is None:
        return default
    value = value.strip()
    return value or default


def _env_path(name: str, environ: Optional[Mapping[str, str]] = None) -> Optional[Path]:
    value = _env_str(name, None, environ)
    return Path(value) if value else None


def _env_int(name: str, default: int, environ: Optional[Mapping[str, str]] = None) -> int:
    try:
        raw = _env(name, environ) or ""
        return int(raw) if raw.strip() else default
    except (TypeError, ValueError):
        return default


def str_to_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"true", "1"}:
        return True
    if normalized in {"false", "0"}:
        return False
    return bool(normalized) if normalized else default


def _env_bool(name: str, default: bool, environ: Optional[Mapping[str, str]] = None) -> bool:
    return str_to_bool(_env(name, environ), default)


@dataclass
class CrawlSettings:
    """Resolved configuration for one crawler process."""

    environment: str = DEFAULT_ENVIRONMENT

    clickhouse_url: Optional[str] = None
    clickhouse_db: str = DEFAULT_CLICKHOUSE_DB
    clickhouse_user: Optional[str] = None
    clickhouse_password: Optional[str] = None
    clickhouse_timeout_secs: int = 30

    s3_endpoint: Optional[str] = None
    s3_bucket: Optional[str] = None
    s3_access_key_id: Optional[str] = None
    s3_secret_access_key: Optional[str] = None
    s3_region: str = DEFAULT_S3_REGION

    navigation_write_local_path: Optional[Path] = None
    mark_write_local_path: Optional[Path] = None
    coverage_write_local_path: Optional[Path] = None
    screenshot_failure_local_path: Optional[Path] = None
    screenshot_success_local_path: Optional[Path] = None
    content_failure_local_path: Optional[Path] = None
    content_success_local_path: Optional[Path] = None

    concurrency_max: int = 5
    requests_per_minute_max: int = 120
    request_attempts_max: int = 5
    session_pool_enabled: bool = True
    session_requests_max: int = 20
    navigation_timeout_secs: int = 6000
    request_handler_timeout_secs: int = 6000
    capture_timeout_secs: int = 30
    headless: bool = True
    browser_type: str = "chromium"
    browser_incognito: bool = False

    proxy_disabled: bool = False
    proxy_host: Optional[str] = None
    proxy_port: Optional[str] = None
    proxy_user: Optional[str] = None
    proxy_password: Optional[str] = None
    proxy_url_template: str = DEFAULT_PROXY_URL_TEMPLATE

    @property
    def clickhouse_enabled(self) -> bool:
        return bool(self.clickhouse_url)

    @property
    def s3_enabled(self) -> bool:
        return all([self.s3_endpoint, self.s3_bucket, self.s3_access_key_id, self.s3_secret_access_key])

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, *, dotenv: bool = True) -> "CrawlSettings":
        if dotenv and environ is None:
            load_dotenv()
        browser_type = (_env_str("CRAWL_BROWSER_TYPE", "chromium", environ) or "chromium").lower()
        if browser_type not in BROWSER_TYPES:
            raise ValueError(f"Unsupported browser type: {browser_type}")
        return cls(
            environment=_env_str("CORSEARCH_ENV", DEFAULT_ENVIRONMENT, environ) or DEFAULT_ENVIRONMENT,
            clickhouse_url=(_env_str("CLICKHOUSE_URL", None, environ) or "").rstrip("/") or None,
            clickhouse_db=_env_str("CLICKHOUSE_DB", DEFAULT_CLICKHOUSE_DB, environ) or DEFAULT_CLICKHOUSE_DB,
            clickhouse_user=_env_str("CLICKHOUSE_USER", None, environ),
            clickhouse_password=_env_str("CLICKHOUSE_PASSWORD", None, environ),
            clickhouse_timeout_secs=max(1, _env_int("CLICKHOUSE_TIMEOUT_SECS", 30, environ)),
            s3_endpoint=_env_str("S3_ENDPOINT", None, environ),
            s3_bucket=_env_str("S3_BUCKET", None, environ),
            s3_access_key_id=_env_str("S3_ACCESS_KEY_ID", None, environ),
            s3_secret_access_key=_env_str("S3_SECRET_ACCESS_KEY", None, environ),
            s3_region=_env_str("S3_REGION", DEFAULT_S3_REGION, environ) or DEFAULT_S3_REGION,
            navigation_write_local_path=_env_path("NAVIGATION_WRITE_LOCAL_PATH", environ),
            mark_write_local_path=_env_path("MARK_WRITE_LOCAL_PATH", environ),
            coverage_write_local_path=_env_path("COVERAGE_WRITE_LOCAL_PATH", environ),
            screenshot_failure_local_path=_env_path("SCREENSHOT_FAILURE_LOCAL_PATH", environ),
            screenshot_success_local_path=_env_path("SCREENSHOT_SUCCESS_LOCAL_PATH", environ),
            content_failure_local_path=_env_path("CONTENT_FAILURE_LOCAL_PATH", environ),
            content_success_local_path=_env_path("CONTENT_SUCCESS_LOCAL_PATH", environ),
            concurrency_max=max(1, _env_int("CRAWL_CONCURRENCY_MAX", 5, environ)),
            requests_per_minute_max=max(1, _env_int("CRAWL_REQUESTS_PER_MINUTE_MAX", 120, environ)),
            request_attempts_max=max(1, _env_int("CRAWL_REQUEST_ATTEMPTS_MAX", 5, environ)),
            session_pool_enabled=_env_bool("CRAWL_SESSION_POOL_ENABLED", True, environ),
            session_requests_max=max(1, _env_int("CRAWL_SESSION_REQUESTS_MAX", 20, environ)),
            navigation_timeout_secs=max(1, _env_int("CRAWL_NAVIGATION_TIMEOUT_SECS", 6000, environ)),
            request_handler_timeout_secs=max(1, _env_int("CRAWL_REQUEST_HANDLER_TIMEOUT_SECS", 6000, environ)),
            capture_timeout_secs=max(1, _env_int("CRAWL_CAPTURE_TIMEOUT_SECS", 30, environ)),
            headless=_env_bool("CRAWL_HEADLESS", True, environ),
            browser_type=browser_type,
            browser_incognito=_env_bool("CRAWL_BROWSER_INCOGNITO", False, environ),
            proxy_disabled=_env_bool("PROXY_DISABLED", False, environ),
            proxy_host=_env_str("PROXY_HOST", None, environ),
            proxy_port=_env_str("PROXY_PORT", None, environ),
            proxy_user=_env_str("PROXY_USER", None, environ),
            proxy_password=_env_str("PROXY_PASSWORD", None, environ),
            proxy_url_template=_env_str("PROXY_URL_TEMPLATE", DEFAULT_PROXY_URL_TEMPLATE, environ)
            or DEFAULT_PROXY_URL_TEMPLATE,
        )
