from pathlib import Path

import pytest

from tmcrawl.workflows.crawl_config import DEFAULT_PROXY_URL_TEMPLATE, CrawlSettings, str_to_bool


def test_defaults_from_empty_environment() -> None:
    settings = CrawlSettings.from_env({})
    assert settings.environment == "development"
    assert settings.clickhouse_db == "tmc_development"
    assert settings.clickhouse_enabled is False
    assert settings.s3_enabled is False
    assert settings.s3_region == "us-east-1"
    assert settings.concurrency_max == 5
    assert settings.requests_per_minute_max == 120
    assert settings.request_attempts_max == 5
    assert settings.session_pool_enabled is True
    assert settings.session_requests_max == 20
    assert settings.navigation_timeout_secs == 6000
    assert settings.request_handler_timeout_secs == 6000
    assert settings.capture_timeout_secs == 30
    assert settings.headless is True
    assert settings.browser_type == "chromium"
    assert settings.proxy_disabled is False
    assert settings.proxy_url_template == DEFAULT_PROXY_URL_TEMPLATE
    assert settings.navigation_write_local_path is None


def test_prefixed_names_win_over_bare_names() -> None:
    settings = CrawlSettings.from_env(
        {
            "TMC_CLICKHOUSE_URL": "http://prefixed:8123/",
            "CLICKHOUSE_URL": "http://bare:8123",
            "CLICKHOUSE_DB": "tmc_production",
            "CORSEARCH_ENV": "production",
        }
    )
    assert settings.clickhouse_url == "http://prefixed:8123"
    assert settings.clickhouse_db == "tmc_production"
    assert settings.environment == "production"
    assert settings.clickhouse_enabled is True


def test_numbers_booleans_and_paths() -> None:
    settings = CrawlSettings.from_env(
        {
            "CRAWL_CONCURRENCY_MAX": "9",
            "CRAWL_REQUESTS_PER_MINUTE_MAX": "not-a-number",
            "CRAWL_SESSION_POOL_ENABLED": "false",
            "CRAWL_HEADLESS": "0",
            "CRAWL_BROWSER_INCOGNITO": "1",
            "PROXY_DISABLED": "true",
            "NAVIGATION_WRITE_LOCAL_PATH": "/tmp/navigations",
            "CRAWL_BROWSER_TYPE": "Firefox",
        }
    )
    assert settings.concurrency_max == 9
    assert settings.requests_per_minute_max == 120
    assert settings.session_pool_enabled is False
    assert settings.headless is False
    assert settings.browser_incognito is True
    assert settings.proxy_disabled is True
    assert settings.navigation_write_local_path == Path("/tmp/navigations")
    assert settings.browser_type == "firefox"


def test_s3_enabled_requires_all_values() -> None:
    partial = CrawlSettings.from_env({"S3_ENDPOINT": "https://s3.local", "S3_BUCKET": "contrail"})
    assert partial.s3_enabled is False
    full = CrawlSettings.from_env(
        {
            "S3_ENDPOINT": "https://s3.local",
            "S3_BUCKET": "contrail",
            "TMC_S3_ACCESS_KEY_ID": "AKIA",
            "S3_SECRET_ACCESS_KEY": "secret",
        }
    )
    assert full.s3_enabled is True


def test_unknown_browser_type_rejected() -> None:
    with pytest.raises(ValueError):
        CrawlSettings.from_env({"CRAWL_BROWSER_TYPE": "lynx"})


@pytest.mark.parametrize(
    "raw,expected",
    [("true", True), ("1", True), ("TRUE", True), ("false", False), ("0", False), ("", True), (None, True)],
)
def test_str_to_bool(raw, expected) -> None:
    assert str_to_bool(raw, default=True) is expected
