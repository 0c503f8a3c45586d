import random

import pytest

from tmcrawl.workflows.builders import browser_type_for
from tmcrawl.workflows.crawl_config import CrawlSettings
from tmcrawl.workflows.proxy import ProxySettings, build_proxy_configuration, render_proxy_url


def test_render_proxy_url_fills_placeholders() -> None:
    url = render_proxy_url(
        "http://{{USERNAME}}-session-{{SESSION}}:{{PASSWORD}}@{{HOST}}:{{PORT}}",
        host="proxy.local",
        port=9000,
        user="crawler",
        password="pw",
        session_id="abc",
    )
    assert url == "http://crawler-session-abc:pw@proxy.local:9000"


def test_render_proxy_url_blanks_missing_values() -> None:
    assert render_proxy_url("", host="proxy.local", port="80") == "http://:@proxy.local:80"


def test_proxy_disabled_or_unset_yields_none() -> None:
    assert build_proxy_configuration(CrawlSettings(proxy_disabled=True, proxy_host="proxy.local")) is None
    assert build_proxy_configuration(CrawlSettings()) is None


def test_proxy_settings_from_crawl_settings() -> None:
    proxy = ProxySettings.from_settings(
        CrawlSettings(proxy_host="proxy.local", proxy_port="9000", proxy_user="u", proxy_password="p")
    )
    assert proxy is not None
    assert proxy.display_endpoint == "proxy.local:9000"
    assert proxy.url_for("s1") == "http://u:p@proxy.local:9000"


def test_proxy_configuration_built_when_host_set() -> None:
    configuration = build_proxy_configuration(CrawlSettings(proxy_host="proxy.local", proxy_port="9000"))
    assert configuration is not None


def test_browser_type_for() -> None:
    assert browser_type_for("webkit") == "webkit"
    assert browser_type_for("random", rng=random.Random(7)) in {"chromium", "firefox", "webkit"}
    with pytest.raises(ValueError):
        browser_type_for("lynx")
