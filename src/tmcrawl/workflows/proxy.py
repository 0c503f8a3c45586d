"""Upstream proxy configuration for the crawl engine."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from crawlee.proxy_configuration import ProxyConfiguration

from .crawl_config import DEFAULT_PROXY_URL_TEMPLATE, CrawlSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProxySettings:
    host: str
    port: str
    username: Optional[str]
    password: Optional[str]
    url_template: str = DEFAULT_PROXY_URL_TEMPLATE

    @property
    def display_endpoint(self) -> str:
        return f"{self.host}:{self.port}"

    def url_for(self, session_id: Optional[str]) -> str:
        return render_proxy_url(
            self.url_template,
            host=self.host,
            port=self.port,
            user=self.username,
            password=self.password,
            session_id=session_id,
        )

    @classmethod
    def from_settings(cls, settings: CrawlSettings) -> Optional["ProxySettings"]:
        if settings.proxy_disabled:
            return None
        if not settings.proxy_host:
            logger.warning("Proxy enabled but PROXY_HOST is not set; crawling without a proxy")
            return None
        return cls(
            host=settings.proxy_host,
            port=settings.proxy_port or "",
            username=settings.proxy_user,
            password=settings.proxy_password,
            url_template=settings.proxy_url_template,
        )


def render_proxy_url(
    template: str,
    host: Optional[str] = None,
    port: Optional[Any] = None,
    user: Optional[str] = None,
    password: Optional[str] = None,
    session_id: Optional[str] = None,
) -> str:
    """Fill ``{{HOST}}``, ``{{PORT}}``, ``{{USERNAME}}``, ``{{PASSWORD}}`` and ``{{SESSION}}``."""

    replacements = {
        "{{HOST}}": host or "",
        "{{PORT}}": "" if port is None else str(port),
        "{{USERNAME}}": user or "",
        "{{PASSWORD}}": password or "",
        "{{SESSION}}": session_id or "",
    }
    rendered = template or DEFAULT_PROXY_URL_TEMPLATE
    for placeholder, value in replacements.items():
        rendered = rendered.replace(placeholder, value)
    return rendered


def build_proxy_configuration(settings: CrawlSettings) -> Optional[ProxyConfiguration]:
    proxy = ProxySettings.from_settings(settings)
    if proxy is None:
        return None

    def new_url(session_id: Optional[str] = None, request: Any = None) -> str:
        return proxy.url_for(session_id)

    logger.info("Proxy configured endpoint=%s user=%s", proxy.display_endpoint, proxy.username)
    return ProxyConfiguration(new_url_function=new_url)
