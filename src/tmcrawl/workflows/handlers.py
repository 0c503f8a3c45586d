"""Navigation lifecycle hooks for the Playwright crawl engine.

:class:`NavigationLifecycle` opens a Navigation before every page load, records
the landing once the response arrives, and closes it on success, retry, or
final failure. Failures go through :meth:`NavigationLifecycle.handle_exception`,
which gathers whatever forensic artifacts the page still yields (title, url,
HTML, screenshot), each under its own timeout, and always finalizes and
persists the Navigation.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from bs4 import BeautifulSoup

from ..core.keys import K_NAVIGATION, K_NAVIGATION_ID, K_OFFICE_CODE, K_PARENT_ID, K_REQUEST_ID
from .artifact_sink import ArtifactSink
from .crawl_config import CrawlSettings
from .errors import NavigationNotFoundError
from .navigation import HttpProxy, Navigation, NavigationOutcome
from .record_sink import RecordSink

logger = logging.getLogger(__name__)

T = TypeVar("T")

ExtractionHandler = Callable[[Any, Navigation], Awaitable[None]]

_UNTAGGED_KEYS = frozenset({K_OFFICE_CODE, K_PARENT_ID, K_NAVIGATION, K_NAVIGATION_ID})


@dataclass
class ProbeResult(Generic[T]):
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.value is not None


@dataclass
class Capture:
    """Artifacts read off a page just before its Navigation ends."""

    title: ProbeResult[str]
    url: ProbeResult[str]
    content: ProbeResult[str]
    screenshot: ProbeResult[bytes]


def title_from_html(content: Optional[str]) -> Optional[str]:
    if not content:
        return None
    soup = BeautifulSoup(content, "html.parser")
    if soup.title is None or soup.title.string is None:
        return None
    return soup.title.string.strip() or None


def _tags_from_user_data(user_data: Any, request_id: str) -> Dict[str, Any]:
    tags: Dict[str, Any] = {}
    for key, value in dict(user_data or {}).items():
        if key in _UNTAGGED_KEYS or key.startswith("__"):
            continue
        if value is None or isinstance(value, (str, int, float, bool)):
            tags[key] = value
        else:
            tags[key] = str(value)
    tags[K_REQUEST_ID] = request_id
    return tags


def _proxy_from_info(proxy_info: Any) -> Optional[HttpProxy]:
    if proxy_info is None:
        return None
    return HttpProxy(
        host=proxy_info.hostname,
        port=proxy_info.port,
        user=getattr(proxy_info, "username", None) or None,
    )


def _write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)


class NavigationLifecycle:
    def __init__(self, settings: CrawlSettings, record_sink: RecordSink, artifact_sink: ArtifactSink) -> None:
        self.settings = settings
        self.record_sink = record_sink
        self.artifact_sink = artifact_sink
        # Latest Navigation per engine request id; a retry replaces its predecessor.
        self._navigations: Dict[str, Navigation] = {}

    def navigation_for(self, request: Any) -> Navigation:
        try:
            return self._navigations[request.id]
        except KeyError:
            raise NavigationNotFoundError(f"No Navigation registered for request {request.id} ({request.url})") from None

    def find_navigation(self, request: Any) -> Optional[Navigation]:
        return self._navigations.get(request.id)

    def release(self, request: Any) -> Optional[Navigation]:
        return self._navigations.pop(request.id, None)

    # ------------------------------------------------------------------ hooks

    async def on_pre_navigation(self, ctx: Any) -> None:
        request = ctx.request
        user_data = request.user_data
        previous = self._navigations.get(request.id)
        session = getattr(ctx, "session", None)
        proxy_info = getattr(ctx, "proxy_info", None)
        navigation = Navigation.create(
            url=request.url,
            method=str(request.method),
            attempt=request.retry_count,
            parent_id=user_data.get(K_PARENT_ID),
            previous=previous,
            office_code=user_data.get(K_OFFICE_CODE),
            session_id=session.id if session is not None else None,
            proxy=_proxy_from_info(proxy_info),
            headers=dict(request.headers or {}),
            tags=_tags_from_user_data(user_data, request.id),
        )
        self._navigations[request.id] = navigation
        user_data[K_NAVIGATION_ID] = navigation.id

        logger.info(
            "Beginning navigation id=%s attempt=%s parent=%s office=%s url=%s request=%s proxy=%s",
            navigation.id,
            navigation.attempt,
            navigation.parent_id,
            navigation.office_code,
            request.url,
            request.id,
            proxy_info.url if proxy_info is not None else None,
        )

    async def on_landing(self, ctx: Any) -> None:
        request = ctx.request
        response = getattr(ctx, "response", None)
        navigation = self.find_navigation(request)
        if navigation is None:
            logger.error(
                "Navigation not found for request=%s url=%s response_url=%s",
                request.id,
                request.url,
                response.url if response is not None else None,
            )
            raise NavigationNotFoundError(f"No Navigation registered for request {request.id} ({request.url})")
        if response is None:
            logger.warning("No response for navigation id=%s url=%s request=%s", navigation.id, request.url, request.id)
            return

        await response.finished()
        remote = await response.server_addr() or {}
        security = await response.security_details()
        request_headers = await response.request.all_headers()
        response_headers = await response.all_headers()

        logger.info(
            "Landed navigation id=%s status=%s url=%s response_url=%s remote=%s:%s",
            navigation.id,
            response.status,
            request.url,
            response.url,
            remote.get("ipAddress"),
            remote.get("port"),
        )
        navigation.declare_landing(
            response.url,
            request_headers,
            response.status,
            response_headers,
            remote.get("ipAddress"),
            remote.get("port"),
            security,
        )

    def wrap(self, handler: ExtractionHandler) -> Callable[[Any], Awaitable[None]]:
        """Turn ``handler(ctx, navigation)`` into an engine request handler.

        Landing was already recorded by the post-navigation hook. When the
        handler returns without ending the Navigation itself, it is ended as a
        success.
        """

        async def request_handler(ctx: Any) -> None:
            navigation = self.navigation_for(ctx.request)
            await handler(ctx, navigation)
            if not navigation.ended:
                await self.end_navigation(NavigationOutcome.SUCCESS, navigation, ctx.page, ctx.request)
            self.release(ctx.request)

        request_handler.__name__ = getattr(handler, "__name__", "request_handler")
        return request_handler

    async def on_error(self, ctx: Any, error: Exception) -> None:
        await self.handle_exception(NavigationOutcome.RETRY, ctx, error)

    async def on_failure(self, ctx: Any, error: Exception) -> None:
        await self.handle_exception(NavigationOutcome.FAILURE, ctx, error)
        self.release(ctx.request)

    # --------------------------------------------------------------- endings

    async def _probe(
        self,
        label: str,
        navigation: Optional[Navigation],
        request: Any,
        read: Callable[[], Awaitable[T]],
    ) -> ProbeResult[T]:
        try:
            value = await asyncio.wait_for(read(), timeout=self.settings.capture_timeout_secs)
        except Exception as exc:
            logger.warning(
                "Failed to capture page %s id=%s attempt=%s request=%s error=%r",
                label,
                navigation.id if navigation else None,
                navigation.attempt if navigation else None,
                request.id,
                exc,
            )
            return ProbeResult(error=exc)
        return ProbeResult(value=value)

    async def capture(self, page: Any, navigation: Optional[Navigation], request: Any) -> Capture:
        """Read title, url, content and screenshot, each independently."""

        if page is None:
            missing = RuntimeError("no page attached to the crawling context")
            return Capture(*(ProbeResult(error=missing) for _ in range(4)))

        async def read_url() -> str:
            return page.url

        title = await self._probe("title", navigation, request, page.title)
        url = await self._probe("url", navigation, request, read_url)
        content = await self._probe("content", navigation, request, page.content)
        screenshot = await self._probe(
            "screenshot", navigation, request, lambda: page.screenshot(full_page=True)
        )
        if not title.ok and content.ok:
            recovered = title_from_html(content.value)
            if recovered:
                title = ProbeResult(value=recovered)
        return Capture(title=title, url=url, content=content, screenshot=screenshot)

    async def _finalize(
        self,
        outcome: NavigationOutcome,
        navigation: Navigation,
        captured: Capture,
        fallback_url: Optional[str],
    ) -> None:
        content_location = None
        screenshot_location = None
        if captured.content.ok:
            content_location = await self.artifact_sink.put_content_html(navigation.id, captured.content.value)
        if captured.screenshot.ok:
            screenshot_location = await self.artifact_sink.put_screenshot_png(navigation.id, captured.screenshot.value)
        navigation.declare_ending(
            outcome,
            landing_url=captured.url.value or fallback_url,
            title=captured.title.value,
            content_location=content_location,
            screenshot_location=screenshot_location,
        )
        logger.info(
            "Ended navigation id=%s attempt=%s outcome=%s landing_url=%s",
            navigation.id,
            navigation.attempt,
            outcome.value,
            navigation.landing_url,
        )
        await self.record_sink.save_navigation(navigation)

    async def _mirror_local(
        self,
        name: str,
        captured: Capture,
        screenshot_dir: Optional[Path],
        content_dir: Optional[Path],
    ) -> None:
        targets = []
        if screenshot_dir and captured.screenshot.ok:
            targets.append((Path(screenshot_dir) / f"{name}_screenshot.png", captured.screenshot.value))
        if content_dir and captured.content.ok:
            targets.append((Path(content_dir) / f"{name}_content.html", captured.content.value.encode("utf-8")))
        for path, data in targets:
            try:
                await asyncio.to_thread(_write_bytes, path, data)
            except OSError as exc:
                logger.error("Local artifact mirror failed path=%s error=%s", path, exc)

    async def handle_exception(self, outcome: NavigationOutcome, ctx: Any, error: BaseException) -> None:
        """Record ``error`` on the live Navigation and finalize it as ``outcome``.

        Never raises; whatever cannot be captured is left empty.
        """

        request = ctx.request
        try:
            navigation = self.find_navigation(request)
            response = getattr(ctx, "response", None)
            logger.error(
                "Navigation error id=%s attempt=%s outcome=%s request=%s url=%s loaded_url=%s error=%r",
                navigation.id if navigation else None,
                navigation.attempt if navigation else None,
                outcome.value,
                request.id,
                request.url,
                request.loaded_url,
                error,
                exc_info=(type(error), error, error.__traceback__),
            )
            live = navigation is not None and not navigation.ended
            if live:
                navigation.declare_exception(error)

            captured = await self.capture(getattr(ctx, "page", None), navigation, request)

            session = getattr(ctx, "session", None)
            if session is not None:
                try:
                    session.mark_bad()
                except Exception:
                    logger.exception("Failed to retire session=%s request=%s", getattr(session, "id", None), request.id)

            if live:
                fallback_url = (response.url if response is not None else None) or request.loaded_url
                await self._finalize(outcome, navigation, captured, fallback_url)
            elif navigation is None:
                logger.warning("No Navigation to finalize for request=%s url=%s", request.id, request.url)

            await self._mirror_local(
                navigation.id if navigation else request.id,
                captured,
                self.settings.screenshot_failure_local_path,
                self.settings.content_failure_local_path,
            )
        except Exception:
            logger.exception("Exception handler failed for request=%s url=%s", request.id, request.url)

    async def end_navigation(
        self,
        outcome: NavigationOutcome,
        navigation: Navigation,
        page: Any,
        request: Any = None,
    ) -> Navigation:
        """Capture artifacts from ``page`` and finalize ``navigation`` as ``outcome``."""

        captured = await self.capture(page, navigation, request or _NavigationRequest(navigation))
        await self._finalize(outcome, navigation, captured, navigation.landing_url)
        if outcome is NavigationOutcome.SUCCESS:
            await self._mirror_local(
                navigation.id,
                captured,
                self.settings.screenshot_success_local_path,
                self.settings.content_success_local_path,
            )
        return navigation

    async def end_as_success(self, ctx: Any) -> Navigation:
        navigation = self.navigation_for(ctx.request)
        await self.end_navigation(NavigationOutcome.SUCCESS, navigation, ctx.page, ctx.request)
        return navigation


@dataclass
class _NavigationRequest:
    """Stand-in request identity for log lines when only a Navigation is known."""

    navigation: Navigation

    @property
    def id(self) -> Optional[str]:
        return self.navigation.tags.get(K_REQUEST_ID)
