"""Navigation: the audited record of one browser round-trip.

A Navigation moves through ``Created -> Landed -> Ended(outcome)``; landing
is optional and ending is terminal. Each attempt of a unit of work gets its
own Navigation with a fresh id; retries point back at the previous attempt
through ``parent_id`` so every attempt stays independently auditable.
"""

from __future__ import annotations

import logging
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union
from urllib.parse import urlparse

import tldextract

from ..core.ids import format_timestamp_iso, new_id, utc_timestamp_parts
from .errors import NavigationStateError

logger = logging.getLogger(__name__)

# Bundled public suffix snapshot only; never fetch the list at runtime.
_EXTRACT = tldextract.TLDExtract(suffix_list_urls=())

HTTP_METHODS = ("GET", "HEAD", "POST", "PUT", "DELETE", "TRACE", "OPTIONS", "CONNECT", "PATCH")

TagValue = Union[str, int, float, bool, None]


class NavigationOutcome(str, Enum):
    SUCCESS = "Success"
    RETRY = "Retry"
    FAILURE = "Failure"


@dataclass(frozen=True)
class HttpProxy:
    host: str
    port: Union[int, str]
    user: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"host": self.host, "port": self.port, "user": self.user}


def split_host_domain(url: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Return ``(host, registrable domain)`` for ``url``.

    The domain falls back to the host when no public suffix matches (IP
    addresses, ``localhost``, private TLDs).
    """

    if not url:
        return None, None
    try:
        host = urlparse(url).hostname
    except ValueError:
        host = None
    if not host:
        return None, None
    parts = _EXTRACT(host)
    if parts.domain and parts.suffix:
        return host, f"{parts.domain}.{parts.suffix}"
    return host, host


@dataclass
class CollectedUrls:
    label: List[str] = field(default_factory=list)
    url: List[str] = field(default_factory=list)

    def append(self, label: str, url: str) -> None:
        self.label.append(label)
        self.url.append(url)

    def __len__(self) -> int:
        return len(self.url)


@dataclass
class Navigation:
    id: str
    attempt: int
    method: str
    url: str
    started_at: datetime
    started_at_ms: int
    parent_id: Optional[str] = None
    office_code: Optional[str] = None
    session_id: Optional[str] = None
    request_proxy: Optional[HttpProxy] = None
    request_headers: Optional[Dict[str, str]] = None
    host: Optional[str] = None
    domain: Optional[str] = None
    tags: Dict[str, TagValue] = field(default_factory=dict)

    # Landing
    landing_url: Optional[str] = None
    landing_host: Optional[str] = None
    landing_domain: Optional[str] = None
    redirected: Optional[bool] = None
    status_code: Optional[int] = None
    response_headers: Optional[Dict[str, str]] = None
    remote_address: Optional[str] = None
    remote_port: Optional[int] = None
    security_details: Optional[Dict[str, Any]] = None
    collected_urls: CollectedUrls = field(default_factory=CollectedUrls)

    # Exception
    exception_present: bool = False
    exception_name: Optional[str] = None
    exception_type: Optional[str] = None
    exception_message: Optional[str] = None
    exception_stack_trace: Optional[str] = None

    # Ending
    outcome: Optional[NavigationOutcome] = None
    ended_at: Optional[datetime] = None
    ended_at_ms: Optional[int] = None
    title: Optional[str] = None
    content_location: Optional[str] = None
    screenshot_location: Optional[str] = None

    @classmethod
    def create(
        cls,
        *,
        url: str,
        method: str = "GET",
        attempt: int = 0,
        parent_id: Optional[str] = None,
        previous: Optional["Navigation"] = None,
        office_code: Optional[str] = None,
        session_id: Optional[str] = None,
        proxy: Optional[HttpProxy] = None,
        headers: Optional[Dict[str, str]] = None,
        tags: Optional[Dict[str, TagValue]] = None,
    ) -> "Navigation":
        """Start a new Navigation for one dispatch of a unit of work.

        ``parent_id`` names the Navigation that enqueued this work. When it is
        absent and the previous attempt of the same work is given, that
        attempt's id becomes the parent so retries form a chain.
        """

        normalized_method = (method or "GET").upper()
        if normalized_method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {method}")
        started_at, started_at_ms = utc_timestamp_parts()
        host, domain = split_host_domain(url)
        return cls(
            id=new_id(),
            attempt=int(attempt or 0),
            parent_id=parent_id or (previous.id if previous is not None else None),
            office_code=office_code,
            session_id=session_id,
            request_proxy=proxy,
            method=normalized_method,
            url=url,
            request_headers=dict(headers) if headers else None,
            host=host,
            domain=domain,
            started_at=started_at,
            started_at_ms=started_at_ms,
            tags=dict(tags or {}),
        )

    @property
    def ended(self) -> bool:
        return self.outcome is not None

    def _ensure_open(self, operation: str) -> None:
        if self.outcome is not None:
            raise NavigationStateError(
                f"Navigation {self.id} already ended with {self.outcome.value}; cannot {operation}"
            )

    def collect_url(self, label: str, url: str) -> None:
        self._ensure_open("collect urls")
        self.collected_urls.append(label, url)

    def collect_urls(self, label: str, urls: Iterable[str]) -> None:
        for url in urls:
            self.collect_url(label, url)

    def declare_landing(
        self,
        url: Optional[str] = None,
        request_headers: Optional[Dict[str, str]] = None,
        status: Optional[int] = None,
        response_headers: Optional[Dict[str, str]] = None,
        remote_address: Optional[str] = None,
        remote_port: Optional[int] = None,
        security_details: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Record landing details; omitted arguments keep what is already known."""

        self._ensure_open("declare landing")
        if status is not None:
            self.status_code = int(status)
        if request_headers is not None:
            self.request_headers = dict(request_headers)
        if response_headers is not None:
            self.response_headers = dict(response_headers)
        if remote_address is not None:
            self.remote_address = remote_address
        if remote_port is not None:
            self.remote_port = int(remote_port)
        if security_details is not None:
            self.security_details = dict(security_details)
        if url is None:
            return
        self.landing_url = url
        self.redirected = url != self.url
        self.landing_host, self.landing_domain = split_host_domain(url)

    def declare_exception(self, error: BaseException) -> bool:
        """Record ``error`` unless an earlier exception was already recorded.

        Returns True when the fields were written.
        """

        self._ensure_open("declare exception")
        if self.exception_present:
            logger.debug(
                "Navigation %s already holds %s; ignoring later %s",
                self.id,
                self.exception_name,
                type(error).__name__,
            )
            return False
        error_type = type(error)
        self.exception_present = True
        self.exception_name = error_type.__name__
        self.exception_type = f"{error_type.__module__}.{error_type.__qualname__}"
        self.exception_message = str(error)
        self.exception_stack_trace = "".join(
            traceback.format_exception(error_type, error, error.__traceback__)
        )
        return True

    def declare_ending(
        self,
        outcome: NavigationOutcome,
        landing_url: Optional[str] = None,
        title: Optional[str] = None,
        content_location: Optional[str] = None,
        screenshot_location: Optional[str] = None,
    ) -> "Navigation":
        """Finalize the Navigation exactly once and return it for the sink."""

        self._ensure_open("declare ending")
        outcome = NavigationOutcome(outcome)
        if landing_url and landing_url != self.landing_url:
            self.declare_landing(landing_url)
        self.title = title
        self.content_location = content_location
        self.screenshot_location = screenshot_location
        ended_at, ended_at_ms = utc_timestamp_parts()
        self.outcome = outcome
        self.ended_at = ended_at
        self.ended_at_ms = ended_at_ms
        return self

    def to_row(self) -> Dict[str, Any]:
        """Render the structured-store row for this Navigation."""

        return {
            "id": self.id,
            "attempt": self.attempt,
            "parent_id": self.parent_id,
            "outcome": self.outcome.value if self.outcome is not None else None,
            "started_at": format_timestamp_iso(self.started_at),
            "started_at_ms": self.started_at_ms,
            "ended_at": format_timestamp_iso(self.ended_at),
            "ended_at_ms": self.ended_at_ms,
            "domain": self.domain,
            "host": self.host,
            "url": self.url,
            "session_id": self.session_id,
            "method": self.method,
            "request_headers": self.request_headers,
            "request_proxy": self.request_proxy.to_dict() if self.request_proxy else None,
            "remote_address": self.remote_address,
            "remote_port": self.remote_port,
            "redirected": self.redirected,
            "security_details": self.security_details,
            "status_code": self.status_code,
            "response_headers": self.response_headers,
            "landing_domain": self.landing_domain,
            "landing_host": self.landing_host,
            "landing_url": self.landing_url,
            "title": self.title,
            "content_location": self.content_location,
            "screenshot_location": self.screenshot_location,
            "collected_urls": {
                "label": list(self.collected_urls.label),
                "url": list(self.collected_urls.url),
            },
            "office_code": self.office_code,
            "tags": dict(self.tags),
            "exception_present": self.exception_present,
            "exception_name": self.exception_name,
            "exception_type": self.exception_type,
            "exception_message": self.exception_message,
            "exception_stack_trace": self.exception_stack_trace,
        }
