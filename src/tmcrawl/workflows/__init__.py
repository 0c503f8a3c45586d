"""High-level exports for the tmcrawl workflows."""

from .artifact_sink import ArtifactSink
from .crawl_config import CrawlSettings
from .errors import (
    NavigationNotFoundError,
    NavigationStateError,
    ResponseBodyError,
    ResponseStatusError,
    ResponseTimeoutError,
)
from .handlers import NavigationLifecycle, ProbeResult
from .navigation import HttpProxy, Navigation, NavigationOutcome
from .record_sink import RecordSink
from .records import Coverage, Mark, MarkEffect, MarkFeature, MarkScrape, MarkStatus, transpose
from .request_keys import derive_key, reference_date, spawn_user_data

__all__ = [
    "ArtifactSink",
    "CrawlSettings",
    "Coverage",
    "HttpProxy",
    "Mark",
    "MarkEffect",
    "MarkFeature",
    "MarkScrape",
    "MarkStatus",
    "Navigation",
    "NavigationLifecycle",
    "NavigationNotFoundError",
    "NavigationOutcome",
    "NavigationStateError",
    "ProbeResult",
    "RecordSink",
    "ResponseBodyError",
    "ResponseStatusError",
    "ResponseTimeoutError",
    "derive_key",
    "reference_date",
    "spawn_user_data",
    "transpose",
]
