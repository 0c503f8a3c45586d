"""Deterministic request keys and user-data handoff between requests.

A request key names one unit of work, ``{OFFICE}-{filterKey}-{strategy}-{date}-{page}``,
so enqueueing the same work twice collapses to one request in the engine's
queue regardless of which worker produced it.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Union

from ..core.ids import format_date_iso, parse_date
from ..core.keys import K_NAVIGATION, K_NAVIGATION_ID, K_PARENT_ID, K_REQUEST_ID

KeyPart = Union[str, Enum]
DateLike = Union[date, datetime, str]

# User-data entries owned by the engine wiring; never copied into child requests.
ENGINE_PRIVATE_KEYS = frozenset({K_NAVIGATION, K_NAVIGATION_ID, K_PARENT_ID, K_REQUEST_ID})


def _part(value: KeyPart) -> str:
    return value.value if isinstance(value, Enum) else str(value)


def _as_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError(f"Cannot derive a request key from an empty date: {value!r}")
    return parsed


def derive_key(
    office_code: KeyPart,
    filter_key: KeyPart,
    filter_strategy: KeyPart,
    reference: DateLike,
    page_number: int,
) -> str:
    """Join the request's semantic parts into its deduplication key."""

    return "-".join(
        [
            _part(office_code),
            _part(filter_key),
            _part(filter_strategy),
            format_date_iso(_as_date(reference)) or "",
            str(int(page_number)),
        ]
    )


def is_date_filter(filter_key: KeyPart) -> bool:
    return "Date" in _part(filter_key)


def reference_date(
    filter_key: KeyPart,
    filter_value: Any = None,
    request_date: Optional[DateLike] = None,
    today: Optional[date] = None,
) -> date:
    """Pick the date that goes into a request key.

    Date filters are keyed by the date being searched; value filters (case
    numbers and the like) by the day the request was made.
    """

    if is_date_filter(filter_key) and filter_value is not None:
        return _as_date(filter_value)
    if request_date is not None:
        return _as_date(request_date)
    return today or datetime.now(timezone.utc).date()


def spawn_user_data(user_data: Mapping[str, Any], navigation_id: Optional[str]) -> Dict[str, Any]:
    """Clone ``user_data`` for a request enqueued from a live Navigation."""

    child = {key: value for key, value in user_data.items() if key not in ENGINE_PRIVATE_KEYS}
    child[K_PARENT_ID] = navigation_id
    return child


__all__ = [
    "ENGINE_PRIVATE_KEYS",
    "derive_key",
    "is_date_filter",
    "reference_date",
    "spawn_user_data",
]
