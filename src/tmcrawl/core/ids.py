"""Time-ordered identifiers and UTC clock helpers.

Identifiers are ULIDs: 48 bits of Unix epoch milliseconds followed by 80
random bits, rendered as 26 characters of Crockford base32. They sort
lexicographically by creation time and need no coordination between workers.
"""

from __future__ import annotations

import re
import secrets
import time
from datetime import date, datetime, timezone
from typing import Optional, Tuple

ID_LENGTH = 26
_ALPHABET = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
_DECODE = {ch: idx for idx, ch in enumerate(_ALPHABET)}
_TIME_CHARS = 10
_RANDOM_BYTES = 10
_MAX_TIMESTAMP_MS = (1 << 48) - 1

_DMY_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


class MalformedIdError(ValueError):
    """Raised when an identifier cannot be decoded as a ULID."""


def _encode(value: int, length: int) -> str:
    chars = []
    for _ in range(length):
        chars.append(_ALPHABET[value & 31])
        value >>= 5
    return "".join(reversed(chars))


def new_id(timestamp_ms: Optional[int] = None) -> str:
    """Return a new ULID for ``timestamp_ms`` (defaults to now)."""

    ms = int(time.time() * 1000) if timestamp_ms is None else int(timestamp_ms)
    if ms < 0 or ms > _MAX_TIMESTAMP_MS:
        raise ValueError(f"timestamp out of range for ULID: {ms}")
    randomness = int.from_bytes(secrets.token_bytes(_RANDOM_BYTES), "big")
    return _encode(ms, _TIME_CHARS) + _encode(randomness, ID_LENGTH - _TIME_CHARS)


def time_of(identifier: str) -> datetime:
    """Decode the creation time embedded in ``identifier`` (UTC)."""

    if not isinstance(identifier, str) or len(identifier) != ID_LENGTH:
        raise MalformedIdError(f"Not a {ID_LENGTH}-character identifier: {identifier!r}")
    normalized = identifier.upper()
    if normalized[0] > "7":
        raise MalformedIdError(f"Identifier overflows 128 bits: {identifier!r}")
    ms = 0
    for ch in normalized:
        if ch not in _DECODE:
            raise MalformedIdError(f"Invalid character {ch!r} in identifier {identifier!r}")
    for ch in normalized[:_TIME_CHARS]:
        ms = (ms << 5) | _DECODE[ch]
    try:
        return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)
    except (ValueError, OverflowError, OSError) as exc:
        raise MalformedIdError(f"Identifier time is out of range: {identifier!r}") from exc


def date_partition(identifier: str, fmt: str = "%Y%m%d") -> str:
    return time_of(identifier).strftime(fmt)


def utc_timestamp_parts(now: Optional[datetime] = None) -> Tuple[datetime, int]:
    """Split the current UTC time into (whole seconds, milliseconds)."""

    current = now or datetime.now(timezone.utc)
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    current = current.astimezone(timezone.utc)
    return current.replace(microsecond=0), current.microsecond // 1000


def format_date_iso(value: Optional[date]) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def format_timestamp_iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, datetime):
        value = datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    elif value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def normalize_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` (optionally with a time part) or ``dd/MM/yyyy``."""

    normalized = normalize_text(value)
    if normalized is None:
        return None
    match = _DMY_RE.match(normalized)
    if match:
        day, month, year = (int(part) for part in match.groups())
        return date(year, month, day)
    try:
        return datetime.fromisoformat(normalized).date()
    except ValueError:
        return date.fromisoformat(normalized[:10])


__all__ = [
    "ID_LENGTH",
    "MalformedIdError",
    "new_id",
    "time_of",
    "date_partition",
    "utc_timestamp_parts",
    "format_date_iso",
    "format_timestamp_iso",
    "normalize_text",
    "parse_date",
]
