"""Trademark and coverage records persisted next to navigations.

Nested lists of structs are stored columnar: a list of ``Priority`` becomes
``{"serial_number": [...], "date": [...], ...}`` with one entry per item and
``None`` where an item lacks the field. Dates render date-only, datetimes as
complete ISO-8601.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, is_dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Type

from ..core.ids import format_date_iso, format_timestamp_iso, new_id, time_of
from .navigation import split_host_domain


class MarkFeature(str, Enum):
    """WIPO ST.60 INID 550."""

    WORD = "Word"
    FIGURATIVE = "Figurative"
    COMBINED = "Combined"
    STYLIZED_CHARACTERS = "Stylized Characters"


class MarkEffect(str, Enum):
    """WIPO ST.60 INID 551."""

    INDIVIDUAL = "Individual"
    COLLECTIVE = "Collective"
    CERTIFICATE = "Certificate"


class MarkStatus(str, Enum):
    PENDING = "Pending"
    WITHDRAWN = "Withdrawn"
    REGISTERED = "Registered"
    CANCELLED = "Cancelled"
    ENDED = "Ended"
    EXPIRED = "Expired"


def render_value(value: Any) -> Any:
    """Render one scalar for the wire: dates as ISO strings, enums by value."""

    if value is None:
        return None
    if isinstance(value, datetime):
        return format_timestamp_iso(value)
    if isinstance(value, date):
        return format_date_iso(value)
    if isinstance(value, Enum):
        return value.value
    return value


def transpose(items: Optional[Iterable[Any]], cls: Type[Any]) -> Dict[str, List[Any]]:
    """Turn a list of ``cls`` dataclass instances into parallel arrays.

    Every column has exactly one entry per item, so columns stay aligned even
    when individual items leave fields unset.
    """

    columns: Dict[str, List[Any]] = {f.name: [] for f in fields(cls)}
    for item in items or ():
        for name, column in columns.items():
            column.append(render_value(getattr(item, name, None)))
    return columns


@dataclass
class AddressInfo:
    name: Optional[str] = None
    identifier: Optional[str] = None
    address: Optional[str] = None
    country: Optional[str] = None


@dataclass
class Classification:
    nice_class: Optional[str] = None
    local_class: Optional[str] = None
    description: Optional[str] = None


@dataclass
class Priority:
    serial_number: Optional[str] = None
    date: Optional[date] = None
    office_code: Optional[str] = None
    data: Optional[str] = None


@dataclass
class History:
    type: Optional[str] = None
    timestamp: Optional[datetime] = None
    description: Optional[str] = None
    publication_id: Optional[str] = None
    publication_date: Optional[date] = None


@dataclass
class Designation:
    office_code: Optional[str] = None
    identifier: Optional[str] = None
    date: Optional[date] = None
    under_office_code: Optional[str] = None


@dataclass
class MarkEvent:
    publication_identifier: Optional[str] = None
    publication_status: Optional[str] = None
    industrial_property_type: Optional[str] = None


@dataclass
class MarkScrape:
    """Raw values lifted off a detail page, before interpretation."""

    id: str
    office_code: str
    url: str
    st13: Optional[str] = None
    name: Optional[str] = None
    webpage_title: Optional[str] = None
    status_raw: Optional[str] = None
    contacts_raw: Optional[Any] = None
    designations_raw: Optional[Any] = None
    classifications_raw: Optional[Any] = None
    vienna_classes_raw: Optional[Any] = None
    priorities_raw: Optional[Any] = None
    fields_raw: Optional[Any] = None
    image_raw: Optional[str] = None
    feature_raw: Optional[str] = None


_ADDRESS_LISTS = ("owners", "assignees", "applicants", "representatives", "correspondents", "licensees")
_NESTED = {
    "classifications": Classification,
    "priorities": Priority,
    "designations": Designation,
    "histories": History,
    **{name: AddressInfo for name in _ADDRESS_LISTS},
}


@dataclass
class Mark:
    id: str
    navigation_id: str
    office_code: Optional[str] = None
    st13: Optional[str] = None
    name: Optional[str] = None
    status: Optional[MarkStatus] = None
    status_date: Optional[date] = None
    feature: Optional[MarkFeature] = None
    effect: Optional[MarkEffect] = None
    application_number: Optional[str] = None
    application_date: Optional[date] = None
    publication_date: Optional[date] = None
    application_language: Optional[str] = None
    transliteration: Optional[str] = None
    registration_number: Optional[str] = None
    registration_date: Optional[date] = None
    issue_date: Optional[date] = None
    expiry_date: Optional[date] = None
    renewal_date: Optional[date] = None
    renewal_request_date: Optional[date] = None
    event_date: Optional[date] = None
    removal_date: Optional[date] = None
    termination_date: Optional[date] = None
    surrender_date: Optional[date] = None
    restored_date: Optional[date] = None
    description: Optional[str] = None
    figurative_elements_description: Optional[str] = None
    reproduction_content_type: Optional[str] = None
    reproduction: Optional[str] = None
    characters: Optional[str] = None
    disclaimer: Optional[str] = None
    translation: Optional[str] = None
    colors_claimed: Optional[str] = None
    comments: Optional[str] = None
    colors: Optional[str] = None
    classifications: List[Classification] = field(default_factory=list)
    priorities: List[Priority] = field(default_factory=list)
    owners: List[AddressInfo] = field(default_factory=list)
    assignees: List[AddressInfo] = field(default_factory=list)
    applicants: List[AddressInfo] = field(default_factory=list)
    representatives: List[AddressInfo] = field(default_factory=list)
    correspondents: List[AddressInfo] = field(default_factory=list)
    licensees: List[AddressInfo] = field(default_factory=list)
    vienna_classes: List[str] = field(default_factory=list)
    designations: List[Designation] = field(default_factory=list)
    histories: List[History] = field(default_factory=list)
    events: List[MarkEvent] = field(default_factory=list)
    domain: Optional[str] = None
    host: Optional[str] = None
    url: Optional[str] = None
    tags: Dict[str, Any] = field(default_factory=dict)
    content_location: Optional[str] = None
    screenshot_location: Optional[str] = None
    scrape: Optional[MarkScrape] = None

    @classmethod
    def from_scrape(cls, scrape: MarkScrape) -> "Mark":
        host, domain = split_host_domain(scrape.url)
        return cls(
            id=new_id(),
            navigation_id=scrape.id,
            office_code=scrape.office_code,
            st13=scrape.st13,
            name=scrape.name,
            url=scrape.url,
            host=host,
            domain=domain,
            scrape=scrape,
        )

    def to_row(self) -> Dict[str, Any]:
        row: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name in _NESTED:
                row[f.name] = transpose(value, _NESTED[f.name])
            elif f.name == "events":
                row[f.name] = [asdict(event) for event in value]
            elif f.name == "scrape":
                row[f.name] = asdict(value) if is_dataclass(value) else value
            elif isinstance(value, (list, dict)):
                row[f.name] = type(value)(value)
            else:
                row[f.name] = render_value(value)
        return row


@dataclass
class Coverage:
    """How much of an office's register one crawl observed."""

    office_code: str
    source: str
    navigation_id: Optional[str] = None
    updated_at: Optional[datetime] = None
    records_count: Optional[int] = None
    earliest_date: Optional[date] = None
    latest_date: Optional[date] = None
    id: str = field(default_factory=new_id)

    @property
    def collected_at(self) -> datetime:
        return time_of(self.id)

    def to_row(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "collected_at": format_timestamp_iso(self.collected_at),
            "office_code": self.office_code,
            "source": self.source,
            "updated_at": format_timestamp_iso(self.updated_at),
            "records_count": self.records_count,
            "earliest_date": format_date_iso(self.earliest_date),
            "latest_date": format_date_iso(self.latest_date),
            "navigation_id": self.navigation_id,
        }
