from datetime import date, datetime, timezone

import pytest

from tmcrawl.core.keys import K_NAVIGATION_ID, K_PARENT_ID, K_REQUEST_ID
from tmcrawl.sources.my import (
    MY_STARTING_URL,
    MyFilterKey,
    MyFilterStrategy,
    compose_case_number_request,
    compose_date_request,
    compose_request,
    compose_requests,
)
from tmcrawl.workflows.request_keys import derive_key, reference_date, spawn_user_data


def test_derive_key_is_deterministic_and_date_sensitive() -> None:
    first = derive_key("MY", "ApplicationDate", "Day", date(2024, 3, 1), 1)
    again = derive_key("MY", "ApplicationDate", "Day", date(2024, 3, 1), 1)
    next_day = derive_key("MY", "ApplicationDate", "Day", date(2024, 3, 2), 1)
    assert first == again == "MY-ApplicationDate-Day-2024-03-01-1"
    assert first != next_day


@pytest.mark.parametrize(
    "changed",
    [
        ("SG", "ApplicationDate", "Day", date(2024, 3, 1), 1),
        ("MY", "PublicationDate", "Day", date(2024, 3, 1), 1),
        ("MY", "ApplicationDate", "DateRange", date(2024, 3, 1), 1),
        ("MY", "ApplicationDate", "Day", date(2024, 3, 1), 2),
    ],
)
def test_derive_key_changes_with_every_component(changed) -> None:
    base = derive_key("MY", "ApplicationDate", "Day", date(2024, 3, 1), 1)
    assert derive_key(*changed) != base


def test_derive_key_accepts_enums_and_datetimes() -> None:
    key = derive_key(
        "MY",
        MyFilterKey.APPLICATION_DATE,
        MyFilterStrategy.DAY,
        datetime(2024, 3, 1, 23, 59, tzinfo=timezone.utc),
        3,
    )
    assert key == "MY-ApplicationDate-Day-2024-03-01-3"


def test_reference_date_prefers_filter_value_for_date_filters() -> None:
    assert reference_date("ApplicationDate", "2024-03-01") == date(2024, 3, 1)
    assert reference_date("CaseNumber", "TM2024000123", request_date=date(2024, 5, 6)) == date(2024, 5, 6)
    assert reference_date("CaseNumber", "TM2024000123", today=date(2024, 7, 8)) == date(2024, 7, 8)


def test_spawn_user_data_drops_engine_keys_and_sets_parent() -> None:
    user_data = {
        "officeCode": "MY",
        "filterKey": "ApplicationDate",
        K_PARENT_ID: "OLDPARENT",
        K_NAVIGATION_ID: "NAV",
        K_REQUEST_ID: "req-1",
    }
    child = spawn_user_data(user_data, "NAV")
    assert child == {"officeCode": "MY", "filterKey": "ApplicationDate", K_PARENT_ID: "NAV"}
    assert user_data[K_PARENT_ID] == "OLDPARENT"


def test_compose_date_request_uses_key_as_unique_key() -> None:
    request = compose_date_request(MyFilterKey.APPLICATION_DATE, date(2024, 3, 1))
    assert request.url == MY_STARTING_URL
    assert request.unique_key == "MY-ApplicationDate-Day-2024-03-01-1"
    assert request.user_data["filterValue"] == "2024-03-01"
    assert request.user_data["officeCode"] == "MY"


def test_compose_requests_covers_every_date_filter_for_each_day() -> None:
    requests = compose_requests(date(2024, 3, 1), date(2024, 3, 2))
    date_keys = [key for key in MyFilterKey if "Date" in key.value]
    assert len(requests) == 2 * len(date_keys)
    unique_keys = {request.unique_key for request in requests}
    assert len(unique_keys) == len(requests)
    assert "MY-RenewalDueDate-Day-2024-03-02-1" in unique_keys
    assert not any("CaseNumber" in key for key in unique_keys)


def test_compose_requests_empty_when_range_inverted() -> None:
    assert compose_requests(date(2024, 3, 2), date(2024, 3, 1)) == []


def test_case_number_request_keys_on_request_date() -> None:
    request = compose_case_number_request("TM2024000123", today=date(2024, 5, 6))
    assert request.unique_key == "MY-CaseNumber-Value-2024-05-06-1"
    assert request.user_data["filterValue"] == "TM2024000123"
    assert request.user_data["requestDate"] == "2024-05-06"


def test_compose_request_reproduces_keys_for_later_pages() -> None:
    request = compose_request(
        {
            "filterKey": "PublicationDate",
            "filterStrategy": "Day",
            "filterValue": "2024-03-01",
            "pageNumber": 4,
        }
    )
    assert request.unique_key == "MY-PublicationDate-Day-2024-03-01-4"
