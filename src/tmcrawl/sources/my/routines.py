"""Request composition for the MyIPO trademark search.

Every search starts from the same landing page; the filter to apply lives in
the request's user data and the request key makes each (filter, day, page)
combination unique in the queue. User data holds only JSON-safe values so
the engine can persist the queue.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional, Union

from crawlee import Request

from ...core.ids import format_date_iso
from ...core.keys import (
    K_FILTER_KEY,
    K_FILTER_STRATEGY,
    K_FILTER_VALUE,
    K_OFFICE_CODE,
    K_PAGE_NUMBER,
    K_REQUEST_DATE,
)
from ...workflows.request_keys import derive_key, is_date_filter, reference_date
from .types import MyFilterKey, MyFilterStrategy

logger = logging.getLogger(__name__)

MY_STARTING_URL = "https://iponlineext.myipo.gov.my/SPHI/Extra/Default.aspx"
MY_OFFICE_CODE = "MY"

DATE_FILTER_KEYS = tuple(key for key in MyFilterKey if is_date_filter(key))


def _json_safe(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return format_date_iso(value)
    if isinstance(value, MyFilterKey) or isinstance(value, MyFilterStrategy):
        return value.value
    return value


def request_key(
    filter_key: Union[MyFilterKey, str],
    filter_strategy: Union[MyFilterStrategy, str],
    on: Union[date, datetime, str],
    page_number: int,
) -> str:
    return derive_key(MY_OFFICE_CODE, filter_key, filter_strategy, on, page_number)


def compose_request(user_data: Mapping[str, Any], today: Optional[date] = None) -> Request:
    """Build the engine request for one search described by ``user_data``."""

    data: Dict[str, Any] = {key: _json_safe(value) for key, value in user_data.items()}
    data.setdefault(K_OFFICE_CODE, MY_OFFICE_CODE)
    data.setdefault(K_PAGE_NUMBER, 1)
    filter_key = MyFilterKey(data[K_FILTER_KEY])
    filter_strategy = MyFilterStrategy(data[K_FILTER_STRATEGY])
    on = reference_date(
        filter_key,
        data.get(K_FILTER_VALUE),
        request_date=data.get(K_REQUEST_DATE),
        today=today,
    )
    return Request.from_url(
        MY_STARTING_URL,
        unique_key=request_key(filter_key, filter_strategy, on, data[K_PAGE_NUMBER]),
        user_data=data,
    )


def compose_date_request(filter_key: MyFilterKey, on: date) -> Request:
    return compose_request(
        {
            K_FILTER_KEY: filter_key,
            K_FILTER_STRATEGY: MyFilterStrategy.DAY,
            K_FILTER_VALUE: on,
            K_OFFICE_CODE: MY_OFFICE_CODE,
            K_PAGE_NUMBER: 1,
        }
    )


def compose_application_date_request(on: date) -> Request:
    return compose_date_request(MyFilterKey.APPLICATION_DATE, on)


def compose_publication_date_request(on: date) -> Request:
    return compose_date_request(MyFilterKey.PUBLICATION_DATE, on)


def compose_case_number_request(case_number: str, today: Optional[date] = None) -> Request:
    request_date = today or datetime.now(timezone.utc).date()
    return compose_request(
        {
            K_FILTER_KEY: MyFilterKey.CASE_NUMBER,
            K_FILTER_STRATEGY: MyFilterStrategy.VALUE,
            K_FILTER_VALUE: case_number,
            K_OFFICE_CODE: MY_OFFICE_CODE,
            K_PAGE_NUMBER: 1,
            K_REQUEST_DATE: request_date,
        },
        today=request_date,
    )


def compose_requests(start: date, end: date) -> List[Request]:
    """One request per day in ``[start, end]`` for every date-based filter."""

    if isinstance(start, datetime):
        start = start.date()
    if isinstance(end, datetime):
        end = end.date()
    requests: List[Request] = []
    current = start
    while current <= end:
        for filter_key in DATE_FILTER_KEYS:
            request = compose_date_request(filter_key, current)
            logger.debug("Composed MY request key=%s", request.unique_key)
            requests.append(request)
        current += timedelta(days=1)
    return requests


def compose_requests_for_date(on: date) -> List[Request]:
    return compose_requests(on, on)
