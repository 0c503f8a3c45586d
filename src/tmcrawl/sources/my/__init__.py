"""Malaysian IP office (MyIPO) trademark search."""

from .routines import (
    MY_OFFICE_CODE,
    MY_STARTING_URL,
    compose_application_date_request,
    compose_case_number_request,
    compose_date_request,
    compose_publication_date_request,
    compose_request,
    compose_requests,
    compose_requests_for_date,
)
from .types import MyFilterKey, MyFilterStrategy

__all__ = [
    "MY_OFFICE_CODE",
    "MY_STARTING_URL",
    "MyFilterKey",
    "MyFilterStrategy",
    "compose_application_date_request",
    "compose_case_number_request",
    "compose_date_request",
    "compose_publication_date_request",
    "compose_request",
    "compose_requests",
    "compose_requests_for_date",
]
