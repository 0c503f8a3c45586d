import pytest

from tmcrawl.core.ids import ID_LENGTH
from tmcrawl.workflows.errors import NavigationStateError
from tmcrawl.workflows.navigation import HttpProxy, Navigation, NavigationOutcome, split_host_domain


def _navigation(**overrides) -> Navigation:
    params = {
        "url": "https://example.gov/x",
        "attempt": 0,
        "office_code": "MY",
        "session_id": "session_1",
    }
    params.update(overrides)
    return Navigation.create(**params)


def test_success_without_redirect() -> None:
    nav = _navigation()
    nav.declare_landing("https://example.gov/x", {"accept": "*/*"}, 200, {"content-type": "text/html"})
    ended = nav.declare_ending(NavigationOutcome.SUCCESS, "https://example.gov/x", "Example Title")

    assert ended is nav
    row = nav.to_row()
    assert row["redirected"] is False
    assert row["status_code"] == 200
    assert row["outcome"] == "Success"
    assert row["title"] == "Example Title"
    assert row["landing_host"] == "example.gov"


def test_chained_navigation_gets_parent_and_fresh_id() -> None:
    nav = _navigation(parent_id="P1")
    assert nav.parent_id == "P1"
    assert nav.id != "P1"
    assert len(nav.id) == ID_LENGTH


def test_retry_chains_to_previous_attempt() -> None:
    first = _navigation()
    first.declare_ending(NavigationOutcome.RETRY)
    second = _navigation(attempt=1, previous=first)
    assert second.parent_id == first.id
    assert second.id != first.id
    assert second.attempt == 1


def test_explicit_parent_wins_over_previous_attempt() -> None:
    first = _navigation()
    second = _navigation(attempt=1, previous=first, parent_id="P1")
    assert second.parent_id == "P1"


def test_failure_without_landing_leaves_landing_empty() -> None:
    nav = _navigation()
    nav.declare_exception(TimeoutError("navigation timed out"))
    nav.declare_ending(NavigationOutcome.FAILURE, None, None)
    assert nav.landing_url is None
    assert nav.redirected is None
    assert nav.outcome is NavigationOutcome.FAILURE
    assert nav.to_row()["outcome"] == "Failure"


def test_redirect_detected_and_hosts_derived() -> None:
    nav = _navigation(url="http://www.example.gov.my/search")
    nav.declare_landing("https://portal.myipo.gov.my/results?id=1", status=302)
    assert nav.redirected is True
    assert nav.host == "www.example.gov.my"
    assert nav.domain == "example.gov.my"
    assert nav.landing_host == "portal.myipo.gov.my"
    assert nav.landing_domain == "myipo.gov.my"


def test_partial_landing_never_clears_known_fields() -> None:
    nav = _navigation()
    nav.declare_landing("https://example.gov/x", {"a": "1"}, 200, {"b": "2"}, "10.0.0.1", 443, {"protocol": "TLS 1.3"})
    nav.declare_landing(status=304)
    assert nav.landing_url == "https://example.gov/x"
    assert nav.redirected is False
    assert nav.status_code == 304
    assert nav.response_headers == {"b": "2"}
    assert nav.remote_address == "10.0.0.1"
    assert nav.remote_port == 443
    assert nav.security_details == {"protocol": "TLS 1.3"}


def test_empty_landing_is_a_noop() -> None:
    nav = _navigation()
    nav.declare_landing()
    assert nav.landing_url is None
    assert nav.status_code is None
    assert nav.redirected is None


def test_ending_with_new_url_redeclares_landing() -> None:
    nav = _navigation()
    nav.declare_landing("https://example.gov/x", status=200)
    nav.declare_ending(NavigationOutcome.RETRY, "https://other.example.gov/y")
    assert nav.landing_url == "https://other.example.gov/y"
    assert nav.redirected is True
    assert nav.landing_host == "other.example.gov"
    assert nav.status_code == 200


def test_ended_at_set_iff_outcome_set() -> None:
    nav = _navigation()
    assert nav.outcome is None and nav.ended_at is None and nav.ended_at_ms is None
    nav.declare_ending(NavigationOutcome.SUCCESS)
    assert nav.outcome is not None and nav.ended_at is not None and nav.ended_at_ms is not None
    assert nav.started_at <= nav.ended_at


def test_second_ending_fails_fast() -> None:
    nav = _navigation()
    nav.declare_ending(NavigationOutcome.SUCCESS)
    with pytest.raises(NavigationStateError):
        nav.declare_ending(NavigationOutcome.FAILURE)
    assert nav.outcome is NavigationOutcome.SUCCESS


def test_mutation_after_ending_is_rejected() -> None:
    nav = _navigation()
    nav.declare_ending(NavigationOutcome.SUCCESS)
    with pytest.raises(NavigationStateError):
        nav.declare_landing("https://example.gov/z")
    with pytest.raises(NavigationStateError):
        nav.collect_url("next", "https://example.gov/page/2")
    with pytest.raises(NavigationStateError):
        nav.declare_exception(RuntimeError("late"))


def test_first_exception_is_kept() -> None:
    nav = _navigation()
    try:
        raise ValueError("missing results table")
    except ValueError as exc:
        assert nav.declare_exception(exc) is True
    assert nav.declare_exception(RuntimeError("second")) is False

    assert nav.exception_present is True
    assert nav.exception_name == "ValueError"
    assert nav.exception_type == "builtins.ValueError"
    assert nav.exception_message == "missing results table"
    assert "missing results table" in nav.exception_stack_trace
    assert "Traceback" in nav.exception_stack_trace


def test_collected_urls_keep_insertion_order() -> None:
    nav = _navigation()
    nav.collect_url("detail", "https://example.gov/d/1")
    nav.collect_urls("page", ["https://example.gov/p/2", "https://example.gov/p/3"])
    row = nav.to_row()
    assert row["collected_urls"] == {
        "label": ["detail", "page", "page"],
        "url": ["https://example.gov/d/1", "https://example.gov/p/2", "https://example.gov/p/3"],
    }


def test_to_row_carries_provenance() -> None:
    nav = _navigation(
        method="get",
        proxy=HttpProxy(host="proxy.local", port=8080, user="crawler"),
        headers={"user-agent": "tmcrawl"},
        tags={"filterKey": "ApplicationDate", "requestId": "req-1"},
    )
    row = nav.to_row()
    assert row["method"] == "GET"
    assert row["request_proxy"] == {"host": "proxy.local", "port": 8080, "user": "crawler"}
    assert row["request_headers"] == {"user-agent": "tmcrawl"}
    assert row["tags"]["requestId"] == "req-1"
    assert row["session_id"] == "session_1"
    assert row["office_code"] == "MY"
    assert row["started_at"].endswith("+00:00")
    assert row["ended_at"] is None


def test_unknown_method_rejected() -> None:
    with pytest.raises(ValueError):
        _navigation(method="FETCH")


def test_split_host_domain_falls_back_to_host() -> None:
    assert split_host_domain("http://127.0.0.1:8080/x") == ("127.0.0.1", "127.0.0.1")
    assert split_host_domain("http://localhost/x") == ("localhost", "localhost")
    assert split_host_domain(None) == (None, None)
