import asyncio

from tmcrawl.workflows.errors import ResponseBodyError, ResponseError, ResponseStatusError


class FakeRequest:
    method = "POST"
    url = "https://iponlineext.myipo.gov.my/SPHI/Extra/Default.aspx"
    headers = {"accept": "*/*"}

    async def all_headers(self):
        raise RuntimeError("target closed")


class FakeResponse:
    status = 503
    url = "https://iponlineext.myipo.gov.my/SPHI/Extra/Default.aspx"
    headers = {"retry-after": "30"}

    def __init__(self):
        self.request = FakeRequest()

    async def all_headers(self):
        return {"retry-after": "30", "server": "Microsoft-IIS/10.0"}

    async def text(self):
        return "Service Unavailable"


def test_status_error_captures_context_with_header_fallback() -> None:
    error = asyncio.run(ResponseStatusError.from_response("search page unavailable", FakeResponse()))
    assert isinstance(error, ResponseError)
    assert str(error) == "search page unavailable"
    assert error.request_method == "POST"
    assert error.request_headers == {"accept": "*/*"}
    assert error.response_status == 503
    assert error.response_headers["server"] == "Microsoft-IIS/10.0"
    assert error.response_body == "Service Unavailable"


def test_body_error_keeps_supplied_body() -> None:
    error = asyncio.run(ResponseBodyError.from_response("results grid missing", FakeResponse(), "<html/>"))
    assert error.response_body == "<html/>"
    assert error.response_status == 503
