"""Crawl error taxonomy.

``Response*`` errors are raised by extraction code when the page does not
answer the way the site flow expects; they flow to the engine's error
handlers like any other failure. The ``Navigation*`` errors guard the
navigation lifecycle itself.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class ResponseError(Exception):
    """Base class for unexpected page responses."""


class ResponseTimeoutError(ResponseError):
    """An expected response never arrived."""

    def __init__(
        self,
        message: str,
        request_method: Optional[str] = None,
        request_url: Optional[str] = None,
        request_headers: Optional[Dict[str, str]] = None,
    ) -> None:
        super().__init__(message)
        self.request_method = request_method
        self.request_url = request_url
        self.request_headers = request_headers


class _ResponseContextError(ResponseError):
    def __init__(
        self,
        message: str,
        request_method: str,
        request_url: str,
        request_headers: Dict[str, str],
        response_status: int,
        response_url: str,
        response_headers: Dict[str, str],
        response_body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.request_method = request_method
        self.request_url = request_url
        self.request_headers = request_headers
        self.response_status = response_status
        self.response_url = response_url
        self.response_headers = response_headers
        self.response_body = response_body


class ResponseStatusError(_ResponseContextError):
    """The response arrived with an unexpected status code."""

    @classmethod
    async def from_response(cls, message: str, response: Any) -> "ResponseStatusError":
        context = await capture_response_context(response)
        return cls(message, **context)


class ResponseBodyError(_ResponseContextError):
    """The response body did not contain what the flow expected."""

    @classmethod
    async def from_response(cls, message: str, response: Any, body: str) -> "ResponseBodyError":
        context = await capture_response_context(response, read_body=False)
        context["response_body"] = body
        return cls(message, **context)


class NavigationStateError(RuntimeError):
    """A Navigation was mutated after it had already ended."""


class NavigationNotFoundError(LookupError):
    """No live Navigation is registered for an engine request."""


async def capture_response_context(response: Any, *, read_body: bool = True) -> Dict[str, Any]:
    """Collect request/response details from a Playwright response.

    ``all_headers()`` needs the raw network headers and can fail once the page
    is gone; fall back to the provisional ``headers`` in that case.
    """

    request = response.request
    try:
        request_headers = await request.all_headers()
    except Exception:
        request_headers = dict(request.headers)
    try:
        response_headers = await response.all_headers()
    except Exception:
        response_headers = dict(response.headers)
    body: Optional[str] = None
    if read_body:
        try:
            body = await response.text()
        except Exception:
            body = None
    return {
        "request_method": request.method,
        "request_url": request.url,
        "request_headers": request_headers,
        "response_status": response.status,
        "response_url": response.url,
        "response_headers": response_headers,
        "response_body": body,
    }
