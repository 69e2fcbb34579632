"""Request-scoped context via ContextVar.

Provides:
- ``request_var``: the current ``Request``, set by the application.
- ``response_var``: the ``Response`` being filled by the current dispatch.

Both are task-local under asyncio and thread-local in the executor the
application dispatches in. Accessing them outside a request raises
``LookupError``.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator

    from jubilant.request import Request
    from jubilant.response import Response

request_var: ContextVar[Request] = ContextVar("jubilant_request")
response_var: ContextVar[Response] = ContextVar("jubilant_response")


def current_request() -> Request:
    """Return the current request.

    Raises ``LookupError`` if called outside a request context.
    """
    return request_var.get()


def current_response() -> Response:
    """Return the response of the dispatch in progress."""
    return response_var.get()


@contextmanager
def bind_request(request: Request) -> Iterator[Request]:
    """Make *request* the ambient request for the enclosed block."""
    token = request_var.set(request)
    try:
        yield request
    finally:
        request_var.reset(token)


@contextmanager
def bind_response(response: Response) -> Iterator[Response]:
    token = response_var.set(response)
    try:
        yield response
    finally:
        response_var.reset(token)
