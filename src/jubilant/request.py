"""Request wrapper built from an ASGI scope and an already-read body."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any
from urllib.parse import parse_qs

if TYPE_CHECKING:
    from jubilant._types import Receive, Scope


class Request:
    """Thin read-only view over an ASGI *scope* plus the request body.

    The body is read before dispatch, because routing and handlers run
    synchronously in a worker thread.
    """

    __slots__ = ("_body", "_scope", "path_params")

    def __init__(
        self,
        scope: Scope,
        body: bytes = b"",
        path_params: dict[str, str] | None = None,
    ) -> None:
        self._scope = scope
        self._body = body
        self.path_params: dict[str, str] = path_params or {}

    @classmethod
    def from_values(
        cls,
        method: str,
        path: str,
        *,
        query_string: bytes = b"",
        headers: dict[str, str] | None = None,
        body: bytes = b"",
    ) -> Request:
        """Build a request without an ASGI server, e.g. from a script or test."""
        scope: dict[str, Any] = {
            "type": "http",
            "method": method.upper(),
            "path": path,
            "query_string": query_string,
            "headers": [(k.lower().encode("latin-1"), v.encode("latin-1")) for k, v in (headers or {}).items()],
        }
        return cls(scope, body)

    @classmethod
    async def from_asgi(cls, scope: Scope, receive: Receive) -> Request:
        """Read the full body from *receive* and wrap it with *scope*."""
        chunks: list[bytes] = []
        while True:
            message = await receive()
            chunk = message.get("body", b"")
            if chunk:
                chunks.append(chunk)
            if not message.get("more_body", False):
                break
        return cls(scope, b"".join(chunks))

    @property
    def method(self) -> str:
        return self._scope["method"]

    @property
    def path(self) -> str:
        return self._scope["path"]

    @property
    def query_string(self) -> bytes:
        return self._scope.get("query_string", b"")

    @property
    def query_params(self) -> dict[str, list[str]]:
        return parse_qs(self.query_string.decode("latin-1"))

    @property
    def headers(self) -> dict[str, str]:
        """Headers as a lowercase-keyed dict (last value wins for dupes)."""
        return {k.decode("latin-1"): v.decode("latin-1") for k, v in self._scope.get("headers", [])}

    @property
    def body(self) -> bytes:
        return self._body

    def json(self) -> Any:
        """Parse the request body as JSON."""
        return json.loads(self._body)

    def form(self) -> dict[str, list[str]]:
        """Parse an ``application/x-www-form-urlencoded`` body."""
        return parse_qs(self._body.decode("utf-8"))

    def __repr__(self) -> str:
        return f"Request({self.method!r}, {self.path!r})"
