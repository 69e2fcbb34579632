"""Mutable response sink filled in during one dispatch.

The router sets the status for not-found and rejected requests; handlers
write body content, set headers, or redirect. The application sends the
finished response over ASGI.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from pydantic import BaseModel
from pydantic_core import to_json

if TYPE_CHECKING:
    from jubilant._types import Send


class Response:
    """HTTP response assembled by the router and handlers."""

    __slots__ = ("_chunks", "headers", "status_code")

    media_type = "text/html; charset=utf-8"

    def __init__(
        self,
        content: str | bytes = b"",
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.status_code = status_code
        self.headers: dict[str, str] = {"content-type": self.media_type}
        if headers:
            for name, value in headers.items():
                self.set_header(name, value)
        self._chunks: list[bytes] = []
        if content:
            self.write(content)

    def set_header(self, name: str, value: str) -> None:
        self.headers[name.lower()] = value

    def write(self, content: str | bytes) -> None:
        """Append *content* to the body."""
        if isinstance(content, str):
            content = content.encode("utf-8")
        self._chunks.append(content)

    def write_json(self, content: Any) -> None:
        """Replace the body with *content* serialized as JSON."""
        if isinstance(content, BaseModel):
            data = content.model_dump_json().encode("utf-8")
        else:
            data = to_json(content)
        self.set_header("content-type", "application/json")
        self._chunks = [data]

    def redirect(self, location: str, status_code: int = 302) -> None:
        """Turn this response into a body-less redirect to *location*."""
        self.status_code = status_code
        self.set_header("location", location)
        self._chunks = []

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    @property
    def text(self) -> str:
        return self.body.decode("utf-8")

    async def send(self, send: Send) -> None:
        body = self.body
        headers = [(k.encode("latin-1"), v.encode("latin-1")) for k, v in self.headers.items()]
        headers.append((b"content-length", str(len(body)).encode("latin-1")))
        await send({"type": "http.response.start", "status": self.status_code, "headers": headers})
        await send({"type": "http.response.body", "body": body})

    def __repr__(self) -> str:
        return f"{type(self).__name__}(status_code={self.status_code})"


class JSONResponse(Response):
    """Response whose body is *content* serialized as JSON."""

    media_type = "application/json"

    def __init__(self, content: Any = None, status_code: int = 200, headers: dict[str, str] | None = None) -> None:
        super().__init__(status_code=status_code, headers=headers)
        self.write_json(content)
