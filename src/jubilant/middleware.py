"""Route middleware: pre-dispatch gates with explicit outcomes.

A middleware is any class (or instance) exposing::

    def handle(self, path: str, method: str) -> bool | MiddlewareOutcome: ...

No base class required. Class references are instantiated with no
arguments every time the chain runs, so construction must not depend on
request state.

Returning ``True`` or :data:`ALLOW` lets the request through. Returning
``False`` or a :class:`Reject` stops the chain; the rejection carries the
response the client receives::

    class RequireJSON:
        def handle(self, path: str, method: str) -> MiddlewareOutcome:
            if current_request().headers.get("content-type") != "application/json":
                return Reject(415, "JSON required")
            return ALLOW
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from jubilant.errors import ConfigurationError

logger = logging.getLogger("jubilant.middleware")


@dataclass(frozen=True, slots=True)
class Allow:
    """The request may continue to the next middleware or the handler."""


@dataclass(frozen=True, slots=True)
class Reject:
    """The request stops here and the router answers with this response."""

    status: int = 403
    body: str = ""
    headers: tuple[tuple[str, str], ...] = ()


MiddlewareOutcome = Allow | Reject

ALLOW = Allow()


class Middleware(Protocol):
    """Protocol for route middleware."""

    def handle(self, path: str, method: str) -> bool | MiddlewareOutcome: ...


def check_middleware(ref: Any) -> None:
    """Raise ``ConfigurationError`` unless *ref* exposes a callable ``handle``."""
    if not callable(getattr(ref, "handle", None)):
        name = getattr(ref, "__name__", type(ref).__name__)
        msg = f"Middleware {name!r} has no callable 'handle(path, method)' method"
        raise ConfigurationError(msg)


def _outcome(result: Any) -> MiddlewareOutcome:
    if isinstance(result, (Allow, Reject)):
        return result
    return ALLOW if result else Reject()


class MiddlewareChain:
    """Ordered middleware references evaluated with short-circuit semantics."""

    __slots__ = ("refs",)

    def __init__(self, refs: Iterable[Any] = ()) -> None:
        self.refs: tuple[Any, ...] = tuple(refs)
        for ref in self.refs:
            check_middleware(ref)

    def evaluate(self, path: str, method: str) -> MiddlewareOutcome:
        """Run each middleware in order; return the first rejection or ALLOW."""
        for ref in self.refs:
            instance = ref() if inspect.isclass(ref) else ref
            outcome = _outcome(instance.handle(path, method))
            if isinstance(outcome, Reject):
                logger.info(
                    "%s rejected %s %s with status %d",
                    type(instance).__name__,
                    method,
                    path,
                    outcome.status,
                )
                return outcome
        return ALLOW

    def __add__(self, other: Sequence[Any] | MiddlewareChain) -> MiddlewareChain:
        extra = other.refs if isinstance(other, MiddlewareChain) else tuple(other)
        return MiddlewareChain(self.refs + extra)

    def __len__(self) -> int:
        return len(self.refs)

    def __iter__(self):
        return iter(self.refs)

    def __repr__(self) -> str:
        names = ", ".join(getattr(r, "__name__", type(r).__name__) for r in self.refs)
        return f"MiddlewareChain([{names}])"
