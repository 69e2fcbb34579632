"""Request dispatch.

:class:`Router` owns the route table and runs one request through it:

    Scanning -> MiddlewareCheck -> Dispatching -> Done
                       |
                       +-> Aborted
    Scanning -> NotFound

Routes are tried in registration order and the first match wins. At most
one handler runs per dispatch.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from jubilant.context import bind_response, request_var, response_var
from jubilant.middleware import Reject
from jubilant.request import Request
from jubilant.resolver import ArgumentResolver
from jubilant.response import Response
from jubilant.routing import Registrar, Route, RouteTable
from jubilant.validation import validate_callable, validate_strict_params

logger = logging.getLogger("jubilant.router")

NOT_FOUND_BODY = "404 Not Found"


class DispatchState(enum.Enum):
    DONE = "done"
    ABORTED = "aborted"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """How a dispatch ended, which route it reached, and the response it produced."""

    state: DispatchState
    response: Response
    route: Route | None = None
    params: dict[str, str] | None = None


class Router(Registrar):
    """Ordered route table with first-match-wins dispatch.

    Parameters
    ----------
    strict:
        When ``True``, ``freeze()`` rejects handlers with a parameter that
        would resolve to ``None`` (no path capture, factory, or default).
    coerce_params:
        When ``True``, captured path values are converted to the handler's
        annotated parameter types.
    """

    __slots__ = ("_not_found_handler", "resolver", "strict")

    def __init__(self, *, strict: bool = False, coerce_params: bool = False) -> None:
        super().__init__(RouteTable())
        self.strict = strict
        self.resolver = ArgumentResolver(coerce=coerce_params)
        self.resolver.provide(Request, lambda: request_var.get(None))
        self.resolver.provide(Response, response_var.get)
        self._not_found_handler: Callable[[], Any] | None = None

    @property
    def routes(self) -> RouteTable:
        return self.table

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def set_not_found_handler(self, handler: Callable[[], Any]) -> None:
        self._check_open("set the not-found handler")
        validate_callable(handler, "*", "*")
        self._not_found_handler = handler

    def provide(self, tp: Any, factory: Callable[[], Any] | None = None) -> None:
        """Inject ``factory()`` (default ``tp()``) into parameters annotated *tp*."""
        self._check_open(f"provide {getattr(tp, '__name__', tp)!s}")
        self.resolver.provide(tp, factory)

    def _check_open(self, action: str) -> None:
        if self.table.frozen:
            raise RuntimeError(f"Cannot {action}: the router is frozen.")

    def freeze(self) -> None:
        """End the registration phase; the table is read-only afterwards."""
        if self.table.frozen:
            return
        if self.strict:
            for route in self.table:
                validate_strict_params(
                    route.handler.name,
                    route.params,
                    route.pattern.param_names,
                    self.resolver,
                    route.path,
                    route.method,
                )
        self.table.freeze()
        logger.debug("Router frozen with %d routes", len(self.table))

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def dispatch(
        self,
        path: str | None = None,
        method: str | None = None,
        response: Response | None = None,
    ) -> DispatchResult:
        """Route one request and invoke at most one handler.

        *path* and *method* default to the ambient request. Handler
        exceptions propagate unchanged.
        """
        if path is None or method is None:
            request = request_var.get()
            path = request.path if path is None else path
            method = request.method if method is None else method
        path = path.partition("?")[0]
        method = method.upper()
        if response is None:
            response = response_var.get(None) or Response()

        with bind_response(response):
            for route in self.table:
                params = route.match(method, path)
                if params is None:
                    continue

                outcome = route.middleware.evaluate(path, method)
                if isinstance(outcome, Reject):
                    _apply_rejection(response, outcome)
                    return DispatchResult(DispatchState.ABORTED, response, route, params)

                logger.debug("%s %s -> %s", method, path, route.handler.name)
                args = self.resolver.resolve(params, route.params)
                _write_result(response, route.handler(*args))
                return DispatchResult(DispatchState.DONE, response, route, params)

            logger.debug("%s %s -> not found", method, path)
            response.status_code = 404
            if self._not_found_handler is not None:
                _write_result(response, self._not_found_handler())
            else:
                response.write(NOT_FOUND_BODY)
            return DispatchResult(DispatchState.NOT_FOUND, response)


def _apply_rejection(response: Response, outcome: Reject) -> None:
    response.status_code = outcome.status
    for name, value in outcome.headers:
        response.set_header(name, value)
    if outcome.body:
        response.write(outcome.body)


def _write_result(response: Response, result: Any) -> None:
    if result is None or result is response:
        return
    if isinstance(result, str | bytes):
        response.write(result)
    elif isinstance(result, dict | list | BaseModel):
        response.write_json(result)
    else:
        response.write(str(result))
