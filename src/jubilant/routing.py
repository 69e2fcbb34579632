"""Route records, the route table, and grouped registration.

Routes are appended to a :class:`RouteTable` in registration order and
never change afterwards. Registration goes through a :class:`Registrar`:
the router itself is the root registrar, and ``group()`` hands the callback
a child :class:`RouteGroup` carrying the combined prefix and middleware::

    def api(group):
        group.get("/ping", ping)
        group.group("/v1", [Auth], lambda v1: v1.post("/items", create_item))

    router.group("/api", [RequestLog], api)
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from jubilant.context import current_response
from jubilant.middleware import MiddlewareChain
from jubilant.patterns import PathPattern
from jubilant.resolver import HandlerParam, handler_params
from jubilant.validation import validate_callable, validate_method_handler

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"})


@dataclass(frozen=True, slots=True)
class FunctionHandler:
    """A plain callable handler."""

    func: Callable[..., Any]

    @property
    def name(self) -> str:
        return getattr(self.func, "__qualname__", repr(self.func))

    def params(self) -> tuple[HandlerParam, ...]:
        return handler_params(self.func)

    def __call__(self, *args: Any) -> Any:
        return self.func(*args)


@dataclass(frozen=True, slots=True)
class MethodHandler:
    """A controller class instantiated per request, and the method to call on it."""

    cls: type
    method_name: str

    @property
    def name(self) -> str:
        return f"{self.cls.__qualname__}.{self.method_name}"

    def params(self) -> tuple[HandlerParam, ...]:
        attr = inspect.getattr_static(self.cls, self.method_name)
        is_unbound = not isinstance(attr, (staticmethod, classmethod))
        return handler_params(getattr(self.cls, self.method_name), skip_first=is_unbound)

    def __call__(self, *args: Any) -> Any:
        return getattr(self.cls(), self.method_name)(*args)


Handler = FunctionHandler | MethodHandler


def as_handler(handler: Any, path: str, method: str) -> Handler:
    """Normalize a callable or a ``(Class, "method")`` pair, validating it."""
    if isinstance(handler, FunctionHandler | MethodHandler):
        return handler
    if isinstance(handler, tuple):
        if len(handler) != 2 or not isinstance(handler[1], str):
            validate_callable(handler, path, method)
        cls, method_name = handler
        validate_method_handler(cls, method_name, path, method)
        return MethodHandler(cls, method_name)
    validate_callable(handler, path, method)
    return FunctionHandler(handler)


@dataclass(frozen=True, slots=True)
class Route:
    """A frozen route definition."""

    method: str
    path: str
    handler: Handler
    middleware: MiddlewareChain = field(default_factory=MiddlewareChain)
    pattern: PathPattern = field(init=False, compare=False)
    params: tuple[HandlerParam, ...] = field(init=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "pattern", PathPattern(self.path))
        object.__setattr__(self, "params", self.handler.params())

    def match(self, method: str, path: str) -> dict[str, str] | None:
        """Return captured params if *method* and *path* match, else ``None``."""
        if method != self.method:
            return None
        return self.pattern.match(path)

    def __repr__(self) -> str:
        return f"Route({self.method!r}, {self.path!r}, {self.handler.name})"


class RouteTable:
    """Ordered, append-only collection of routes."""

    __slots__ = ("_frozen", "_routes")

    def __init__(self) -> None:
        self._routes: list[Route] = []
        self._frozen = False

    def add(self, route: Route) -> Route:
        if self._frozen:
            msg = f"Cannot register {route.method} {route.path!r}: the route table is frozen."
            raise RuntimeError(msg)
        self._routes.append(route)
        return route

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __iter__(self) -> Iterator[Route]:
        return iter(self._routes)

    def __len__(self) -> int:
        return len(self._routes)

    def __getitem__(self, index: int) -> Route:
        return self._routes[index]


def redirect_handler(target: str, status_code: int = 302) -> Callable[[], None]:
    """Build a handler that redirects the current response to *target*."""
    def redirect() -> None:
        current_response().redirect(target, status_code)

    redirect.__qualname__ = f"redirect({target!r})"
    return redirect


class Registrar:
    """Route registration API bound to a prefix and inherited middleware."""

    __slots__ = ("middleware", "prefix", "table")

    def __init__(self, table: RouteTable, prefix: str = "", middleware: Sequence[Any] = ()) -> None:
        self.table = table
        self.prefix = prefix
        self.middleware = MiddlewareChain(middleware)

    def add_route(
        self,
        method: str,
        path: str,
        handler: Any,
        middleware: Sequence[Any] | None = None,
    ) -> Route:
        """Register *handler* for *method* on ``prefix + path``."""
        method = method.upper()
        if method not in HTTP_METHODS:
            msg = f"Unsupported HTTP method: {method!r}"
            raise ValueError(msg)
        full_path = self.prefix + path
        route = Route(
            method=method,
            path=full_path,
            handler=as_handler(handler, full_path, method),
            middleware=self.middleware + (middleware or ()),
        )
        return self.table.add(route)

    def _verb(self, method: str, path: str, handler: Any, middleware: Sequence[Any] | None) -> Any:
        if handler is not None:
            return self.add_route(method, path, handler, middleware)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self.add_route(method, path, func, middleware)
            return func

        return decorator

    def get(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self._verb("GET", path, handler, middleware)

    def post(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self._verb("POST", path, handler, middleware)

    def put(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self._verb("PUT", path, handler, middleware)

    def patch(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self._verb("PATCH", path, handler, middleware)

    def delete(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self._verb("DELETE", path, handler, middleware)

    def redirect(self, path: str, target: str, status_code: int = 302) -> Route:
        """Register a GET route that answers with a redirect to *target*."""
        return self.add_route("GET", path, redirect_handler(target, status_code))

    def group(
        self,
        prefix: str,
        middleware: Sequence[Any],
        callback: Callable[[RouteGroup], Any],
    ) -> RouteGroup:
        """Call *callback* with a registrar scoped to ``prefix`` and *middleware*.

        The scope is a new value; this registrar is left untouched no matter
        how the callback exits.
        """
        group = RouteGroup(self.table, self.prefix + prefix, self.middleware.refs + tuple(middleware))
        callback(group)
        return group


class RouteGroup(Registrar):
    """A registrar created by ``group()``."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"RouteGroup({self.prefix!r}, {self.middleware!r})"
