"""Registration-time handler validation.

Every handler is checked when its route is registered so broken routes fail
at startup instead of falling through at request time. Strict mode adds a
check that every parameter can be resolved to a real value.
"""

from __future__ import annotations

import inspect
from typing import Any

from jubilant.errors import ConfigurationError
from jubilant.resolver import ArgumentResolver, HandlerParam


def validate_method_handler(cls: Any, method_name: str, path: str, method: str) -> None:
    """Ensure ``cls`` is a class exposing a callable named *method_name*."""
    if not inspect.isclass(cls):
        raise ConfigurationError(
            f"\n\nInvalid controller for route [{method} {path}]\n"
            f"  Current: {cls!r}\n"
            f"  Problem: Controller must be a class, instantiated per request.\n"
            f"  Fix:     Register (ControllerClass, 'method_name').\n"
        )
    if not callable(getattr(cls, method_name, None)):
        raise ConfigurationError(
            f"\n\nInvalid controller for route [{method} {path}]\n"
            f"  Problem: {cls.__name__} has no method {method_name!r}.\n"
            f"  Fix:     Define {cls.__name__}.{method_name}() or correct the route.\n"
        )


def validate_callable(func: Any, path: str, method: str) -> None:
    """Reject non-callables and coroutine functions."""
    if not callable(func):
        raise ConfigurationError(
            f"\n\nInvalid handler for route [{method} {path}]\n"
            f"  Current: {func!r}\n"
            f"  Problem: Handler is not callable.\n"
            f"  Fix:     Pass a function or a (ControllerClass, 'method_name') pair.\n"
        )
    if inspect.iscoroutinefunction(func):
        name = getattr(func, "__name__", repr(func))
        raise ConfigurationError(
            f"\n\nInvalid handler '{name}' for route [{method} {path}]\n"
            f"  Problem: Handler is a coroutine function; handlers are invoked synchronously.\n"
            f"  Fix:     Declare it with 'def' instead of 'async def'.\n"
        )


def validate_strict_params(
    name: str,
    params: tuple[HandlerParam, ...],
    path_params: tuple[str, ...],
    resolver: ArgumentResolver,
    path: str,
    method: str,
) -> None:
    """Raise ``TypeError`` when a parameter would silently resolve to ``None``."""
    bound = frozenset(path_params)
    for param in params:
        if resolver.can_resolve(param, bound):
            continue
        type_label = getattr(param.annotation, "__name__", None) or repr(param.annotation)
        raise TypeError(
            f"\n\nStrict-mode violation in handler '{name}' "
            f"[{method} {path}]\n"
            f"  Current: {param.name}: {type_label}\n"
            f"  Problem: Parameter '{param.name}' is not a path parameter, has no "
            f"registered factory or zero-argument constructor for its type, and no default.\n"
            f"  Fix:     Capture it in the path, e.g. {{{param.name}:\\w+}}, call "
            f"router.provide({type_label}), or give it a default.\n"
        )
