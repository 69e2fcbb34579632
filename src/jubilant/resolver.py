"""Handler argument resolution.

Each handler parameter is filled, in declaration order, from the first of:

1. the captured path parameter with the same name,
2. the zero-argument factory registered for its declared type, or a new
   instance of the declared class when it is not a builtin,
3. its default value,
4. ``None``.
"""

from __future__ import annotations

import functools
import inspect
import sys
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import TypeAdapter, ValidationError

from jubilant.errors import ParameterCoercionError

_EMPTY = inspect.Parameter.empty


@dataclass(frozen=True, slots=True)
class HandlerParam:
    """A handler parameter captured at registration time."""

    name: str
    annotation: Any = None
    default: Any = _EMPTY

    @property
    def has_default(self) -> bool:
        return self.default is not _EMPTY


def _namespace(func: Callable[..., Any]) -> dict[str, Any]:
    globalns = getattr(inspect.unwrap(func), "__globals__", None)
    if globalns is None:
        module = sys.modules.get(getattr(func, "__module__", None) or "")
        globalns = vars(module) if module is not None else {}
    return globalns


def _evaluate(annotation: Any, namespace: dict[str, Any]) -> Any:
    """Resolve one string annotation; unresolvable names stay as strings.

    Each parameter is resolved on its own so a ``TYPE_CHECKING``-only import
    on one parameter does not hide the types of the others.
    """
    if not isinstance(annotation, str):
        return annotation
    try:
        return eval(annotation, namespace)  # noqa: S307
    except (NameError, AttributeError):
        return annotation


def is_constructible(annotation: Any) -> bool:
    """Whether parameters of this type get a fresh ``annotation()`` instance.

    Builtin scalars and containers, protocols, abstract classes and classes
    whose constructor requires arguments are excluded.
    """
    return (
        inspect.isclass(annotation)
        and annotation.__module__ != "builtins"
        and not getattr(annotation, "_is_protocol", False)
        and not inspect.isabstract(annotation)
        and _takes_no_arguments(annotation)
    )


@functools.lru_cache(maxsize=256)
def _takes_no_arguments(cls: type) -> bool:
    try:
        inspect.signature(cls).bind()
    except (TypeError, ValueError):
        return False
    return True


def handler_params(func: Callable[..., Any], *, skip_first: bool = False) -> tuple[HandlerParam, ...]:
    """Describe the positional-or-keyword parameters of *func*.

    ``skip_first`` drops ``self`` when *func* is an unbound method.
    """
    namespace = _namespace(func)
    params = []
    for index, param in enumerate(inspect.signature(func).parameters.values()):
        if skip_first and index == 0:
            continue
        if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
            continue
        annotation = _evaluate(param.annotation, namespace)
        params.append(
            HandlerParam(
                name=param.name,
                annotation=None if annotation is _EMPTY else annotation,
                default=param.default,
            )
        )
    return tuple(params)


class ArgumentResolver:
    """Build positional handler arguments from bound path parameters.

    Parameters
    ----------
    factories:
        Mapping of declared type to a zero-argument callable producing
        the value injected for parameters of that type. Unregistered
        non-builtin classes are built with their zero-argument constructor.
    coerce:
        When ``True``, captured strings are validated against the
        parameter's annotation with pydantic (``"42"`` becomes ``42`` for
        an ``int``). Otherwise they are passed through unchanged.
    """

    __slots__ = ("_adapters", "coerce", "factories")

    def __init__(
        self,
        factories: Mapping[Any, Callable[[], Any]] | None = None,
        *,
        coerce: bool = False,
    ) -> None:
        self.factories: dict[Any, Callable[[], Any]] = dict(factories or {})
        self.coerce = coerce
        self._adapters: dict[Any, TypeAdapter[Any]] = {}

    def provide(self, tp: Any, factory: Callable[[], Any] | None = None) -> None:
        """Register *factory* (default: *tp* itself) for parameters typed *tp*."""
        self.factories[tp] = tp if factory is None else factory

    def can_resolve(self, param: HandlerParam, bound_names: frozenset[str] | set[str]) -> bool:
        """Whether *param* resolves to something other than the ``None`` fallback."""
        return (
            param.name in bound_names
            or param.annotation in self.factories
            or is_constructible(param.annotation)
            or param.has_default
        )

    def resolve(self, bound: Mapping[str, str], params: tuple[HandlerParam, ...]) -> list[Any]:
        args: list[Any] = []
        for param in params:
            if param.name in bound:
                args.append(self._bound_value(param, bound[param.name]))
            elif param.annotation is not None and param.annotation in self.factories:
                args.append(self.factories[param.annotation]())
            elif is_constructible(param.annotation):
                args.append(param.annotation())
            elif param.has_default:
                args.append(param.default)
            else:
                args.append(None)
        return args

    def _bound_value(self, param: HandlerParam, value: str) -> Any:
        if not self.coerce or param.annotation in (None, str, Any):
            return value
        adapter = self._adapters.get(param.annotation)
        if adapter is None:
            adapter = self._adapters[param.annotation] = TypeAdapter(param.annotation)
        try:
            return adapter.validate_strings(value)
        except ValidationError as exc:
            raise ParameterCoercionError(param.name, value, param.annotation) from exc
