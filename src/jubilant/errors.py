"""Jubilant exception hierarchy.

Registration problems surface as ``ConfigurationError`` at startup so a
misconfigured route never reaches request time.
"""


class JubilantError(Exception):
    """Base for all jubilant-specific errors."""


class ConfigurationError(JubilantError):
    """Raised when a route, middleware, or handler is registered incorrectly."""


class ParameterCoercionError(JubilantError):
    """A captured path value could not be converted to the declared type."""

    def __init__(self, name: str, value: str, annotation: object) -> None:
        self.name = name
        self.value = value
        self.annotation = annotation
        type_label = getattr(annotation, "__name__", repr(annotation))
        super().__init__(f"Path parameter {name!r}={value!r} is not a valid {type_label}")
