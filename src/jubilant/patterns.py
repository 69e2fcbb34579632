"""Path patterns with regex-typed segments.

A pattern such as ``/users/{id:\\d+}/posts`` is split into segments once, at
registration time. Each request path is then compared segment by segment.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from jubilant.errors import ConfigurationError

_PARAM_RE = re.compile(r"\{(\w+):(.+)\}")


@dataclass(frozen=True, slots=True)
class Segment:
    """One ``/``-delimited piece of a pattern.

    Literal:  ``users``     (regex is None)
    Param:    ``{id:\\d+}`` (name="id", regex=compiled ``\\d+``)
    """

    value: str
    name: str | None = None
    regex: re.Pattern[str] | None = None

    @property
    def is_param(self) -> bool:
        return self.regex is not None


def split_path(path: str) -> list[str]:
    """Strip surrounding slashes and split on ``/``.

    The root path ``/`` yields a single empty segment, so it only ever
    matches another root path.
    """
    return path.strip("/").split("/")


def parse_pattern(path: str) -> tuple[Segment, ...]:
    """Parse a route path into segments, compiling parameter regexes."""
    segments: list[Segment] = []
    seen: set[str] = set()

    for part in split_path(path):
        m = _PARAM_RE.fullmatch(part)
        if m is None:
            segments.append(Segment(part))
            continue

        name, source = m.group(1), m.group(2)
        if name in seen:
            msg = f"Duplicate path parameter {name!r} in {path!r}"
            raise ConfigurationError(msg)
        seen.add(name)

        try:
            regex = re.compile(source)
        except re.error as exc:
            msg = f"Invalid regex for path parameter {name!r} in {path!r}: {exc}"
            raise ConfigurationError(msg) from exc
        segments.append(Segment(part, name=name, regex=regex))

    return tuple(segments)


class PathPattern:
    """A compiled route path."""

    __slots__ = ("path", "segments")

    def __init__(self, path: str) -> None:
        self.path = path
        self.segments = parse_pattern(path)

    @property
    def param_names(self) -> tuple[str, ...]:
        return tuple(seg.name for seg in self.segments if seg.name is not None)

    def match(self, request_path: str) -> dict[str, str] | None:
        """Return captured params if *request_path* matches, else ``None``."""
        parts = split_path(request_path)
        if len(parts) != len(self.segments):
            return None

        params: dict[str, str] = {}
        for seg, part in zip(self.segments, parts):
            if seg.regex is None:
                if seg.value != part:
                    return None
            elif seg.regex.fullmatch(part) is None:
                return None
            else:
                params[seg.name] = part  # type: ignore[index]
        return params

    def __repr__(self) -> str:
        return f"PathPattern({self.path!r})"


def match(request_path: str, pattern: str | PathPattern) -> tuple[bool, dict[str, str]]:
    """Match *request_path* against *pattern*, returning ``(matched, params)``."""
    if isinstance(pattern, str):
        pattern = PathPattern(pattern)
    params = pattern.match(request_path)
    if params is None:
        return False, {}
    return True, params
