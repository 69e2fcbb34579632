"""View rendering through Jinja2.

The router never looks at templates; handlers call a renderer and return
the string. Any object with ``render(view, data) -> str`` works, and
:class:`JinjaRenderer` is the one the application builds from its config.

View names are dotted: ``"users.show"`` loads ``users/show.html`` from the
first view directory that has it.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Protocol

from jinja2 import Environment, FileSystemBytecodeCache, FileSystemLoader, select_autoescape

logger = logging.getLogger("jubilant.views")


class Renderer(Protocol):
    def render(self, view: str, data: Mapping[str, Any] | None = None) -> str: ...


def view_filename(view: str, extension: str = ".html") -> str:
    """Map a dotted view name to a template path.

    Names that already end in *extension* are used as given.
    """
    if view.endswith(extension):
        return view
    return view.replace(".", "/") + extension


class JinjaRenderer:
    """Render views from *view_paths*, caching compiled templates in *cache_path*."""

    def __init__(
        self,
        view_paths: Sequence[str | Path],
        cache_path: str | Path | None = None,
        *,
        extension: str = ".html",
        auto_reload: bool = False,
    ) -> None:
        bytecode_cache = None
        if cache_path is not None:
            Path(cache_path).mkdir(parents=True, exist_ok=True)
            bytecode_cache = FileSystemBytecodeCache(str(cache_path))

        self.extension = extension
        self.env = Environment(
            loader=FileSystemLoader([str(p) for p in view_paths]),
            autoescape=select_autoescape(default=True, default_for_string=True),
            bytecode_cache=bytecode_cache,
            auto_reload=auto_reload,
        )

    def render(self, view: str, data: Mapping[str, Any] | None = None) -> str:
        """Render *view* with *data* and return the HTML."""
        name = view_filename(view, self.extension)
        logger.debug("Rendering view %s", name)
        return self.env.get_template(name).render(dict(data or {}))
