"""Application configuration.

AppConfig is a frozen pydantic model: validated once, immutable after
creation. Override what you need::

    config = AppConfig(debug=True, port=3000)

or load ``JUBILANT_*`` environment variables with :meth:`AppConfig.from_env`.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

ENV_PREFIX = "JUBILANT_"


class AppConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Server
    host: str = "127.0.0.1"
    port: int = 8000
    workers: int = 1
    debug: bool = False
    log_level: Literal["critical", "error", "warning", "info", "debug"] = "info"

    # Routing
    strict: bool = False
    coerce_params: bool = False

    # Views
    view_paths: tuple[Path, ...] = (Path("views"),)
    view_cache: Path | None = None

    @field_validator("view_paths", mode="before")
    @classmethod
    def _split_paths(cls, value: object) -> object:
        # Env values arrive as one os.pathsep-separated string.
        if isinstance(value, str):
            return tuple(p for p in value.split(os.pathsep) if p)
        return value

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> AppConfig:
        """Build a config from ``JUBILANT_<FIELD>`` variables plus *overrides*."""
        environ = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for name in cls.model_fields:
            key = ENV_PREFIX + name.upper()
            if key in environ:
                values[name] = environ[key]
        values.update(overrides)
        return cls.model_validate(values)
