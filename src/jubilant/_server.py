"""Granian launcher used by ``Application.run`` and the CLI.

Everything the server needs comes from :class:`~jubilant.config.AppConfig`;
callers override fields with ``config.model_copy(update=...)`` first.
"""

from __future__ import annotations

import logging
from typing import Any

import typer

from jubilant.config import AppConfig

logger = logging.getLogger("jubilant.server")


def dev_config(config: AppConfig) -> AppConfig:
    """Development settings: debug on, verbose logging."""
    return config.model_copy(update={"debug": True, "log_level": "debug"})


def granian_options(target: str, config: AppConfig, *, reload: bool | None = None, **extra: Any) -> dict[str, Any]:
    """Keyword arguments for ``granian.Granian`` serving *target* under *config*.

    *reload* defaults to ``config.debug``. Debug configs also turn on access
    logs. *extra* is passed through and wins over derived options.
    """
    options: dict[str, Any] = {
        "target": target,
        "address": config.host,
        "port": config.port,
        "interface": "asgi",
        "workers": config.workers,
        "reload": config.debug if reload is None else reload,
        "log_level": config.log_level,
        "log_access": config.debug,
    }
    options.update(extra)
    return options


def serve(target: str, config: AppConfig, *, reload: bool | None = None, **granian_kwargs: Any) -> None:
    """Serve the ``"module:var"`` ASGI *target* with Granian."""
    from granian import Granian

    options = granian_options(target, config, reload=reload, **granian_kwargs)
    logging.basicConfig(
        level=config.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    _echo_banner(target, config, reload=options["reload"])
    logger.debug("Granian options: %r", options)
    Granian(**options).serve()


def _echo_banner(target: str, config: AppConfig, *, reload: bool) -> None:
    mode = "development" if config.debug else "production"
    rows = (
        ("app", target),
        ("listen", f"http://{config.host}:{config.port}"),
        ("workers", str(config.workers)),
        ("reload", "on" if reload else "off"),
        ("views", ", ".join(str(p) for p in config.view_paths)),
        ("strict", "on" if config.strict else "off"),
    )
    typer.echo(typer.style("Jubilant", fg=typer.colors.CYAN, bold=True) + f"   {mode} server\n")
    for label, value in rows:
        typer.echo(f"{typer.style(label.ljust(10), fg=typer.colors.GREEN)} {value}")
    typer.echo()
