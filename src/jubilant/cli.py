"""Jubilant command-line interface powered by Typer."""

import importlib
import sys
from pathlib import Path
from typing import Annotated

import typer

from jubilant.app import Application

app = typer.Typer(name="jubilant", add_completion=False, no_args_is_help=True)

TargetArg = Annotated[str, typer.Argument(help="Python file or module:var target.")]


# ------------------------------------------------------------------
# Target resolution
# ------------------------------------------------------------------


def _import_module(path: str):
    file = Path(path)
    if path.endswith(".py"):
        if not file.exists():
            typer.echo(f"Error: file {path!r} not found.", err=True)
            raise typer.Exit(1)
        parent = str(file.resolve().parent)
        if parent not in sys.path:
            sys.path.insert(0, parent)
        module_name = file.stem
    else:
        module_name = path
        if "" not in sys.path:
            sys.path.insert(0, "")

    try:
        return importlib.import_module(module_name)
    except Exception as exc:
        typer.echo(f"Error importing {module_name!r}: {exc}", err=True)
        raise typer.Exit(1) from exc


def _find_app_var(mod: object) -> str | None:
    """Scan a module for an ``Application`` instance, preferring ``app``."""
    for name in ("app", "application"):
        if isinstance(getattr(mod, name, None), Application):
            return name
    for name in dir(mod):
        if not name.startswith("_") and isinstance(getattr(mod, name, None), Application):
            return name
    return None


def _resolve(path: str) -> tuple[str, Application]:
    """Turn a CLI *path* (``file.py`` or ``module:var``) into a target and the app."""
    if ":" in path:
        module_path, var_name = path.split(":", 1)
        mod = _import_module(module_path)
        module_name = mod.__name__
    else:
        mod = _import_module(path)
        module_name = mod.__name__
        found = _find_app_var(mod)
        if found is None:
            typer.echo(
                f"Error: no Application instance found in {path!r}. Provide an explicit target, e.g. main:app",
                err=True,
            )
            raise typer.Exit(1)
        var_name = found

    application = getattr(mod, var_name, None)
    if not isinstance(application, Application):
        typer.echo(f"Error: {module_name}:{var_name} is not a jubilant Application.", err=True)
        raise typer.Exit(1)
    return f"{module_name}:{var_name}", application


# ------------------------------------------------------------------
# Commands
# ------------------------------------------------------------------


@app.command()
def dev(
    path: TargetArg = "main.py",
    host: Annotated[str, typer.Option(help="Bind address.")] = "127.0.0.1",
    port: Annotated[int, typer.Option(help="Bind port.")] = 8000,
    reload: Annotated[bool | None, typer.Option("--reload/--no-reload", help="Auto-reload on code changes.")] = None,
) -> None:
    """Start a development server with auto-reload and debug logging."""
    from jubilant._server import dev_config, serve

    target, application = _resolve(path)
    config = dev_config(application.config).model_copy(update={"host": host, "port": port})
    serve(target, config, reload=reload)


@app.command()
def run(
    path: TargetArg = "main.py",
    host: Annotated[str | None, typer.Option(help="Bind address. Defaults to the app config.")] = None,
    port: Annotated[int | None, typer.Option(help="Bind port. Defaults to the app config.")] = None,
    workers: Annotated[int | None, typer.Option(help="Number of worker processes.")] = None,
) -> None:
    """Start a production server."""
    from jubilant._server import serve

    target, application = _resolve(path)
    overrides = {"host": host, "port": port, "workers": workers}
    serve(target, application.config.model_copy(update={k: v for k, v in overrides.items() if v is not None}))


@app.command()
def routes(path: TargetArg = "main.py") -> None:
    """List registered routes in dispatch order."""
    _, application = _resolve(path)
    table = application.router.routes
    if not len(table):
        typer.echo("No routes registered.")
        return

    rows = [
        (
            route.method,
            route.path,
            route.handler.name,
            ", ".join(getattr(m, "__name__", type(m).__name__) for m in route.middleware),
        )
        for route in table
    ]
    headers = ("METHOD", "PATH", "HANDLER", "MIDDLEWARE")
    widths = [max(len(h), *(len(r[i]) for r in rows)) for i, h in enumerate(headers[:-1])]
    fmt = "  ".join(f"{{:<{w}}}" for w in widths) + "  {}"
    typer.echo(fmt.format(*headers).rstrip())
    typer.echo("-" * min(sum(widths) + 6 + len(headers[-1]), 80))
    for row in rows:
        typer.echo(fmt.format(*row).rstrip())
