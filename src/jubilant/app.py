"""Jubilant ASGI application."""

from __future__ import annotations

import asyncio
import logging
import sys
import traceback
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from jubilant._types import Receive, Scope, Send
from jubilant.config import AppConfig
from jubilant.context import bind_request
from jubilant.request import Request
from jubilant.response import JSONResponse, Response
from jubilant.router import DispatchResult, Router
from jubilant.routing import Route, RouteGroup
from jubilant.views import JinjaRenderer, Renderer

logger = logging.getLogger("jubilant.app")


class Application:
    """ASGI 3.0 application wrapping a :class:`Router`.

    Routes are registered on ``app.router`` (or through the shortcuts
    ``app.get``, ``app.post``, ``app.group`` and friends). The router is frozen on
    lifespan startup or on the first request, whichever comes first.

    Parameters
    ----------
    config:
        Application settings. Defaults to :meth:`AppConfig.from_env`.
    renderer:
        View renderer handed to handlers through injection. Defaults to a
        :class:`JinjaRenderer` over ``config.view_paths``.
    """

    def __init__(
        self,
        config: AppConfig | None = None,
        *,
        renderer: Renderer | None = None,
    ) -> None:
        self.config = config or AppConfig.from_env()
        self.router = Router(strict=self.config.strict, coerce_params=self.config.coerce_params)
        self.renderer = renderer or JinjaRenderer(
            self.config.view_paths,
            self.config.view_cache,
            auto_reload=self.config.debug,
        )
        self.router.provide(Renderer, lambda: self.renderer)
        self.router.provide(type(self.renderer), lambda: self.renderer)
        self.router.provide(Application, lambda: self)

    # ------------------------------------------------------------------
    # Route registration shortcuts
    # ------------------------------------------------------------------

    def get(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self.router.get(path, handler, middleware)

    def post(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self.router.post(path, handler, middleware)

    def put(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self.router.put(path, handler, middleware)

    def patch(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self.router.patch(path, handler, middleware)

    def delete(self, path: str, handler: Any = None, middleware: Sequence[Any] | None = None) -> Any:
        return self.router.delete(path, handler, middleware)

    def redirect(self, path: str, target: str, status_code: int = 302) -> Route:
        return self.router.redirect(path, target, status_code)

    def group(self, prefix: str, middleware: Sequence[Any], callback: Callable[[RouteGroup], Any]) -> RouteGroup:
        return self.router.group(prefix, middleware, callback)

    def set_not_found_handler(self, handler: Callable[[], Any]) -> None:
        self.router.set_not_found_handler(handler)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def start(self, request: Request) -> DispatchResult:
        """Dispatch *request* synchronously with it bound as the ambient request."""
        self.router.freeze()
        with bind_request(request):
            return self.router.dispatch(response=Response())

    # ------------------------------------------------------------------
    # ASGI interface
    # ------------------------------------------------------------------

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._handle_lifespan(receive, send)
            return
        if scope["type"] != "http":
            return

        request = await Request.from_asgi(scope, receive)
        loop = asyncio.get_running_loop()
        try:
            # run_in_executor copies no context, so the request is bound inside start().
            result = await loop.run_in_executor(None, self.start, request)
        except Exception:
            logger.exception("Unhandled error while dispatching %s %s", request.method, request.path)
            body: dict[str, Any] = {"detail": "Internal Server Error"}
            if self.config.debug:
                body["traceback"] = traceback.format_exc()
            await JSONResponse(body, status_code=500).send(send)
            return

        await result.response.send(send)

    async def _handle_lifespan(self, receive: Receive, send: Send) -> None:
        """Freeze the router on startup; accept shutdown with a no-op."""
        while True:
            message = await receive()
            if message["type"] == "lifespan.startup":
                try:
                    self.router.freeze()
                except Exception as exc:
                    logger.exception("Route registration is invalid")
                    await send({"type": "lifespan.startup.failed", "message": str(exc)})
                    return
                await send({"type": "lifespan.startup.complete"})
            elif message["type"] == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    # ------------------------------------------------------------------
    # Granian convenience
    # ------------------------------------------------------------------

    def run(
        self,
        host: str | None = None,
        port: int | None = None,
        *,
        dev: bool = False,
        reload: bool | None = None,
        **granian_kwargs: Any,
    ) -> None:
        """Start the app with Granian.

        Parameters
        ----------
        dev:
            When ``True``, enables reload, debug logging, and access logs.
        reload:
            Auto-reload on code changes.  ``None`` follows ``config.debug``.
        """
        from jubilant._server import dev_config, serve

        self.router.freeze()
        config = dev_config(self.config) if dev else self.config
        overrides = {"host": host, "port": port}
        config = config.model_copy(update={k: v for k, v in overrides.items() if v is not None})
        serve(_resolve_target(self), config, reload=reload, **granian_kwargs)


def _resolve_target(app: Application) -> str:
    """Derive a ``"module:var"`` string for the given app instance.

    Searches ``__main__`` for a module-level variable whose value *is* the
    app.  Falls back to the caller's ``__file__`` stem when running as a
    script (``python main.py``) so Granian workers can import it.
    """
    main = sys.modules.get("__main__")
    if main is None:
        raise RuntimeError("Cannot auto-detect Granian target: __main__ module not found.")

    var_name = next((name for name, val in vars(main).items() if val is app), None)
    if var_name is None:
        raise RuntimeError(
            "Cannot auto-detect Granian target: no module-level variable in "
            "__main__ references this Application instance. "
            "Start it with the CLI instead, e.g. `jubilant run main:app`."
        )

    spec = getattr(main, "__spec__", None)
    module_name: str | None = spec.name if spec else None
    if not module_name:
        main_file = getattr(main, "__file__", None)
        module_name = Path(main_file).stem if main_file else None

    return f"{module_name}:{var_name}"
