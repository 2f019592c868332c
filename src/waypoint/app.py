"""Waypoint ASGI adapter.

Turns ASGI HTTP scopes into :class:`RequestContext` values, drives them
through a :class:`Router` and writes whatever the handler returned. All
routing decisions stay in the router; this module only maps outcomes to
status codes.
"""

import asyncio
import inspect
import logging
import sys
import traceback
from collections.abc import Callable
from pathlib import Path
from typing import Any

from pydantic import BaseModel

from waypoint._types import ASGIApp, ASGIScope, Middleware, Receive, Send
from waypoint.config import RouterConfig
from waypoint.context import RequestContext
from waypoint.response import JSONResponse, PlainTextResponse, Response
from waypoint.router import DispatchResult, Outcome, Router
from waypoint.scope import PendingGroup

logger = logging.getLogger(__name__)


class Waypoint:
    """ASGI 3.0 application serving a :class:`Router`.

    Parameters
    ----------
    router:
        The router to serve. A new one is built from *config* when omitted.
    debug:
        When ``True``, 500 responses include the full traceback.
    """

    def __init__(
        self,
        router: Router | None = None,
        *,
        config: RouterConfig | None = None,
        strict: bool = False,
        debug: bool = False,
    ) -> None:
        self.router = router or Router(config, strict=strict)
        self.debug = debug
        self._middleware: list[Middleware] = []
        self._app: ASGIApp | None = None

    # ------------------------------------------------------------------
    # Route registration (delegates to the router)
    # ------------------------------------------------------------------

    def before(self, methods: str, pattern: str, handler: Any = None) -> Any:
        return self.router.before(methods, pattern, handler)

    def match(self, methods: str, pattern: str, handler: Any = None) -> Any:
        return self.router.match(methods, pattern, handler)

    def all(self, pattern: str, handler: Any = None) -> Any:
        return self.router.all(pattern, handler)

    def get(self, pattern: str, handler: Any = None) -> Any:
        return self.router.get(pattern, handler)

    def post(self, pattern: str, handler: Any = None) -> Any:
        return self.router.post(pattern, handler)

    def put(self, pattern: str, handler: Any = None) -> Any:
        return self.router.put(pattern, handler)

    def patch(self, pattern: str, handler: Any = None) -> Any:
        return self.router.patch(pattern, handler)

    def delete(self, pattern: str, handler: Any = None) -> Any:
        return self.router.delete(pattern, handler)

    def options(self, pattern: str, handler: Any = None) -> Any:
        return self.router.options(pattern, handler)

    def head(self, pattern: str, handler: Any = None) -> Any:
        return self.router.head(pattern, handler)

    def mount(self, prefix: str, fn: Callable[[], Any]) -> None:
        self.router.mount(prefix, fn)

    def group(
        self,
        fn: Callable[[], Any],
        *,
        prefix: str | None = None,
        namespace: str | None = None,
        domain: str | None = None,
    ) -> None:
        self.router.group(fn, prefix=prefix, namespace=namespace, domain=domain)

    def prefix(self, prefix: str) -> PendingGroup:
        return self.router.prefix(prefix)

    def namespace(self, namespace: str) -> PendingGroup:
        return self.router.namespace(namespace)

    def domain(self, domain: str) -> PendingGroup:
        return self.router.domain(domain)

    def set_namespace(self, namespace: str) -> None:
        self.router.set_namespace(namespace)

    def set_base_path(self, base_path: str | None) -> None:
        self.router.set_base_path(base_path)

    def register_controller(self, cls: type, name: str | None = None) -> type:
        return self.router.register_controller(cls, name)

    def set404(self, pattern_or_handler: Any, handler: Any = None) -> Any:
        return self.router.set404(pattern_or_handler, handler)

    # ------------------------------------------------------------------
    # ASGI wrapping
    # ------------------------------------------------------------------

    def add_middleware(self, middleware: Middleware) -> None:
        """Wrap the request handler in *middleware*.

        The last middleware added sees the request first.
        """
        self._middleware.append(middleware)
        self._app = None

    def _build_app(self) -> ASGIApp:
        app: ASGIApp = self._handle
        for wrap in self._middleware:
            app = wrap(app)
        return app

    async def __call__(self, scope: ASGIScope, receive: Receive, send: Send) -> None:
        if scope["type"] == "lifespan":
            await self._lifespan(receive, send)
            return

        if self._app is None:
            self._app = self._build_app()
        await self._app(scope, receive, send)

    async def _lifespan(self, receive: Receive, send: Send) -> None:
        """Freeze the route table on startup; nothing to release on shutdown."""
        while True:
            message = await receive()
            kind = message["type"]
            if kind == "lifespan.startup":
                self.router.freeze()
                logger.debug("Serving %d routes", len(self.router.table))
                await send({"type": "lifespan.startup.complete"})
            elif kind == "lifespan.shutdown":
                await send({"type": "lifespan.shutdown.complete"})
                return

    async def _handle(self, scope: ASGIScope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            return

        context = RequestContext.from_asgi(scope)
        loop = asyncio.get_running_loop()

        try:
            # dispatch runs sync handlers; keep them off the event loop
            result = await loop.run_in_executor(None, self.router.dispatch, context)
            value = result.value
            if inspect.isawaitable(value):
                value = await value
        except Exception:
            logger.exception("Handler failed for %s %s", context.method, context.path)
            detail: dict[str, Any] = {"detail": "Internal Server Error"}
            if self.debug:
                detail["traceback"] = traceback.format_exc()
            response: Response = JSONResponse(detail, status_code=500)
            await response.send(send, include_body=context.method.upper() != "HEAD")
            return

        response = _build_response(result, value)
        await response.send(send, include_body=not result.suppress_body)

    def run(self, host: str = "127.0.0.1", port: int = 8000, **options: Any) -> None:
        """Serve this app with Granian.

        *options* are passed to :func:`waypoint._server.serve` (``dev``,
        ``reload``, ``workers``, ``log_level``); anything else goes to
        Granian itself.
        """
        from waypoint._server import serve

        known = {k: options.pop(k) for k in ("dev", "reload", "workers", "log_level") if k in options}
        serve(
            _import_target(self),
            host=host,
            port=port,
            route_count=len(self.router.table),
            granian_kwargs=options or None,
            **known,
        )


# ------------------------------------------------------------------
# Outcome -> response
# ------------------------------------------------------------------


def _build_response(result: DispatchResult, value: Any) -> Response:
    if result.outcome is Outcome.NOT_FOUND:
        if result.allowed_methods:
            allow = ", ".join(sorted(result.allowed_methods))
            return JSONResponse({"detail": "Method Not Allowed"}, status_code=405, headers={"Allow": allow})
        return JSONResponse({"detail": "Not Found"}, status_code=404)

    status_code = 404 if result.outcome is Outcome.FALLBACK else 200
    return _to_response(value, status_code)


def _to_response(value: Any, status_code: int) -> Response:
    if isinstance(value, Response):
        return value
    if isinstance(value, dict | list | BaseModel):
        return JSONResponse(value, status_code=status_code)
    if value is None:
        return Response(status_code=status_code)
    if isinstance(value, bytes):
        return Response(value, status_code=status_code)
    return PlainTextResponse(str(value), status_code=status_code)


def _import_target(app: Waypoint) -> str:
    """The ``module:var`` path Granian workers use to re-import *app*.

    Only works for an app bound to a global of the ``__main__`` module.
    """
    main = sys.modules.get("__main__")
    names = [name for name, val in vars(main).items() if val is app] if main is not None else []
    if not names:
        msg = "Waypoint.run() needs the app bound to a global in __main__; use 'waypoint run module:app' instead."
        raise RuntimeError(msg)

    spec = getattr(main, "__spec__", None)
    if spec is not None and spec.name:
        module_name = spec.name
    else:
        module_name = Path(getattr(main, "__file__", "__main__")).stem
    return f"{module_name}:{names[0]}"
