"""The router: route registration and request dispatch.

Registration builds the route table; ``dispatch`` drives one request
through it:

1. every matching before-route runs, in order
2. the first matching after-route runs (first match wins)
3. with no after-route, the not-found chain picks a fallback

Handlers are called with the extracted path parameters as positional
arguments. What they return never changes the flow.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import TYPE_CHECKING, Any

from waypoint.config import RouterConfig, normalize_base_path
from waypoint.context import RequestContext, ResolvedRequest, request_var, resolve
from waypoint.errors import HandlerError
from waypoint.handlers import ControllerRegistry, FunctionHandler, parse_handler
from waypoint.handlers import resolve as resolve_handler
from waypoint.patterns import compile_pattern, normalize_pattern
from waypoint.scope import PendingGroup, ScopeStack
from waypoint.table import AFTER, BEFORE, NotFoundRule, Route, RouteTable, default_domain_matcher
from waypoint.validation import validate_handler_signature

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)

ALL_METHODS = ("GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH", "HEAD")


class Outcome(Enum):
    """How a dispatched request ended."""

    HANDLED = "handled"
    FALLBACK = "fallback"
    NOT_FOUND = "not_found"


@dataclass(frozen=True, slots=True)
class DispatchResult:
    """What happened to one request.

    ``NOT_FOUND`` means no route and no fallback applied: the boundary
    layer decides how to answer (404, or 405 when ``allowed_methods`` is
    not empty).
    """

    outcome: Outcome
    request: ResolvedRequest
    route: Route | None = None
    params: tuple[str | None, ...] = ()
    value: Any = None
    before_count: int = 0
    allowed_methods: frozenset[str] = frozenset()

    @property
    def handled(self) -> bool:
        return self.outcome is Outcome.HANDLED

    @property
    def not_found(self) -> bool:
        return self.outcome is Outcome.NOT_FOUND

    @property
    def suppress_body(self) -> bool:
        return self.request.suppress_body


def _parse_methods(methods: str | Iterable[str]) -> tuple[str, ...]:
    items = methods.split("|") if isinstance(methods, str) else methods
    parsed = tuple(dict.fromkeys(m.strip().upper() for m in items if m.strip()))
    if not parsed:
        msg = f"No HTTP methods given: {methods!r}"
        raise ValueError(msg)
    return parsed


class Router:
    """Request router with before-routes, scoped mounts and fallbacks.

    Parameters
    ----------
    config:
        Request-phase settings, see :class:`RouterConfig`.
    strict:
        When ``True``, function handlers are checked at registration time
        against the number of parameters their pattern captures.

    Usage::

        router = Router()
        router.before("GET|POST", "/admin/.*", check_session)
        router.get("/hello/(\\w+)", lambda name: f"Hello {name}")
        router.mount("/movies", lambda: router.get("/(\\d+)", show_movie))
        router.set404(lambda: "not found")
        router.run(RequestContext("GET", "/hello/world"))
    """

    def __init__(self, config: RouterConfig | None = None, *, strict: bool = False) -> None:
        self.config = config or RouterConfig()
        self.strict = strict
        self.table = RouteTable()
        self.controllers = ControllerRegistry()
        self._scopes = ScopeStack()
        self._base_path = self.config.base_path
        self._domain_matcher = self.config.domain_matcher or default_domain_matcher

    # ------------------------------------------------------------------
    # Route registration
    # ------------------------------------------------------------------

    def _add(
        self,
        methods: str | Iterable[str],
        pattern: str,
        handler: Any,
        *,
        before: bool,
    ) -> tuple[Route, ...]:
        scope = self._scopes.current
        compiled = compile_pattern(normalize_pattern(pattern, scope.prefix))
        ref = parse_handler(handler, scope.namespace)
        parsed = _parse_methods(methods)

        if self.strict and isinstance(ref, FunctionHandler):
            validate_handler_signature(ref.func, compiled, "|".join(parsed), before=before)
        if before and isinstance(ref, FunctionHandler) and inspect.iscoroutinefunction(ref.func):
            msg = f"Before-route handler {ref.describe()} for {compiled.source!r} must not be a coroutine function"
            raise HandlerError(msg)

        routes = tuple(
            self.table.add(Route(method, compiled, ref, domain=scope.domain, before=before)) for method in parsed
        )
        logger.debug("Registered %s", routes[0] if len(routes) == 1 else list(routes))
        return routes

    def _register(self, methods: str | Iterable[str], pattern: str, handler: Any, *, before: bool) -> Any:
        if handler is not None:
            return self._add(methods, pattern, handler, before=before)

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            self._add(methods, pattern, func, before=before)
            return func

        return decorator

    def before(self, methods: str | Iterable[str], pattern: str, handler: Any = None) -> Any:
        """Register before-route middleware.

        Every matching before-route runs ahead of route matching, whether or
        not a route matches afterwards. Without *handler*, works as a
        decorator.
        """
        return self._register(methods, pattern, handler, before=True)

    def match(self, methods: str | Iterable[str], pattern: str, handler: Any = None) -> Any:
        """Register a route for one or more methods (``"GET|POST"`` or a list)."""
        return self._register(methods, pattern, handler, before=False)

    def all(self, pattern: str, handler: Any = None) -> Any:
        return self.match(ALL_METHODS, pattern, handler)

    def get(self, pattern: str, handler: Any = None) -> Any:
        return self.match("GET", pattern, handler)

    def post(self, pattern: str, handler: Any = None) -> Any:
        return self.match("POST", pattern, handler)

    def put(self, pattern: str, handler: Any = None) -> Any:
        return self.match("PUT", pattern, handler)

    def patch(self, pattern: str, handler: Any = None) -> Any:
        return self.match("PATCH", pattern, handler)

    def delete(self, pattern: str, handler: Any = None) -> Any:
        return self.match("DELETE", pattern, handler)

    def options(self, pattern: str, handler: Any = None) -> Any:
        return self.match("OPTIONS", pattern, handler)

    def head(self, pattern: str, handler: Any = None) -> Any:
        return self.match("HEAD", pattern, handler)

    def set404(self, pattern_or_handler: Any, handler: Any = None) -> NotFoundRule:
        """Register a fallback for requests no route handled.

        ``set404(handler)`` sets the default fallback. ``set404(pattern,
        handler)`` limits it to paths matching *pattern*; those rules are
        consulted first and receive the pattern's parameters.
        """
        scope = self._scopes.current
        if handler is None:
            pattern, handler = None, pattern_or_handler
        else:
            pattern = pattern_or_handler

        compiled = None
        if pattern is not None:
            compiled = compile_pattern(normalize_pattern(pattern, scope.prefix))
        elif scope.prefix:
            compiled = compile_pattern(normalize_pattern("", scope.prefix) + "(?:/.*)?")

        ref = parse_handler(handler, scope.namespace)
        if self.strict and isinstance(ref, FunctionHandler) and compiled is not None:
            validate_handler_signature(ref.func, compiled, "404")

        rule = self.table.add_not_found(NotFoundRule(ref, pattern=compiled, domain=scope.domain))
        logger.debug("Registered fallback %s", rule)
        return rule

    def register_controller(self, cls: type, name: str | None = None) -> type:
        """Make *cls* resolvable by *name* (default: its class name)."""
        return self.controllers.register(cls, name)

    # ------------------------------------------------------------------
    # Scoping
    # ------------------------------------------------------------------

    def mount(self, prefix: str, fn: Callable[[], Any]) -> None:
        """Register the routes added by *fn* under *prefix*."""
        with self._scopes.enter(self._scopes.current.nest(prefix=prefix)):
            fn()

    def group(
        self,
        fn: Callable[[], Any],
        *,
        prefix: str | None = None,
        namespace: str | None = None,
        domain: str | None = None,
    ) -> None:
        """Register the routes added by *fn* inside a composed scope."""
        with self._scopes.enter(self._scopes.current.nest(prefix, namespace, domain)):
            fn()

    def prefix(self, prefix: str) -> PendingGroup:
        return PendingGroup(self._scopes).prefix(prefix)

    def namespace(self, namespace: str) -> PendingGroup:
        return PendingGroup(self._scopes).namespace(namespace)

    def domain(self, domain: str) -> PendingGroup:
        return PendingGroup(self._scopes).domain(domain)

    def set_namespace(self, namespace: str) -> None:
        """Set the default namespace for controller strings."""
        self._scopes.replace_root(replace(self._scopes.root, namespace=namespace.strip(".")))

    def get_namespace(self) -> str:
        return self._scopes.root.namespace

    def set_base_path(self, base_path: str | None) -> None:
        """Override the base path stripped from request paths (``None`` = auto)."""
        self._base_path = normalize_base_path(base_path)

    def get_base_path(self) -> str | None:
        return self._base_path

    # ------------------------------------------------------------------
    # Request handling
    # ------------------------------------------------------------------

    def freeze(self) -> None:
        """Stop accepting registrations; the table becomes read-only."""
        self.table.freeze()

    def routes(self) -> tuple[Route, ...]:
        return self.table.routes()

    def run(self, context: RequestContext, callback: Callable[[], Any] | None = None) -> bool:
        """Dispatch *context*; ``True`` if a route (not a fallback) handled it."""
        return self.dispatch(context, callback).handled

    def dispatch(self, context: RequestContext, callback: Callable[[], Any] | None = None) -> DispatchResult:
        """Dispatch *context* and report what happened.

        *callback* runs after a route handled the request (never after a
        fallback). When the handler returns an awaitable, the callback is
        chained onto it and runs once the result has been awaited.
        Exceptions raised by handlers propagate unchanged.
        """
        if self.config.freeze_on_dispatch:
            self.table.freeze()

        request = resolve(context, self.config, self._base_path)
        token = request_var.set(request)
        try:
            before_count = self._run_before(request)

            for route in self.table.candidates(AFTER, request.method, request.host, self._domain_matcher):
                m = route.match(request.path)
                if m is None:
                    continue
                func = resolve_handler(route.handler, self.controllers)
                if func is None:
                    logger.debug("Skipping %r: handler cannot be resolved", route)
                    continue
                logger.debug("%s %s matched %r", request.method, request.path, route)
                value = func(*m.params)
                if callback is not None:
                    if inspect.isawaitable(value):
                        value = _then(value, callback)
                    else:
                        callback()
                return DispatchResult(
                    Outcome.HANDLED,
                    request,
                    route=route,
                    params=m.params,
                    value=value,
                    before_count=before_count,
                )

            return self._not_found(request, before_count)
        finally:
            request_var.reset(token)

    def trigger404(self, context: RequestContext | None = None) -> DispatchResult:
        """Run the not-found chain, for the request being dispatched by default."""
        if context is not None:
            request = resolve(context, self.config, self._base_path)
        else:
            try:
                request = request_var.get()
            except LookupError:
                msg = "trigger404() needs a context when called outside a dispatch"
                raise RuntimeError(msg) from None
        return self._not_found(request, 0)

    def _run_before(self, request: ResolvedRequest) -> int:
        count = 0
        for route in self.table.candidates(BEFORE, request.method, request.host, self._domain_matcher):
            m = route.match(request.path)
            if m is None:
                continue
            func = resolve_handler(route.handler, self.controllers)
            if func is None:
                continue
            result = func(*m.params)
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                msg = (
                    f"Before-route handler {route.handler.describe()} returned an awaitable; "
                    "before-routes must be synchronous"
                )
                raise HandlerError(msg)
            count += 1
        return count

    def _not_found(self, request: ResolvedRequest, before_count: int) -> DispatchResult:
        allowed = self.table.methods_matching(
            request.path,
            request.host,
            self._domain_matcher,
            accept=lambda route: resolve_handler(route.handler, self.controllers) is not None,
        ) - {request.method}

        for rule in self.table.not_found_candidates(request.host, self._domain_matcher):
            params = rule.match(request.path)
            if params is None:
                continue
            func = resolve_handler(rule.handler, self.controllers)
            if func is None:
                continue
            value = func(*params)
            return DispatchResult(
                Outcome.FALLBACK,
                request,
                params=params,
                value=value,
                before_count=before_count,
                allowed_methods=allowed,
            )

        logger.info("No route or fallback for %s %s", request.method, request.path)
        return DispatchResult(
            Outcome.NOT_FOUND,
            request,
            before_count=before_count,
            allowed_methods=allowed,
        )


async def _then(awaitable: Awaitable[Any], callback: Callable[[], Any]) -> Any:
    """Await a coroutine handler's result, then run the after-callback."""
    value = await awaitable
    callback()
    return value
