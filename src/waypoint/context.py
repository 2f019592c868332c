"""Request context: the plain values the engine needs from a request.

``RequestContext`` is what the transport hands over. ``resolve`` turns it
into a ``ResolvedRequest``: the effective method, the matchable path and
the host used for domain scoping.

The request being dispatched is also published through ``request_var`` so
handlers can reach it without it being threaded through their arguments.
``ContextVar`` is task-local under asyncio and thread-local otherwise.
"""

from __future__ import annotations

from collections.abc import Mapping
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

if TYPE_CHECKING:
    from waypoint.config import RouterConfig


@dataclass(frozen=True, slots=True)
class RequestContext:
    """An inbound request, reduced to what routing needs."""

    method: str
    path: str
    headers: Mapping[str, str] = field(default_factory=dict)
    host: str | None = None
    query_string: str = ""
    script_name: str = ""

    def header(self, name: str, default: str | None = None) -> str | None:
        """Case-insensitive header lookup."""
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return default

    @property
    def effective_host(self) -> str | None:
        return self.host or self.header("host")

    @classmethod
    def from_asgi(cls, scope: Mapping[str, Any]) -> RequestContext:
        """Build a context from an ASGI HTTP *scope*."""
        headers = {k.decode("latin-1"): v.decode("latin-1") for k, v in scope.get("headers", [])}
        raw_path = scope.get("raw_path")
        path = raw_path.decode("latin-1") if raw_path else scope.get("path", "/")
        host = headers.get("host")
        if host is None and scope.get("server"):
            host = scope["server"][0]
        root_path = scope.get("root_path", "")
        return cls(
            method=scope["method"],
            path=path,
            headers=headers,
            host=host,
            query_string=scope.get("query_string", b"").decode("latin-1"),
            # the mount point behaves like the directory of an entry script
            script_name=root_path.rstrip("/") + "/",
        )


@dataclass(frozen=True, slots=True)
class ResolvedRequest:
    """A request as the matcher sees it."""

    method: str
    original_method: str
    path: str
    host: str | None
    context: RequestContext = field(repr=False, compare=False)

    @property
    def suppress_body(self) -> bool:
        """``HEAD`` requests are answered without a body."""
        return self.original_method == "HEAD"


def resolve_method(context: RequestContext, config: RouterConfig) -> str:
    """The method used for matching, after ``HEAD`` and override rules."""
    method = context.method.upper()
    if method == "HEAD" and config.head_as_get:
        return "GET"
    if method == "POST":
        override = context.header(config.method_override_header)
        if override and override.strip().upper() in config.override_methods:
            return override.strip().upper()
    return method


def derive_base_path(script_name: str) -> str:
    """The directory part of *script_name*, with a trailing slash.

    ``/sub/folder/index.py`` gives ``/sub/folder/``; an empty name gives ``/``.
    """
    return "/".join(unquote(script_name).split("/")[:-1]) + "/"


def resolve_path(context: RequestContext, base_path: str | None = None) -> str:
    """Strip base path and query string, then normalize the slashes."""
    uri = unquote(context.path.partition("?")[0])
    base = base_path if base_path is not None else derive_base_path(context.script_name)
    if base and uri.startswith(base):
        uri = uri[len(base) :]
    elif base and uri + "/" == base:
        uri = ""
    return "/" + uri.strip("/")


def resolve(context: RequestContext, config: RouterConfig, base_path: str | None = None) -> ResolvedRequest:
    if base_path is None:
        base_path = config.base_path
    return ResolvedRequest(
        method=resolve_method(context, config),
        original_method=context.method.upper(),
        path=resolve_path(context, base_path),
        host=context.effective_host,
        context=context,
    )


request_var: ContextVar[ResolvedRequest] = ContextVar("waypoint_request")
"""The request being dispatched. Set by the router around each dispatch."""


def get_current_request() -> ResolvedRequest:
    """Return the request being dispatched.

    Raises ``LookupError`` if called outside a dispatch.
    """
    return request_var.get()
