"""Request routing and dispatch: regex routes, before-middleware, scoped mounts and 404 chains."""

__version__ = "0.1.0"

from waypoint.app import Waypoint
from waypoint.config import RouterConfig
from waypoint.context import RequestContext, ResolvedRequest, get_current_request
from waypoint.errors import HandlerError, PatternError, RouterFrozenError, WaypointError
from waypoint.patterns import CompiledPattern, compile_pattern
from waypoint.response import JSONResponse, PlainTextResponse, Response
from waypoint.router import DispatchResult, Outcome, Router

__all__ = [
    "CompiledPattern",
    "DispatchResult",
    "HandlerError",
    "JSONResponse",
    "Outcome",
    "PatternError",
    "PlainTextResponse",
    "RequestContext",
    "ResolvedRequest",
    "Response",
    "Router",
    "RouterConfig",
    "RouterFrozenError",
    "Waypoint",
    "WaypointError",
    "compile_pattern",
    "get_current_request",
]
