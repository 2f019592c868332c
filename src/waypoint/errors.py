"""Waypoint exception hierarchy.

Raised at registration time, except for a before-route that turns out to
be asynchronous. Request-phase outcomes (no match, unresolvable controller)
are reported through ``DispatchResult`` instead.
"""


class WaypointError(Exception):
    """Base for all waypoint-specific errors."""


class PatternError(WaypointError, ValueError):
    """A route-definition string does not compile to a valid expression."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid route pattern {pattern!r}: {reason}")


class HandlerError(WaypointError, TypeError):
    """A handler reference is unusable: not callable, not a ``Type@method``
    string, or an asynchronous before-route.
    """


class RouterFrozenError(WaypointError, RuntimeError):
    """Raised when registering routes after the table has been frozen."""
