"""Types shared by the ASGI adapter and its responses.

``ASGIScope`` is the connection scope an ASGI server hands in; it is unrelated
to the registration :class:`waypoint.scope.Scope`.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, MutableMapping
from typing import Any

ASGIMessage = dict[str, Any]
ASGIScope = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[ASGIMessage]]
Send = Callable[[ASGIMessage], Awaitable[None]]
ASGIApp = Callable[[ASGIScope, Receive, Send], Awaitable[None]]

# A middleware takes the wrapped app and returns the one the server calls.
Middleware = Callable[[ASGIApp], ASGIApp]

# Header pairs as they go out in ``http.response.start``.
RawHeaders = list[tuple[bytes, bytes]]
