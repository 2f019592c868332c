"""Router configuration.

``RouterConfig`` is a frozen pydantic model: validated once when the router
is built, read-only while requests are matched.
"""

from __future__ import annotations

from collections.abc import Callable

from pydantic import BaseModel, ConfigDict, field_validator

DomainMatcher = Callable[[str, str], bool]

OVERRIDABLE_METHODS = frozenset({"PUT", "DELETE", "PATCH"})


def normalize_base_path(value: str | None) -> str | None:
    """Give a base path exactly one leading and one trailing slash."""
    if value is None:
        return None
    stripped = value.strip("/")
    return f"/{stripped}/" if stripped else "/"


class RouterConfig(BaseModel):
    """Request-phase settings for a :class:`~waypoint.router.Router`.

    Parameters
    ----------
    base_path:
        Prefix stripped from every request path before matching. ``None``
        derives it from the request's script name (the directory the entry
        point is served from).
    head_as_get:
        Match ``HEAD`` requests against ``GET`` routes and flag the result
        so the boundary layer drops the body.
    method_override_header:
        Header consulted on ``POST`` requests to tunnel another method.
    override_methods:
        Methods the override header may select.
    freeze_on_dispatch:
        Freeze the route table on the first dispatched request.
    domain_matcher:
        ``(host, domain) -> bool`` used for domain-scoped routes. ``None``
        uses :func:`waypoint.table.default_domain_matcher`.
    """

    model_config = ConfigDict(frozen=True)

    base_path: str | None = None
    head_as_get: bool = True
    method_override_header: str = "X-HTTP-Method-Override"
    override_methods: frozenset[str] = OVERRIDABLE_METHODS
    freeze_on_dispatch: bool = True
    domain_matcher: DomainMatcher | None = None

    @field_validator("base_path")
    @classmethod
    def _normalize_base_path(cls, value: str | None) -> str | None:
        return normalize_base_path(value)

    @field_validator("method_override_header")
    @classmethod
    def _check_header(cls, value: str) -> str:
        if not value.strip():
            msg = "method_override_header must not be empty"
            raise ValueError(msg)
        return value.strip()

    @field_validator("override_methods", mode="before")
    @classmethod
    def _upper_methods(cls, value: object) -> object:
        if isinstance(value, str):
            value = value.split("|")
        if isinstance(value, (list, tuple, set, frozenset)):
            return frozenset(str(m).strip().upper() for m in value if str(m).strip())
        return value
