"""Route storage partitioned by kind, method and domain.

Routes are appended during registration and the table is frozen before
(or on) the first request. A frozen table only holds tuples, so any number
of threads can read it without locking.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from waypoint.errors import RouterFrozenError

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Sequence

    from waypoint.config import DomainMatcher
    from waypoint.handlers import HandlerRef
    from waypoint.patterns import CompiledPattern, PatternMatch

BEFORE = "before"
AFTER = "after"


@dataclass(frozen=True, slots=True)
class Route:
    """A registered ``(method, pattern, handler)`` triple."""

    method: str
    pattern: CompiledPattern
    handler: HandlerRef
    domain: str | None = None
    before: bool = False

    @property
    def kind(self) -> str:
        return BEFORE if self.before else AFTER

    def match(self, path: str) -> PatternMatch | None:
        return self.pattern.match(path)

    def __repr__(self) -> str:
        where = f" @{self.domain}" if self.domain else ""
        return f"Route({self.kind} {self.method} {self.pattern.source!r}{where} -> {self.handler.describe()})"


@dataclass(frozen=True, slots=True)
class NotFoundRule:
    """A fallback handler, optionally limited to a path pattern and/or domain."""

    handler: HandlerRef
    pattern: CompiledPattern | None = None
    domain: str | None = None

    @property
    def universal(self) -> bool:
        return self.pattern is None and self.domain is None

    def match(self, path: str) -> tuple[str | None, ...] | None:
        if self.pattern is None:
            return ()
        m = self.pattern.match(path)
        return m.params if m is not None else None


def _strip_port(host: str) -> str:
    if host.startswith("["):
        return host[: host.find("]") + 1]
    return host.partition(":")[0]


def default_domain_matcher(host: str, domain: str) -> bool:
    """Match a request host against a declared route domain.

    Comparison ignores case and any port. ``*.example.com`` matches every
    sub-domain of ``example.com`` but not ``example.com`` itself.
    """
    host = _strip_port(host.strip().lower())
    domain = domain.strip().lower()
    if domain.startswith("*."):
        suffix = domain[1:]
        return host.endswith(suffix) and len(host) > len(suffix)
    return host == domain


class RouteTable:
    """Ordered routes keyed by ``(before|after, method)`` then by domain.

    Within one bucket insertion order is match order. Buckets of domains
    that match the request host are walked before the wildcard bucket.
    """

    __slots__ = ("_buckets", "_frozen", "_not_found", "_order", "_universal")

    def __init__(self) -> None:
        self._buckets: dict[tuple[str, str], dict[str | None, Sequence[Route]]] = {}
        self._not_found: dict[tuple[str | None, str | None], NotFoundRule] = {}
        self._universal: NotFoundRule | None = None
        self._order: list[Route] = []
        self._frozen = False

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def add(self, route: Route) -> Route:
        self._check_mutable()
        by_domain = self._buckets.setdefault((route.kind, route.method), {})
        routes = by_domain.setdefault(route.domain, [])
        routes.append(route)  # type: ignore[attr-defined]
        self._order.append(route)
        return route

    def add_not_found(self, rule: NotFoundRule) -> NotFoundRule:
        self._check_mutable()
        if rule.universal:
            self._universal = rule
        else:
            source = rule.pattern.source if rule.pattern is not None else None
            self._not_found[(source, rule.domain)] = rule
        return rule

    def freeze(self) -> None:
        """Make the table read-only. Idempotent."""
        if self._frozen:
            return
        for key, by_domain in self._buckets.items():
            self._buckets[key] = {domain: tuple(routes) for domain, routes in by_domain.items()}
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def _check_mutable(self) -> None:
        if self._frozen:
            msg = "Cannot register routes after the route table has been frozen."
            raise RouterFrozenError(msg)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def candidates(
        self,
        kind: str,
        method: str,
        host: str | None,
        domain_matcher: DomainMatcher,
    ) -> Iterator[Route]:
        """Yield the routes to test for *method* on *host*, in match order."""
        by_domain = self._buckets.get((kind, method))
        if not by_domain:
            return
        if host:
            for domain, routes in by_domain.items():
                if domain is not None and domain_matcher(host, domain):
                    yield from routes
        yield from by_domain.get(None, ())

    def not_found_candidates(self, host: str | None, domain_matcher: DomainMatcher) -> Iterator[NotFoundRule]:
        """Scoped rules, most recently registered first, then the universal one."""
        for rule in reversed(list(self._not_found.values())):
            if rule.domain is not None and not (host and domain_matcher(host, rule.domain)):
                continue
            yield rule
        if self._universal is not None:
            yield self._universal

    def methods_matching(
        self,
        path: str,
        host: str | None,
        domain_matcher: DomainMatcher,
        accept: Callable[[Route], bool] | None = None,
    ) -> frozenset[str]:
        """Methods with an after-route matching *path* (for ``Allow``).

        With *accept*, only routes it approves of count.
        """
        methods: set[str] = set()
        for kind, method in list(self._buckets):
            if kind != AFTER or method in methods:
                continue
            for route in self.candidates(kind, method, host, domain_matcher):
                if route.match(path) is not None and (accept is None or accept(route)):
                    methods.add(method)
                    break
        return frozenset(methods)

    def routes(self) -> tuple[Route, ...]:
        """All routes in registration order."""
        return tuple(self._order)

    def not_found_rules(self) -> tuple[NotFoundRule, ...]:
        rules = tuple(self._not_found.values())
        return (*rules, self._universal) if self._universal is not None else rules

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[Route]:
        return iter(self.routes())
