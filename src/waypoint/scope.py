"""Registration-time scoping: prefixes, controller namespaces, domains.

Scopes only exist while routes are being registered. Each route captures
the scope active at the moment it is added, so nothing here is consulted
once requests are being matched.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any

from waypoint.handlers import NAMESPACE_SEPARATOR

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@dataclass(frozen=True, slots=True)
class Scope:
    """The prefix, namespace and domain applied to new registrations."""

    prefix: str = ""
    namespace: str = ""
    domain: str | None = None

    def nest(
        self,
        prefix: str | None = None,
        namespace: str | None = None,
        domain: str | None = None,
    ) -> Scope:
        """Compose a child scope.

        Prefixes concatenate. Namespaces join with ``.`` unless the inner
        one starts with ``.``, which replaces the outer namespace. A domain
        replaces the enclosing one.
        """
        scope = self
        if prefix:
            scope = replace(scope, prefix=scope.prefix + prefix)
        if namespace:
            scope = replace(scope, namespace=_join_namespace(scope.namespace, namespace))
        if domain is not None:
            scope = replace(scope, domain=domain.lower() or None)
        return scope


def _join_namespace(outer: str, inner: str) -> str:
    if inner.startswith(NAMESPACE_SEPARATOR) or not outer:
        return inner.strip(NAMESPACE_SEPARATOR)
    return f"{outer.strip(NAMESPACE_SEPARATOR)}{NAMESPACE_SEPARATOR}{inner.strip(NAMESPACE_SEPARATOR)}"


class ScopeStack:
    """An explicit stack of scopes owned by a single router."""

    __slots__ = ("_stack",)

    def __init__(self, root: Scope | None = None) -> None:
        self._stack: list[Scope] = [root or Scope()]

    @property
    def current(self) -> Scope:
        return self._stack[-1]

    @property
    def root(self) -> Scope:
        return self._stack[0]

    @property
    def depth(self) -> int:
        return len(self._stack) - 1

    def replace_root(self, root: Scope) -> None:
        """Swap the outermost scope (router-wide defaults)."""
        self._stack[0] = root

    @contextmanager
    def enter(self, scope: Scope) -> Iterator[Scope]:
        """Make *scope* current for the duration of the ``with`` block."""
        self._stack.append(scope)
        try:
            yield scope
        finally:
            self._stack.pop()


class PendingGroup:
    """Chainable scope registrar.

    Usage::

        router.prefix("/admin").namespace("app.admin").domain("admin.example.com").group(
            lambda: router.get("/", "Dashboard@index")
        )
    """

    __slots__ = ("_domain", "_namespace", "_prefix", "_stack")

    def __init__(self, stack: ScopeStack) -> None:
        self._stack = stack
        self._prefix = ""
        self._namespace = ""
        self._domain: str | None = None

    def prefix(self, prefix: str) -> PendingGroup:
        self._prefix += prefix
        return self

    def namespace(self, namespace: str) -> PendingGroup:
        if self._namespace and not namespace.startswith(NAMESPACE_SEPARATOR):
            # keep the fully-qualified marker of the first segment
            leading = NAMESPACE_SEPARATOR if self._namespace.startswith(NAMESPACE_SEPARATOR) else ""
            self._namespace = leading + _join_namespace(self._namespace, namespace)
        else:
            self._namespace = namespace
        return self

    def domain(self, domain: str) -> PendingGroup:
        self._domain = domain
        return self

    def scope(self) -> Scope:
        """The scope :meth:`group` would enter, given the current one."""
        return self._stack.current.nest(self._prefix, self._namespace, self._domain)

    def group(self, fn: Callable[[], Any]) -> None:
        """Run *fn* with the accumulated scope applied to its registrations."""
        with self._stack.enter(self.scope()):
            fn()
