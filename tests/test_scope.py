"""Tests for registration scopes."""

from __future__ import annotations

import pytest

from waypoint.scope import PendingGroup, Scope, ScopeStack


class TestScope:
    def test_prefixes_concatenate(self) -> None:
        assert Scope(prefix="/api").nest(prefix="/v1").prefix == "/api/v1"

    def test_namespaces_join(self) -> None:
        assert Scope(namespace="app").nest(namespace="admin").namespace == "app.admin"
        assert Scope().nest(namespace="admin").namespace == "admin"

    def test_leading_dot_replaces_namespace(self) -> None:
        assert Scope(namespace="app").nest(namespace=".other.ctl").namespace == "other.ctl"

    def test_domain_replaces_and_lowercases(self) -> None:
        outer = Scope(domain="a.example.com")
        assert outer.nest(domain="B.Example.com").domain == "b.example.com"
        assert outer.nest(prefix="/x").domain == "a.example.com"
        assert outer.nest(domain="").domain is None

    def test_empty_nest_is_identity(self) -> None:
        scope = Scope("/api", "app", "example.com")
        assert scope.nest() == scope


class TestScopeStack:
    def test_enter_and_restore(self) -> None:
        stack = ScopeStack()
        with stack.enter(Scope(prefix="/a")) as scope:
            assert stack.current is scope
            assert stack.depth == 1
        assert stack.current == Scope()
        assert stack.depth == 0

    def test_restore_on_error(self) -> None:
        stack = ScopeStack()
        with pytest.raises(ValueError), stack.enter(Scope(prefix="/a")):
            raise ValueError
        assert stack.current.prefix == ""

    def test_replace_root(self) -> None:
        stack = ScopeStack()
        stack.replace_root(Scope(namespace="app"))
        assert stack.root.namespace == "app"
        assert stack.current.namespace == "app"


class TestPendingGroup:
    def test_chained_scope(self) -> None:
        stack = ScopeStack(Scope(namespace="app"))
        scope = PendingGroup(stack).prefix("/admin").namespace("admin").domain("Admin.example.com").scope()
        assert scope == Scope("/admin", "app.admin", "admin.example.com")

    def test_repeated_calls_accumulate(self) -> None:
        stack = ScopeStack()
        scope = PendingGroup(stack).prefix("/a").prefix("/b").namespace("x").namespace("y").scope()
        assert scope.prefix == "/a/b"
        assert scope.namespace == "x.y"

    def test_fully_qualified_marker_survives_chaining(self) -> None:
        stack = ScopeStack(Scope(namespace="app"))
        scope = PendingGroup(stack).namespace(".other").namespace("ctl").scope()
        assert scope.namespace == "other.ctl"

    def test_group_applies_scope(self) -> None:
        stack = ScopeStack()
        seen: list[Scope] = []
        PendingGroup(stack).prefix("/admin").group(lambda: seen.append(stack.current))

        assert seen == [Scope(prefix="/admin")]
        assert stack.depth == 0
