"""Handler references and their resolution to something callable.

A handler is either a callable or a controller string:

- ``"Type@method"``: instance call (static and class methods are called on
  the type, everything else on a fresh no-argument instance)
- ``"Type::method"``: the method must be a static or class method

Controller strings are namespace-qualified when they are registered and
resolved lazily, once per dispatch. A type or method that cannot be found
resolves to ``None``; the router treats that as "no match".
"""

from __future__ import annotations

import importlib
import inspect
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from waypoint.errors import HandlerError

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

NAMESPACE_SEPARATOR = "."


@dataclass(frozen=True, slots=True)
class FunctionHandler:
    """A directly invocable handler, called with positional parameters."""

    func: Callable[..., Any]

    def describe(self) -> str:
        module = getattr(self.func, "__module__", None)
        name = getattr(self.func, "__qualname__", None) or repr(self.func)
        return f"{module}.{name}" if module else name


@dataclass(frozen=True, slots=True)
class ControllerHandler:
    """A ``Type@method`` / ``Type::method`` reference."""

    type_name: str
    method_name: str
    is_static: bool = False

    def describe(self) -> str:
        sep = "::" if self.is_static else "@"
        return f"{self.type_name}{sep}{self.method_name}"


HandlerRef = FunctionHandler | ControllerHandler


def qualify(type_name: str, namespace: str) -> str:
    """Prefix *namespace* onto *type_name* unless it is fully qualified.

    A leading ``.`` marks a fully qualified name: ``qualify(".app.Home",
    "ctl")`` is ``"app.Home"``.
    """
    if type_name.startswith(NAMESPACE_SEPARATOR):
        return type_name.lstrip(NAMESPACE_SEPARATOR)
    namespace = namespace.strip(NAMESPACE_SEPARATOR)
    if not namespace:
        return type_name
    return f"{namespace}{NAMESPACE_SEPARATOR}{type_name}"


def parse_handler(handler: Any, namespace: str = "") -> HandlerRef:
    """Turn a registration-time handler into a :data:`HandlerRef`."""
    if isinstance(handler, (FunctionHandler, ControllerHandler)):
        return handler
    if callable(handler):
        return FunctionHandler(handler)
    if isinstance(handler, str):
        if "::" in handler:
            type_name, _, method_name = handler.partition("::")
            is_static = True
        elif "@" in handler:
            type_name, _, method_name = handler.partition("@")
            is_static = False
        else:
            msg = f"Handler string {handler!r} must look like 'Type@method' or 'Type::method'"
            raise HandlerError(msg)
        if not type_name or not method_name:
            msg = f"Handler string {handler!r} is missing a type or method name"
            raise HandlerError(msg)
        return ControllerHandler(qualify(type_name, namespace), method_name, is_static)
    msg = f"Handler must be callable or a controller string, got {type(handler).__name__}"
    raise HandlerError(msg)


class ControllerRegistry:
    """Explicit name -> class mapping, consulted before importing."""

    __slots__ = ("_types",)

    def __init__(self) -> None:
        self._types: dict[str, type] = {}

    def register(self, cls: type, name: str | None = None) -> type:
        if not inspect.isclass(cls):
            msg = f"Only classes can be registered as controllers, got {cls!r}"
            raise HandlerError(msg)
        self._types[name or cls.__qualname__] = cls
        self._types[f"{cls.__module__}.{cls.__qualname__}"] = cls
        return cls

    def lookup(self, name: str) -> type | None:
        return self._types.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)


def _import_type(type_name: str) -> type | None:
    parts = type_name.split(NAMESPACE_SEPARATOR)
    # Try the longest importable module path first; the rest are attributes.
    for split in range(len(parts) - 1, 0, -1):
        module_name = NAMESPACE_SEPARATOR.join(parts[:split])
        try:
            target: Any = importlib.import_module(module_name)
        except ModuleNotFoundError as exc:
            # only a missing candidate module means "try a shorter path"
            if exc.name is None or not (module_name == exc.name or module_name.startswith(f"{exc.name}.")):
                raise
            continue
        try:
            for attr in parts[split:]:
                target = getattr(target, attr)
        except AttributeError:
            return None
        return target if inspect.isclass(target) else None
    return None


def resolve(ref: HandlerRef, registry: ControllerRegistry | None = None) -> Callable[..., Any] | None:
    """Resolve *ref* to a callable, or ``None`` when it cannot be found."""
    if isinstance(ref, FunctionHandler):
        return ref.func

    cls = registry.lookup(ref.type_name) if registry is not None else None
    if cls is None:
        cls = _import_type(ref.type_name)
    if cls is None:
        logger.debug("Controller type %r not found", ref.type_name)
        return None

    name = ref.method_name
    attr = inspect.getattr_static(cls, name, None)
    if attr is None or name.startswith("_") or getattr(attr, "__isabstractmethod__", False):
        logger.debug("Controller %s has no public method %r", ref.type_name, name)
        return None

    declared_static = isinstance(attr, (staticmethod, classmethod))
    if ref.is_static and not declared_static:
        logger.debug("%s is not a static method", ref.describe())
        return None
    if declared_static:
        return getattr(cls, name)
    if not callable(attr):
        return None

    try:
        instance = cls()
    except TypeError as exc:
        logger.debug("Cannot instantiate %s without arguments: %s", ref.type_name, exc)
        return None
    return getattr(instance, name)
