"""Handler signature validation for strict mode."""

from __future__ import annotations

import inspect
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from waypoint.patterns import CompiledPattern


def validate_handler_signature(func: Any, pattern: CompiledPattern, method: str, *, before: bool = False) -> None:
    """Validate a handler against its route pattern at registration time.

    Raises :class:`TypeError` with an actionable message when the handler
    could not be called with the parameters the pattern extracts.
    """
    name = getattr(func, "__name__", repr(func))
    where = f"[{method} {pattern.source}]"
    count = pattern.group_count

    try:
        sig = inspect.signature(func)
    except (TypeError, ValueError):
        # builtins without introspectable signatures are accepted as-is
        return

    # --- Rule 1: every capture group must be accepted positionally ---
    try:
        sig.bind(*([None] * count))
    except TypeError as exc:
        raise TypeError(
            f"\n\nStrict-mode violation in handler '{name}' {where}\n"
            f"  Problem: Pattern has {count} capture group(s) but the handler "
            f"cannot take them positionally ({exc}).\n"
            f"  Fix:     Accept {count} positional parameter(s), giving optional "
            f"groups a default of None.\n"
        ) from None

    # --- Rule 2: before-route results are discarded, so they must be sync ---
    if before and inspect.iscoroutinefunction(func):
        raise TypeError(
            f"\n\nStrict-mode violation in handler '{name}' {where}\n"
            f"  Problem: Before-route handlers run synchronously and cannot be coroutines.\n"
            f"  Fix:     Define '{name}' with 'def' instead of 'async def'.\n"
        )
