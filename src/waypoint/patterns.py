"""Route pattern compilation and positional parameter extraction.

A route-definition string mixes literal segments, raw regex groups
(``/hello/(\\w+)``, ``/blog(/\\d{4}(/\\d{2})?)?``) and named placeholders
(``/hello/{name}``). Both notations compile to one expression that must
consume the whole path.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from functools import lru_cache

from waypoint.errors import PatternError

_PLACEHOLDER_RE = re.compile(r"/\{(.*?)\}")
_GROUP_PREFIX = "_wp"


def normalize_pattern(pattern: str, base: str = "") -> str:
    """Join *pattern* onto a mount *base* the way registrations see it.

    ``normalize_pattern("/", "/movies")`` is ``"/movies"`` and
    ``normalize_pattern("(.*)")`` is ``"/(.*)"``.
    """
    joined = f"{base}/{pattern.strip('/')}"
    if base:
        joined = joined.rstrip("/") or "/"
    return joined


@dataclass(frozen=True, slots=True)
class CompiledPattern:
    """An anchored, capture-group-aware form of a route definition."""

    source: str
    regex: re.Pattern[str] = field(repr=False, compare=False)
    param_names: tuple[str | None, ...] = field(default=(), compare=False)

    @property
    def group_count(self) -> int:
        return self.regex.groups

    def match(self, path: str) -> PatternMatch | None:
        """Return the extracted parameters if *path* matches in full."""
        m = self.regex.fullmatch(path)
        if m is None:
            return None
        params = extract_params(m)
        named: dict[str, str | None] = {}
        for name, value in zip(self.param_names, params):
            if name is not None and name not in named:
                named[name] = value
        return PatternMatch(pattern=self, params=params, named=named)

    def __str__(self) -> str:
        return self.source


@dataclass(frozen=True, slots=True)
class PatternMatch:
    """Result of a successful pattern match."""

    pattern: CompiledPattern
    params: tuple[str | None, ...]
    named: dict[str, str | None]


@lru_cache(maxsize=1024)
def compile_pattern(pattern: str) -> CompiledPattern:
    """Compile ``/users/{id}/(\\d+)?`` into an anchored regex.

    Every ``/{name}`` placeholder becomes a lazy ``(.*?)`` group. Names are
    kept alongside the group positions but never drive extraction.
    """
    placeholders: dict[str, str] = {}
    parts: list[str] = []
    last_end = 0

    for m in _PLACEHOLDER_RE.finditer(pattern):
        group_name = f"{_GROUP_PREFIX}{len(placeholders)}"
        placeholders[group_name] = m.group(1)
        parts.append(pattern[last_end : m.start()])
        parts.append(f"/(?P<{group_name}>.*?)")
        last_end = m.end()

    parts.append(pattern[last_end:])

    try:
        regex = re.compile("".join(parts))
    except re.error as exc:
        raise PatternError(pattern, str(exc)) from exc

    names: list[str | None] = [None] * regex.groups
    for group_name, index in regex.groupindex.items():
        names[index - 1] = placeholders.get(group_name, group_name)

    return CompiledPattern(source=pattern, regex=regex, param_names=tuple(names))


def extract_params(match: re.Match[str]) -> tuple[str | None, ...]:
    """Slice every capture group out of *match*, left to right.

    A group is cut off where the next group starts, so an outer optional
    group yields its own segment rather than everything nested inside it.
    Groups that did not take part in the match yield ``None``.
    """
    count = match.re.groups
    values: list[str | None] = []

    for index in range(1, count + 1):
        start, end = match.span(index)
        if start == -1:
            values.append(None)
            continue
        if index < count:
            next_start = match.start(index + 1)
            if next_start >= start:
                end = min(end, next_start)
        values.append(match.string[start:end].strip("/"))

    return tuple(values)
