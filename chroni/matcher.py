"""Glob matching of relative paths.

Patterns are ``/``-separated. Each segment is matched case-sensitively with
:func:`fnmatch.fnmatchcase`, so ``*`` never crosses a ``/``. A segment that is
exactly ``**`` matches zero or more whole segments.
"""

import os
from fnmatch import fnmatchcase
from typing import Iterable

from .exceptions import ConfigError

_RECURSIVE = "**"


def _has_unterminated_class(segment: str) -> bool:
    i = 0
    while i < len(segment):
        if segment[i] == "[":
            j = i + 1
            if j < len(segment) and segment[j] == "!":
                j += 1
            # A ']' right after '[' or '[!' is a literal member of the class
            if j < len(segment) and segment[j] == "]":
                j += 1
            close = segment.find("]", j)
            if close == -1:
                return True
            i = close
        i += 1
    return False


def compile_pattern(pattern: str) -> tuple[str, ...]:
    """Split and validate a glob pattern.

    Raises ConfigError for patterns that can never be meaningful.
    """
    if not pattern or not pattern.strip("/"):
        raise ConfigError(f"empty glob pattern: {pattern!r}")
    if pattern.startswith("/"):
        raise ConfigError(f"glob pattern must be relative: {pattern!r}")

    segments = tuple(pattern.rstrip("/").split("/"))
    for segment in segments:
        if not segment:
            raise ConfigError(f"empty path segment in glob pattern: {pattern!r}")
        if segment in (".", ".."):
            raise ConfigError(f"glob pattern may not contain {segment!r}: {pattern!r}")
        if _RECURSIVE in segment and segment != _RECURSIVE:
            raise ConfigError(
                f"'**' must be a whole path segment in glob pattern: {pattern!r}"
            )
        if _has_unterminated_class(segment):
            raise ConfigError(f"unterminated character class in glob pattern: {pattern!r}")
    return segments


def _match_segments(pattern: tuple[str, ...], parts: tuple[str, ...]) -> bool:
    # Explicit stack of (pattern index, path index) states instead of recursion
    stack = [(0, 0)]
    seen = set()
    while stack:
        pi, si = stack.pop()
        if (pi, si) in seen:
            continue
        seen.add((pi, si))

        if pi == len(pattern):
            if si == len(parts):
                return True
            continue
        if pattern[pi] == _RECURSIVE:
            stack.append((pi + 1, si))
            if si < len(parts):
                stack.append((pi, si + 1))
            continue
        if si < len(parts) and fnmatchcase(parts[si], pattern[pi]):
            stack.append((pi + 1, si + 1))
    return False


def _split(relative_path: str) -> tuple[str, ...]:
    if os.sep != "/":
        relative_path = relative_path.replace(os.sep, "/")
    normalized = relative_path.strip("/")
    if not normalized or normalized == ".":
        return ()
    return tuple(normalized.split("/"))


class PathMatcher:
    """A set of compiled glob patterns evaluated against relative paths."""

    def __init__(self, patterns: Iterable[str] = ()):
        self.patterns = tuple(patterns)
        self._compiled = [compile_pattern(p) for p in self.patterns]

    def __bool__(self) -> bool:
        return bool(self._compiled)

    def matches(self, relative_path: str) -> bool:
        """Return True if any pattern matches the whole relative path."""
        parts = _split(relative_path)
        return any(_match_segments(p, parts) for p in self._compiled)

    def matches_directory(self, relative_dir: str) -> bool:
        """Return True if the directory is selected by any pattern.

        A pattern whose last segment is exactly ``*`` also selects the
        directory its prefix matches, so ``logs/*`` selects ``logs``.
        """
        parts = _split(relative_dir)
        for pattern in self._compiled:
            if _match_segments(pattern, parts):
                return True
            if len(pattern) > 1 and pattern[-1] == "*" and _match_segments(pattern[:-1], parts):
                return True
        return False


def matches(relative_dir_path: str, pattern_set) -> bool:
    """Decide whether a directory is subject to only-newest retention."""
    if not isinstance(pattern_set, PathMatcher):
        pattern_set = PathMatcher(pattern_set)
    return pattern_set.matches_directory(relative_dir_path)
