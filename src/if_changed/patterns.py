"""Ignore-file style path patterns.

Patterns are ``fnmatch`` globs anchored at the repository root. As with git
pathspecs, ``*`` also matches ``/``, and a pattern that matches a directory
matches everything beneath it. Within a ``PatternSet`` the last declared
pattern that matches a path decides, and a ``!`` prefix turns a pattern into
an exclusion.
"""

from __future__ import annotations

from dataclasses import dataclass
import fnmatch
import re
from typing import Iterable


@dataclass(frozen=True)
class PathPattern:
    text: str
    negated: bool
    directory_only: bool
    regex: re.Pattern[str]

    @classmethod
    def parse(cls, raw: str) -> PathPattern:
        text = raw.strip()
        negated = text.startswith("!")
        if negated:
            text = text[1:]
        elif text.startswith("\\!"):
            text = text[1:]
        body = text.lstrip("/")
        directory_only = body.endswith("/")
        body = body.rstrip("/")
        return cls(
            text=text,
            negated=negated,
            directory_only=directory_only,
            regex=re.compile(fnmatch.translate(body)),
        )

    def matches(self, path: str) -> bool:
        parts = path.strip("/").split("/")
        if not self.directory_only and self.regex.match("/".join(parts)):
            return True
        return any(
            self.regex.match("/".join(parts[:depth]))
            for depth in range(1, len(parts))
        )


class PatternSet:
    """Ordered patterns with last-match-wins precedence."""

    def __init__(self, patterns: Iterable[str]) -> None:
        self.patterns: tuple[PathPattern, ...] = tuple(
            PathPattern.parse(raw) for raw in patterns if raw.strip()
        )

    def __len__(self) -> int:
        return len(self.patterns)

    def __bool__(self) -> bool:
        return bool(self.patterns)

    def decide(self, path: str) -> int | None:
        """Index of the pattern deciding ``path``, or None if none match."""
        for index in range(len(self.patterns) - 1, -1, -1):
            if self.patterns[index].matches(path):
                return index
        return None

    def selects(self, path: str) -> bool:
        index = self.decide(path)
        return index is not None and not self.patterns[index].negated

    def select(self, paths: Iterable[str]) -> list[str]:
        return [path for path in paths if self.selects(path)]


def split_pattern_list(value: str, *, separator: str = ",") -> list[str]:
    return [item.strip() for item in value.split(separator) if item.strip()]
