"""Exception hierarchy for if-changed."""

from __future__ import annotations

from typing import Iterable


class IfChangedError(Exception):
    """Base class for every error raised by if-changed."""


class BlockParseError(IfChangedError):
    """A file's if-changed/then-change structure is malformed.

    The remaining structure of the file cannot be trusted once this is raised,
    so it aborts the check of that file only. ``errors`` carries one
    human-readable message per problem found.
    """

    def __init__(self, errors: Iterable[str]):
        self.errors: tuple[str, ...] = tuple(errors)
        super().__init__("\n".join(self.errors))


class RepositoryError(IfChangedError):
    """Fatal precondition: the repository cannot be used for this run."""


class RevisionError(RepositoryError):
    """A revision reference does not resolve to a tree."""


class BareRepositoryError(RepositoryError):
    """The repository has no working tree."""


class ConfigError(IfChangedError):
    """The configuration file exists but is not valid TOML."""
