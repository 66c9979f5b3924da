"""Change oracle over a pair of git snapshots.

The oracle compares a base revision (``from_ref``, default ``HEAD``) with a
target revision (``to_ref``) or, when no target is given, with the working
copy including staged changes and untracked files. Diff data is computed on
first use and reused for the rest of the run.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Iterator, Sequence

from if_changed import git
from if_changed.exceptions import BareRepositoryError, RepositoryError, RevisionError
from if_changed.patterns import PatternSet, split_pattern_list

IGNORE_TRAILER = "ignore-if-changed"
_JUSTIFICATION_SEPARATOR = "--"
_DIFF_OPTIONS = ("--no-color", "--no-ext-diff", "--no-renames")


@dataclass(frozen=True)
class Match:
    path: str


@dataclass(frozen=True)
class Unmatched:
    pattern: str
    negated: bool = False


MatchResult = Match | Unmatched


def exempt_patterns_from_trailers(trailers: Iterable[tuple[str, str]]) -> list[str]:
    patterns: list[str] = []
    for key, value in trailers:
        if key.lower() != IGNORE_TRAILER:
            continue
        listed, _, _justification = value.partition(_JUSTIFICATION_SEPARATOR)
        patterns.extend(split_pattern_list(listed))
    return patterns


class ChangeOracle:
    def __init__(
        self,
        root: Path | str = ".",
        from_ref: str | None = None,
        to_ref: str | None = None,
        *,
        exempt: Sequence[str] = (),
    ) -> None:
        self.root = Path(root)
        self.from_ref = from_ref
        self.to_ref = to_ref
        if not self.root.is_dir():
            raise RepositoryError(f"{self.root} is not a directory")
        if git.try_git_output(self.root, ["rev-parse", "--git-dir"]) is None:
            raise RepositoryError(f"{self.root} is not inside a git repository")
        self.workdir = self._find_workdir()
        self.from_tree = self._base_tree(from_ref)
        self.to_tree = self._tree(to_ref) if to_ref is not None else None
        trailer_patterns = self._trailer_exemptions(to_ref) if to_ref is not None else []
        self.exempt_patterns = PatternSet([*exempt, *trailer_patterns])
        self._changes: dict[str, git.ChangedPath] | None = None
        self._hunks: dict[str, tuple[git.Hunk, ...]] = {}
        self._tree_paths: list[str] | None = None

    def _git_root(self) -> Path:
        return self.workdir if self.workdir is not None else self.root

    def _find_workdir(self) -> Path | None:
        bare = git.git_output(self.root, ["rev-parse", "--is-bare-repository"]).strip()
        if bare == "true":
            return None
        toplevel = git.try_git_output(self.root, ["rev-parse", "--show-toplevel"])
        if toplevel is None or not toplevel.strip():
            return None
        return Path(toplevel.strip()).resolve()

    def _tree(self, ref: str) -> str:
        tree = git.try_git_output(self._git_root(), ["rev-parse", "--verify", "--quiet", f"{ref}^{{tree}}"])
        if tree is None or not tree.strip():
            raise RevisionError(f"{ref} is not a valid revision")
        return tree.strip()

    def _base_tree(self, ref: str | None) -> str:
        if ref is not None:
            return self._tree(ref)
        tree = git.try_git_output(self._git_root(), ["rev-parse", "--verify", "--quiet", "HEAD^{tree}"])
        if tree is not None and tree.strip():
            return tree.strip()
        # Unborn branch: everything in the working copy is new.
        return git.git_output(self._git_root(), ["hash-object", "-t", "tree", "--stdin"], input_text="").strip()

    def _trailer_exemptions(self, ref: str) -> list[str]:
        commit = git.try_git_output(self._git_root(), ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])
        if commit is None or not commit.strip():
            return []
        message = git.git_output(
            self._git_root(),
            ["log", "-1", "--format=%(trailers:only,unfold)", commit.strip()],
        )
        return exempt_patterns_from_trailers(git.parse_trailers(message))

    def _require_workdir(self) -> Path:
        if self.workdir is None:
            raise BareRepositoryError("bare repositories are not supported")
        return self.workdir

    def _revision_args(self) -> list[str]:
        if self.to_tree is not None:
            return [self.from_tree, self.to_tree]
        return [self.from_tree]

    def _changed(self) -> dict[str, git.ChangedPath]:
        if self._changes is None:
            output = git.git_output(
                self._git_root(),
                ["diff", "--name-status", "-z", *_DIFF_OPTIONS, *self._revision_args()],
            )
            entries = git.parse_name_status(output)
            if self.to_tree is None:
                untracked = git.git_output(
                    self._require_workdir(),
                    ["ls-files", "--others", "--exclude-standard", "-z"],
                )
                entries.extend(
                    git.ChangedPath(path=path, status=git.UNTRACKED)
                    for path in git.parse_null_separated(untracked)
                )
            self._changes = {entry.path: entry for entry in sorted(entries, key=lambda entry: entry.path)}
        return self._changes

    def changed_paths(self) -> list[str]:
        return list(self._changed())

    def match(self, patterns: Sequence[str]) -> Iterator[MatchResult]:
        """Match changed paths against ignore-file style patterns.

        Yields ``Match`` for every changed path selected by the patterns (all
        changed paths when there are none), then ``Unmatched`` for every
        pattern that selected nothing. Negated patterns only ever exclude, so
        they are always reported as unmatched, without their ``!``.
        """
        changed = self.changed_paths()
        selection = PatternSet(patterns)
        if not selection:
            for path in changed:
                yield Match(path)
            return
        credited: set[int] = set()
        for path in changed:
            if not selection.selects(path):
                continue
            credited.update(
                index
                for index, pattern in enumerate(selection.patterns)
                if not pattern.negated and pattern.matches(path)
            )
            yield Match(path)
        for index, pattern in enumerate(selection.patterns):
            if index not in credited:
                yield Unmatched(pattern=pattern.text, negated=pattern.negated)

    def _snapshot_paths(self) -> list[str]:
        if self._tree_paths is None:
            if self.to_tree is not None:
                output = git.git_output(
                    self._git_root(),
                    ["ls-tree", "-r", "--name-only", "-z", self.to_tree],
                )
                self._tree_paths = git.parse_null_separated(output)
            else:
                workdir = self._require_workdir()
                output = git.git_output(
                    workdir,
                    ["ls-files", "--cached", "--others", "--exclude-standard", "-z"],
                )
                self._tree_paths = sorted(
                    {path for path in git.parse_null_separated(output) if (workdir / path).exists()}
                )
        return self._tree_paths

    def paths(self, patterns: Sequence[str]) -> list[str]:
        """Files of the target snapshot selected by ``patterns``."""
        return PatternSet(patterns).select(self._snapshot_paths())

    def _patch(self, path: str) -> tuple[git.Hunk, ...]:
        if path not in self._hunks:
            output = git.git_output(
                self._git_root(),
                [
                    "--literal-pathspecs",
                    "diff",
                    "--unified=3",
                    *_DIFF_OPTIONS,
                    *self._revision_args(),
                    "--",
                    path,
                ],
            )
            self._hunks[path] = tuple(git.parse_hunks(output))
        return self._hunks[path]

    def is_range_modified(self, path: str, span: tuple[int, int]) -> bool:
        change = self._changed().get(path)
        if change is None:
            return False
        if change.status in (git.ADDED, git.UNTRACKED):
            return True
        start, end = span
        for hunk in self._patch(path):
            if hunk.new_start > end:
                break
            if hunk.new_start + hunk.new_lines < start:
                continue
            for line in hunk.lines:
                if line.origin == "+" and line.new_lineno is not None and start <= line.new_lineno <= end:
                    return True
                if line.origin == "-" and line.old_lineno is not None and start <= line.old_lineno <= end:
                    return True
        return False

    def is_deleted(self, path: str) -> bool:
        change = self._changed().get(path)
        return change is not None and change.status == git.DELETED

    def is_exempt(self, path: str) -> bool:
        return self.exempt_patterns.selects(path)

    def resolve(self, path: str | Path) -> Path:
        return self._require_workdir() / path
