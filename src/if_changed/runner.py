from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, Literal, Sequence

from if_changed.checker import Checker
from if_changed.oracle import ChangeOracle, Match

FileStatus = Literal["checked", "exempt", "deleted"]


@dataclass(frozen=True)
class FileOutcome:
    path: str
    status: FileStatus
    violations: tuple[str, ...] = ()


def iter_outcomes(oracle: ChangeOracle, patterns: Sequence[str] = ()) -> Iterator[FileOutcome]:
    """Check every changed file selected by ``patterns``.

    Patterns that select nothing are not an error here: they only narrow the
    set of files to check.
    """
    checker = Checker(oracle)
    for result in oracle.match(patterns):
        if not isinstance(result, Match):
            continue
        path = result.path
        if oracle.is_exempt(path):
            yield FileOutcome(path=path, status="exempt")
            continue
        if oracle.is_deleted(path):
            yield FileOutcome(path=path, status="deleted")
            continue
        yield FileOutcome(path=path, status="checked", violations=tuple(checker.check(path)))


def run(oracle: ChangeOracle, patterns: Sequence[str] = ()) -> Iterator[str]:
    for outcome in iter_outcomes(oracle, patterns):
        yield from outcome.violations
