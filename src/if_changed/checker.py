from __future__ import annotations

import posixpath
from pathlib import PurePosixPath

from if_changed.exceptions import BlockParseError
from if_changed.oracle import ChangeOracle, Match, Unmatched
from if_changed.parser import AnnotationBlock, BlockParser, Obligation, read_failure_message
from if_changed.patterns import PathPattern


def _expected_message(path: str, file: str, line: int) -> str:
    return f'Expected "{path}" to be modified because of "then-change" in "{file}" at line {line}.'


def _missing_file_message(pattern: str, file: str, line: int) -> str:
    return f'Could not find any file matching "{pattern}" for "then-change" in "{file}" at line {line}.'


def _missing_name_message(name: str, path: str, file: str, line: int) -> str:
    return (
        f'Could not find "if-changed" with name "{name}" in "{path}" '
        f'for "then-change" in "{file}" at line {line}.'
    )


def _open_failure_message(path: str, file: str, line: int, error: OSError) -> str:
    return f'Could not open "{path}" for "then-change" in "{file}" at line {line}: {error}.'


def resolve_target(file: str, target: str) -> str:
    """Resolve a then-change target against the directory of ``file``.

    An empty target is ``file`` itself, a leading ``/`` anchors the target at
    the repository root and a leading ``!`` is carried over as a negation.
    """
    negated = target.startswith("!")
    if negated:
        target = target[1:]
    current = PurePosixPath(file)
    if not target:
        target = current.name
    if target.startswith("/"):
        joined = target
    else:
        joined = str(current.parent / target)
    resolved = posixpath.normpath(joined)
    if resolved == ".":
        resolved = ""
    if joined.startswith("/") and not resolved.startswith("/"):
        resolved = "/" + resolved
    if negated:
        return f"!{resolved}"
    if resolved.startswith("!"):
        return f"\\{resolved}"
    return resolved


class Checker:
    """Checks the then-change obligations of changed if-changed blocks."""

    def __init__(self, oracle: ChangeOracle) -> None:
        self.oracle = oracle

    def check(self, path: str) -> list[str]:
        """Return the violations of ``path``; an empty list means success."""
        try:
            parser = BlockParser(path, self.oracle.resolve(path))
        except OSError as exc:
            return [read_failure_message(path, exc)]
        violations: list[str] = []
        with parser:
            try:
                for block in parser:
                    if not self.oracle.is_range_modified(path, block.range):
                        continue
                    violations.extend(self._check_block(path, block))
            except BlockParseError as exc:
                return list(exc.errors)
        return violations

    def _check_block(self, path: str, block: AnnotationBlock) -> list[str]:
        violations: list[str] = []
        unnamed: list[tuple[str, Obligation]] = []
        named: list[tuple[str, Obligation]] = []
        for obligation in block.obligations:
            pattern = resolve_target(path, obligation.target)
            if obligation.name is None:
                unnamed.append((pattern, obligation))
            elif not pattern.startswith("!"):
                named.append((pattern, obligation))

        if unnamed:
            declared: dict[str, tuple[str, Obligation]] = {}
            for pattern, obligation in unnamed:
                parsed = PathPattern.parse(pattern)
                if not parsed.negated:
                    declared.setdefault(parsed.text, (pattern, obligation))
            for result in self.oracle.match([pattern for pattern, _ in unnamed]):
                if not isinstance(result, Unmatched) or result.negated:
                    continue
                pattern, obligation = declared[result.pattern]
                violations.append(self._unmatched_violation(pattern, path, obligation))

        for pattern, obligation in named:
            violations.extend(self._check_named(path, pattern, obligation))
        return violations

    def _unmatched_violation(self, pattern: str, file: str, obligation: Obligation) -> str:
        line = obligation.declared_at_line
        if self.oracle.paths([pattern]):
            return _expected_message(pattern, file, line)
        return _missing_file_message(pattern, file, line)

    def _check_named(self, file: str, pattern: str, obligation: Obligation) -> list[str]:
        line = obligation.declared_at_line
        name = obligation.name or ""
        targets = [result.path for result in self.oracle.match([pattern]) if isinstance(result, Match)]
        if not targets:
            return [self._unmatched_violation(pattern, file, obligation)]
        violations: list[str] = []
        for target in targets:
            try:
                parser = BlockParser(target, self.oracle.resolve(target))
            except OSError as exc:
                violations.append(_open_failure_message(target, file, line, exc))
                continue
            with parser:
                try:
                    found = next((block for block in parser if block.name == name), None)
                except BlockParseError as exc:
                    violations.extend(exc.errors)
                    continue
            if found is None:
                violations.append(_missing_name_message(name, target, file, line))
            elif not self.oracle.is_range_modified(target, found.range):
                violations.append(_expected_message(target, file, line))
        return violations
