"""Parser for ``if-changed`` / ``then-change`` annotation blocks.

A block opens with an ``if-changed`` marker at the start of a comment and is
closed by the next ``then-change(...)`` marker. Blocks nest: a ``then-change``
always closes the most recently opened block.

    // if-changed(name)
    ...
    // then-change(other.rs, docs/*.md, ../lib.rs:name)

The parser knows nothing about any language beyond a fixed set of comment
start characters, so the same markers work in ``#``, ``//``, ``--``, ``;``,
``REM``, ``<!--`` and ``/* ... */`` comments.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
from typing import IO, Iterator

from if_changed.exceptions import BlockParseError

COMMENT_START_CHARS = "/#-';REM!*<"
IF_CHANGED = "if-changed"
THEN_CHANGE = "then-change"

_DELIMITER_RE = re.compile(r"[\\,)]")


@dataclass(frozen=True)
class Obligation:
    name: str | None
    target: str
    declared_at_line: int


@dataclass(frozen=True)
class AnnotationBlock:
    name: str | None
    range: tuple[int, int]
    obligations: tuple[Obligation, ...]


@dataclass(frozen=True)
class _OpenBlock:
    name: str | None
    start: int


def read_failure_message(path: str | Path, error: OSError) -> str:
    return f'Failed to read "{path}": {error}.'


class BlockParser:
    """Forward-only reader of the annotation blocks of one file.

    ``path`` is the name used in messages; ``source`` is the file actually
    read and defaults to ``path``. The file is opened immediately, so an
    unreadable file raises ``OSError`` from the constructor. Lines end at
    ``\\n`` only, so line numbers agree with git's.

    Iterating yields each block once its ``then-change`` has been read. A
    malformed structure raises ``BlockParseError`` and ends the iteration; the
    file handle is closed as soon as iteration finishes, fails, or the parser
    is closed.
    """

    def __init__(self, path: str | Path, source: str | Path | None = None) -> None:
        self.path = str(path)
        self._handle: IO[str] | None = open(
            source if source is not None else path,
            encoding="utf-8",
            errors="replace",
            newline="\n",
        )
        self._number = 0
        self._rest = ""
        self._open: list[_OpenBlock] = []
        self._consumed = False

    def __enter__(self) -> BlockParser:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    @property
    def closed(self) -> bool:
        return self._handle is None

    def __iter__(self) -> Iterator[AnnotationBlock]:
        if self._consumed:
            raise RuntimeError(f"{self.path}: annotation blocks can only be read once")
        self._consumed = True
        return self._blocks()

    def _blocks(self) -> Iterator[AnnotationBlock]:
        try:
            while self._next_line():
                opened, name = self._parse_if_changed()
                if opened:
                    self._open.append(_OpenBlock(name=name, start=self._number))

                if not self._find_and_eat(THEN_CHANGE):
                    continue
                # The block ends on the then-change line, not on the line of
                # the last pattern, so appending a pattern to a multi-line list
                # does not move the blame for the existing ones.
                end = self._number
                try:
                    obligations = self._parse_arguments(end)
                except BlockParseError as exc:
                    if self._open:
                        self._open.pop()
                        raise
                    raise BlockParseError([self._missing_if_changed(end), *exc.errors]) from None
                if not self._open:
                    raise BlockParseError([self._missing_if_changed(end)])
                block = self._open.pop()
                yield AnnotationBlock(
                    name=block.name,
                    range=(block.start, end),
                    obligations=obligations,
                )
            if self._open:
                unclosed, self._open = self._open, []
                raise BlockParseError(
                    f'Missing "then-change" for "if-changed" at line {block.start} for "{self.path}".'
                    for block in unclosed
                )
        finally:
            self.close()

    def _next_line(self) -> bool:
        if self._handle is None:
            return False
        try:
            raw = self._handle.readline()
        except OSError as exc:
            raise BlockParseError([read_failure_message(self.path, exc)]) from exc
        if not raw:
            return False
        self._number += 1
        self._rest = raw.removesuffix("\n").removesuffix("\r")
        return True

    def _skip_comment(self) -> None:
        self._rest = self._rest.lstrip().lstrip(COMMENT_START_CHARS)

    def _eat(self, token: str) -> bool:
        self._rest = self._rest.lstrip()
        if not self._rest.startswith(token):
            return False
        self._rest = self._rest[len(token):]
        return True

    def _find_and_eat(self, token: str) -> bool:
        index = self._rest.find(token)
        if index == -1:
            return False
        self._rest = self._rest[index + len(token):]
        return True

    def _parse_if_changed(self) -> tuple[bool, str | None]:
        self._skip_comment()
        if not self._eat(IF_CHANGED):
            return False, None
        if not self._eat("("):
            return True, None
        end = self._rest.find(")")
        if end == -1:
            raise BlockParseError(
                [f"Could not find ')' for \"if-changed\" at line {self._number} for \"{self.path}\"."]
            )
        name = self._rest[:end].strip()
        self._rest = self._rest[end + 1:]
        return True, name

    def _parse_arguments(self, then_line: int) -> tuple[Obligation, ...]:
        if not self._eat("("):
            raise BlockParseError(
                [f"Could not find '(' for \"then-change\" at line {then_line} for \"{self.path}\"."]
            )
        obligations: list[Obligation] = []
        while True:
            self._skip_blank(then_line)
            entry_line = self._number
            text, closed = self._read_entry(then_line)
            pattern, separator, name = text.partition(":")
            if separator:
                obligations.append(
                    Obligation(name=name.strip(), target=pattern.strip(), declared_at_line=then_line)
                )
            elif text:
                obligations.append(Obligation(name=None, target=text, declared_at_line=then_line))
            elif not closed:
                raise BlockParseError(
                    [
                        f'Unexpected empty path at line {entry_line} for "then-change" '
                        f'at line {then_line} for "{self.path}".'
                    ]
                )
            if closed:
                return tuple(obligations)

    def _skip_blank(self, then_line: int) -> None:
        while True:
            self._rest = self._rest.lstrip()
            if self._rest:
                return
            if not self._next_line():
                raise BlockParseError(
                    [f"Could not find ')' for \"then-change\" at line {then_line} for \"{self.path}\"."]
                )
            self._skip_comment()

    def _read_entry(self, then_line: int) -> tuple[str, bool]:
        """Read one ``pattern[:name]`` entry; report whether ``)`` closed it.

        An entry ends at ``,``, ``)`` or the end of the line. A backslash
        appends the following character literally; a backslash ending the
        line continues the entry on the next line.
        """
        buffer = ""
        while True:
            match = _DELIMITER_RE.search(self._rest)
            if match is None:
                buffer += self._rest.strip()
                self._rest = ""
                return buffer, False
            index = match.start()
            buffer += self._rest[:index].strip()
            if match.group() == "\\":
                escaped = self._rest[index + 1:index + 2]
                self._rest = self._rest[index + 2:]
                if escaped:
                    buffer += escaped
                else:
                    self._skip_blank(then_line)
                continue
            self._rest = self._rest[index + 1:]
            return buffer, match.group() == ")"

    def _missing_if_changed(self, line: int) -> str:
        return f'Missing "if-changed" for "then-change" at line {line} for "{self.path}".'


def parse_blocks(path: str | Path, source: str | Path | None = None) -> list[AnnotationBlock]:
    """Read every block of a file eagerly."""
    with BlockParser(path, source) as parser:
        return list(parser)
