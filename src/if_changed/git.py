from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
import re
import subprocess
from typing import Sequence

from if_changed.exceptions import RepositoryError

_HUNK_RE = re.compile(
    r"^@@ -(?P<old_start>\d+)(?:,(?P<old_lines>\d+))? \+(?P<new_start>\d+)(?:,(?P<new_lines>\d+))? @@"
)
_TRAILER_RE = re.compile(r"^(?P<key>[A-Za-z0-9-]+)\s*:\s*(?P<value>.*)$")

ADDED = "A"
DELETED = "D"
UNTRACKED = "?"


@dataclass(frozen=True)
class ChangedPath:
    path: str
    status: str


@dataclass(frozen=True)
class HunkLine:
    origin: str
    old_lineno: int | None
    new_lineno: int | None


@dataclass(frozen=True)
class Hunk:
    old_start: int
    old_lines: int
    new_start: int
    new_lines: int
    lines: tuple[HunkLine, ...]


def run_git(
    root: Path,
    args: Sequence[str],
    *,
    input_text: str | None = None,
) -> subprocess.CompletedProcess[bytes]:
    # Bytes in and out: text mode would translate a lone "\r" into a line break.
    return subprocess.run(
        ["git", "-c", "core.quotepath=off", *args],
        cwd=root,
        check=False,
        capture_output=True,
        input=input_text.encode("utf-8") if input_text is not None else None,
    )


def decode_output(data: bytes) -> str:
    return data.decode("utf-8", errors="surrogateescape")


def git_output(root: Path, args: Sequence[str], *, input_text: str | None = None) -> str:
    proc = run_git(root, args, input_text=input_text)
    if proc.returncode != 0:
        message = (
            decode_output(proc.stderr).strip()
            or decode_output(proc.stdout).strip()
            or f"git {args[0]} failed"
        )
        raise RepositoryError(message)
    return decode_output(proc.stdout)


def try_git_output(root: Path, args: Sequence[str]) -> str | None:
    proc = run_git(root, args)
    if proc.returncode != 0:
        return None
    return decode_output(proc.stdout)


def parse_name_status(output: str) -> list[ChangedPath]:
    """Parse ``git diff --name-status -z --no-renames`` output."""
    fields = output.split("\0")
    changed: list[ChangedPath] = []
    for index in range(0, len(fields) - 1, 2):
        status = fields[index].strip()
        path = fields[index + 1]
        if not status or not path:
            continue
        changed.append(ChangedPath(path=path, status=status[0]))
    return changed


def parse_null_separated(output: str) -> list[str]:
    return [item for item in output.split("\0") if item]


def parse_hunks(diff_text: str) -> list[Hunk]:
    """Parse the hunks of a single-file unified diff, numbering every line.

    Lines are split on ``\\n`` only, as git does; any other control character
    is part of the line's content.
    """
    hunks: list[Hunk] = []
    header: re.Match[str] | None = None
    lines: list[HunkLine] = []
    old_lineno = new_lineno = 0
    old_left = new_left = 0

    def flush() -> None:
        if header is None:
            return
        hunks.append(
            Hunk(
                old_start=int(header.group("old_start")),
                old_lines=int(header.group("old_lines") or "1"),
                new_start=int(header.group("new_start")),
                new_lines=int(header.group("new_lines") or "1"),
                lines=tuple(lines),
            )
        )

    for raw_line in diff_text.split("\n"):
        if old_left <= 0 and new_left <= 0:
            match = _HUNK_RE.match(raw_line)
            if match is None:
                continue
            flush()
            header = match
            lines = []
            old_lineno = int(match.group("old_start"))
            new_lineno = int(match.group("new_start"))
            old_left = int(match.group("old_lines") or "1")
            new_left = int(match.group("new_lines") or "1")
            continue
        if raw_line.startswith("\\"):
            continue
        if raw_line.startswith("+"):
            lines.append(HunkLine(origin="+", old_lineno=None, new_lineno=new_lineno))
            new_lineno += 1
            new_left -= 1
        elif raw_line.startswith("-"):
            lines.append(HunkLine(origin="-", old_lineno=old_lineno, new_lineno=None))
            old_lineno += 1
            old_left -= 1
        else:
            lines.append(HunkLine(origin=" ", old_lineno=old_lineno, new_lineno=new_lineno))
            old_lineno += 1
            new_lineno += 1
            old_left -= 1
            new_left -= 1
    flush()
    return hunks


def parse_trailers(text: str) -> list[tuple[str, str]]:
    """Parse ``%(trailers:only,unfold)`` output into (key, value) pairs."""
    trailers: list[tuple[str, str]] = []
    for raw_line in text.split("\n"):
        match = _TRAILER_RE.match(raw_line.strip())
        if match is None:
            continue
        trailers.append((match.group("key"), match.group("value").strip()))
    return trailers


__all__ = [
    "ADDED",
    "DELETED",
    "UNTRACKED",
    "ChangedPath",
    "decode_output",
    "Hunk",
    "HunkLine",
    "git_output",
    "parse_hunks",
    "parse_name_status",
    "parse_null_separated",
    "parse_trailers",
    "run_git",
    "try_git_output",
]
