from __future__ import annotations

import pytest

from if_changed.patterns import PathPattern, PatternSet, split_pattern_list


@pytest.mark.parametrize(
    ("pattern", "path", "expected"),
    [
        ("a", "a", True),
        ("a", "c/a", False),
        ("/a", "a", True),
        ("*a", "c/a", True),
        ("*.ts", "src/deep/x.ts", True),
        ("src/*.ts", "src/a.ts", True),
        ("src/?.ts", "src/ab.ts", False),
        ("src/[ab].ts", "src/b.ts", True),
        ("src", "src/a/b.ts", True),
        ("src/", "src/a.ts", True),
        ("src/", "src", False),
        ("sr", "src/a.ts", False),
    ],
)
def test_path_pattern_matches(pattern: str, path: str, expected: bool) -> None:
    assert PathPattern.parse(pattern).matches(path) is expected


def test_path_pattern_parse_flags() -> None:
    negated = PathPattern.parse("!src/b.ts")
    assert negated.negated
    assert negated.text == "src/b.ts"
    escaped = PathPattern.parse("\\!bang")
    assert not escaped.negated
    assert escaped.text == "!bang"
    assert escaped.matches("!bang")
    anchored = PathPattern.parse("/docs/")
    assert anchored.text == "/docs/"
    assert anchored.directory_only
    assert anchored.matches("docs/index.md")


def test_pattern_set_last_match_wins() -> None:
    patterns = PatternSet(["src/*", "!src/b.ts", "src/b.*"])
    assert patterns.selects("src/a.ts")
    assert patterns.selects("src/b.ts")
    assert patterns.decide("src/b.ts") == 2
    assert patterns.decide("lib/a.ts") is None


def test_pattern_set_negation_excludes() -> None:
    patterns = PatternSet(["src/*", "!src/b.ts"])
    assert patterns.select(["src/a.ts", "src/b.ts", "lib/c.ts"]) == ["src/a.ts"]


def test_pattern_set_drops_blank_entries() -> None:
    patterns = PatternSet(["", "  ", "a"])
    assert len(patterns) == 1
    assert patterns
    assert not PatternSet([])


def test_split_pattern_list() -> None:
    assert split_pattern_list("a/b, b/c") == ["a/b", "b/c"]
    assert split_pattern_list(" a ,, b ,") == ["a", "b"]
    assert split_pattern_list("") == []
