from __future__ import annotations

from pathlib import Path

import pytest

from if_changed import config
from if_changed.exceptions import ConfigError


def test_check_defaults_reads_section(tmp_path: Path) -> None:
    (tmp_path / "if-changed.toml").write_text(
        '[check]\nfrom_ref = "main"\npatterns = ["src/*", "!src/gen/"]\nexempt = "vendor/, docs/"\n',
        encoding="utf-8",
    )
    defaults = config.check_defaults(root=tmp_path)
    assert defaults["from_ref"] == "main"
    assert config.normalize_pattern_list(defaults["patterns"]) == ["src/*", "!src/gen/"]
    assert config.normalize_pattern_list(defaults["exempt"]) == ["vendor/", "docs/"]


def test_missing_config_is_empty(tmp_path: Path) -> None:
    assert config.check_defaults(root=tmp_path) == {}
    odd = tmp_path / "odd.toml"
    odd.write_text('check = "not a table"\n', encoding="utf-8")
    assert config.check_defaults(config_path=odd) == {}


def test_merge_payload_prefers_explicit_values() -> None:
    defaults = {"from_ref": "main", "patterns": ["a"], "exempt": ["b"]}
    merged = config.merge_payload(
        {"from_ref": None, "to_ref": "HEAD", "patterns": []},
        defaults,
    )
    assert merged == {"from_ref": "main", "to_ref": "HEAD", "patterns": ["a"], "exempt": ["b"]}
    assert config.merge_payload({"patterns": ["c"]}, defaults)["patterns"] == ["c"]


def test_optional_text() -> None:
    assert config.optional_text("  HEAD^ ") == "HEAD^"
    assert config.optional_text("") is None
    assert config.optional_text(3) is None
    assert config.normalize_pattern_list(None) == []
    assert config.normalize_pattern_list(["a, b", 3, "c"]) == ["a", "b", "c"]


def test_malformed_config_raises(tmp_path: Path) -> None:
    broken = tmp_path / "broken.toml"
    broken.write_text("[check\n", encoding="utf-8")
    with pytest.raises(ConfigError) as excinfo:
        config.check_defaults(config_path=broken)
    assert str(excinfo.value).startswith(f"{broken}: ")
