from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


import pytest

from tests.git_helpers import GitRepo, init_repo


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    return init_repo(tmp_path / "repo")
