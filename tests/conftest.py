from __future__ import annotations

from pathlib import Path

import pytest


@pytest.fixture(autouse=True)
def isolated_global_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point the global config location at an empty per-test directory."""
    home = tmp_path / "global-home"
    home.mkdir()
    monkeypatch.setenv("STANDARDS_AUDIT_HOME", str(home))
    return home
