# ruff: noqa: E402

import builtins
import sys
from pathlib import Path

import pytest
from _pytest.doctest import DoctestModule

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import loomkit.io as io
import loomkit.log as loomkit_log

PACKAGE = ROOT / "src" / "loomkit"
DOCTEST_MODULES = {
    PACKAGE / "__init__.py",
    PACKAGE / "config.py",
    PACKAGE / "connector_registry.py",
    PACKAGE / "database.py",
    PACKAGE / "dependency_map.py",
    PACKAGE / "envfile.py",
    PACKAGE / "exec.py",
    PACKAGE / "git.py",
    PACKAGE / "identifiers.py",
    PACKAGE / "io.py",
    PACKAGE / "locking.py",
    PACKAGE / "metadata.py",
    PACKAGE / "models.py",
    PACKAGE / "paths.py",
    PACKAGE / "ports.py",
    PACKAGE / "process.py",
    PACKAGE / "worktrees.py",
}


@pytest.fixture(autouse=True)
def _default_patches(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(io, "_use_questionary", lambda: False)
    monkeypatch.setenv("NO_COLOR", "1")
    monkeypatch.setattr(loomkit_log, "_active_level", None)
    monkeypatch.setattr(loomkit_log, "_force_no_color", None)

    def fail_input(prompt: str = "") -> str:
        raise AssertionError("prompted unexpectedly")

    monkeypatch.setattr(builtins, "input", fail_input)


def pytest_collect_file(
    parent: pytest.Collector, file_path: Path
) -> DoctestModule | None:
    path = file_path if isinstance(file_path, Path) else Path(str(file_path))
    if path in DOCTEST_MODULES:
        return DoctestModule.from_parent(parent, path=path)
    return None
