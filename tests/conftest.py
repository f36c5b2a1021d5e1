from __future__ import annotations

import os
import shutil
import sys
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console
from typer.testing import CliRunner

HAS_GIT = shutil.which("git") is not None


def pytest_configure(config: pytest.Config) -> None:
    """Register custom markers."""
    config.addinivalue_line("markers", "requires_git: needs a git executable on PATH")


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Skip git tests when git is missing."""
    skip_git = pytest.mark.skip(reason="git executable not found")
    for item in items:
        if not HAS_GIT and "requires_git" in item.keywords:
            item.add_marker(skip_git)


ROOT = Path(__file__).resolve().parent.parent
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture(autouse=True)
def ensure_commands_registered() -> None:
    """Make sure discovered commands are attached before CliRunner invokes the app."""
    from prgate.main import _register_commands

    _register_commands()


@pytest.fixture(autouse=True)
def isolate_config(tmp_path: Path, monkeypatch: Any) -> Path:
    """Point config to a temp path so tests don't pick up user or env settings."""
    for key in list(os.environ):
        if key.startswith("PRGATE_"):
            monkeypatch.delenv(key, raising=False)
    cfg_path = tmp_path / "prgate.toml"
    monkeypatch.setenv("PRGATE_CONFIG", str(cfg_path))
    return cfg_path


@pytest.fixture(autouse=True)
def capture_console(monkeypatch: Any) -> Console:
    """Use an in-memory Rich console during tests."""
    test_console = Console(record=True, width=200)
    import prgate.commands.converge as converge_cmd
    import prgate.commands.gate as gate_cmd
    import prgate.core.console as core_console
    import prgate.core.decorators as decorators
    import prgate.main as prgate_main

    for module in (core_console, decorators, prgate_main, gate_cmd, converge_cmd):
        monkeypatch.setattr(module, "console", test_console)
    return test_console


@pytest.fixture
def git_repo(tmp_path: Path) -> Path:
    """A repository with one commit on ``main`` and ``feature`` checked out."""
    if not HAS_GIT:
        pytest.skip("git executable not found")
    from git import Repo

    repo_dir = tmp_path / "repo"
    repo_dir.mkdir()
    repo = Repo.init(repo_dir, initial_branch="main")
    with repo.config_writer() as cfg:
        cfg.set_value("user", "name", "prgate tests")
        cfg.set_value("user", "email", "tests@example.invalid")

    (repo_dir / "README.md").write_text("# demo\n", encoding="utf-8")
    (repo_dir / ".gitignore").write_text("node_modules/\n", encoding="utf-8")
    repo.index.add(["README.md", ".gitignore"])
    repo.index.commit("initial commit")
    repo.git.checkout("-b", "feature")
    return repo_dir


def build_added_diff(path: str, lines: list[str], start: int = 1) -> str:
    """Render a git-style diff that adds ``lines`` to a new file at ``path``."""
    header = [
        f"diff --git a/{path} b/{path}",
        "new file mode 100644",
        "index 0000000..1111111",
        "--- /dev/null",
        f"+++ b/{path}",
        f"@@ -0,0 +{start},{len(lines)} @@",
    ]
    return "\n".join(header + [f"+{line}" for line in lines]) + "\n"


@pytest.fixture
def added_diff() -> Any:
    return build_added_diff
