from __future__ import annotations

import json
import shlex
import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from prgate.core.result import ConfigurationError, Ok
from prgate.feedback.fixer import CommandFixApplier, render_feedback_markdown
from prgate.feedback.types import Classification, ReviewComment
from prgate.git.client import AsyncRepo

COMMENTS = [
    ReviewComment(id="review-1", author="claude[bot]", body="nit: rename", path="src/a.py", line=3),
    ReviewComment(
        id="review-2",
        author="claude[bot]",
        body="critical: SQL injection",
        path="src/db.py",
        line=40,
        url="https://github.com/acme/app/pull/42#discussion_r2",
    ),
]
LABELS = {"review-1": Classification.SUGGESTION, "review-2": Classification.BLOCKING}


def _repo(tmp_path: Path, *statuses: list[tuple[str, str]]) -> AsyncRepo:
    repo = AsyncRepo(tmp_path)
    repo.status_short = AsyncMock(side_effect=[Ok(s) for s in statuses])  # type: ignore[method-assign]
    return repo


def _python_command(code: str) -> str:
    return f"{shlex.quote(sys.executable)} -c {shlex.quote(code)}"


def test_markdown_lists_blocking_first() -> None:
    text = render_feedback_markdown(1, COMMENTS, LABELS)
    assert text.index("## Blocking") < text.index("## Suggestions")
    assert "**src/db.py:40**" in text
    assert "<https://github.com/acme/app/pull/42#discussion_r2>" in text
    assert "## Other" not in text


@pytest.mark.asyncio
async def test_without_command_only_writes_artifacts(tmp_path: Path) -> None:
    repo = _repo(tmp_path)
    fixer = CommandFixApplier(repo, Path(".prgate/feedback"))

    outcome = await fixer.apply(2, COMMENTS, LABELS)

    assert not outcome.changed
    assert outcome.feedback_file == tmp_path / ".prgate/feedback/iteration-2.json"
    payload = json.loads(outcome.feedback_file.read_text(encoding="utf-8"))
    assert payload["iteration"] == 2
    assert [c["id"] for c in payload["comments"]] == ["review-2", "review-1"]
    assert payload["comments"][0]["classification"] == "blocking"
    assert (tmp_path / ".prgate/feedback/iteration-2.md").exists()
    repo.status_short.assert_not_awaited()  # type: ignore[attr-defined]


@pytest.mark.asyncio
async def test_command_changes_are_detected(tmp_path: Path) -> None:
    repo = _repo(
        tmp_path,
        [("??", ".prgate/feedback/iteration-1.json")],
        [("??", ".prgate/feedback/iteration-1.json"), ("??", "fixed.txt")],
    )
    code = (
        "import os, pathlib; "
        "pathlib.Path('fixed.txt').write_text(os.environ['PRGATE_FEEDBACK_FILE'] + '|' + os.environ['PRGATE_ITERATION'])"
    )
    fixer = CommandFixApplier(repo, Path(".prgate/feedback"), _python_command(code))

    outcome = await fixer.apply(1, COMMENTS, LABELS)

    assert outcome.files_changed == ("fixed.txt",)
    feedback_file, iteration = (tmp_path / "fixed.txt").read_text(encoding="utf-8").split("|")
    assert Path(feedback_file) == tmp_path / ".prgate/feedback/iteration-1.json"
    assert iteration == "1"


@pytest.mark.asyncio
async def test_already_dirty_file_edited_again_counts(tmp_path: Path) -> None:
    (tmp_path / "app.py").write_text("x = 1\n", encoding="utf-8")
    repo = _repo(tmp_path, [(" M", "app.py")], [(" M", "app.py")])
    code = "import pathlib; pathlib.Path('app.py').write_text('x = 2\\n')"
    fixer = CommandFixApplier(repo, Path(".prgate/feedback"), _python_command(code))

    outcome = await fixer.apply(1, COMMENTS, LABELS)

    assert outcome.files_changed == ("app.py",)


@pytest.mark.asyncio
async def test_command_that_edits_nothing(tmp_path: Path) -> None:
    repo = _repo(tmp_path, [], [])
    fixer = CommandFixApplier(repo, Path(".prgate/feedback"), _python_command("pass"))

    outcome = await fixer.apply(1, COMMENTS, LABELS)

    assert not outcome.changed


@pytest.mark.asyncio
async def test_missing_command_is_configuration_error(tmp_path: Path) -> None:
    repo = _repo(tmp_path, [], [])
    fixer = CommandFixApplier(repo, Path(".prgate/feedback"), "definitely-not-a-real-fixer --go")

    with pytest.raises(ConfigurationError):
        await fixer.apply(1, COMMENTS, LABELS)
