from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from prgate.core.result import Err, GitError, Ok
from prgate.git import client
from prgate.git.client import AsyncRepo, exclusion_pathspecs, unquote_path


def _process(stdout: str = "", stderr: str = "", returncode: int = 0) -> MagicMock:
    proc = MagicMock()
    proc.communicate = AsyncMock(return_value=(stdout.encode(), stderr.encode()))
    proc.returncode = returncode
    return proc


def test_exclusion_pathspecs() -> None:
    assert exclusion_pathspecs(["*.example", "*.sample"]) == [
        ":(exclude)*.example",
        ":(exclude)*.sample",
    ]


def test_parse_status_short_handles_renames() -> None:
    output = " M src/app.py\n?? new.txt\nR  old.py -> renamed.py\n"
    assert client._parse_status_short(output) == [
        ("M", "src/app.py"),
        ("??", "new.txt"),
        ("R", "renamed.py"),
    ]


@pytest.mark.asyncio
async def test_diff_uses_three_dot_range_and_exclusions(tmp_path: Path) -> None:
    mock_exec = AsyncMock(return_value=_process("diff text"))
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        result = await AsyncRepo(tmp_path).diff("main", "HEAD", ["*.example"])

    assert result == Ok("diff text")
    args = mock_exec.await_args.args
    assert args[:4] == ("git", "-c", "core.quotePath=false", "diff")
    assert "main...HEAD" in args
    assert args[-3:] == ("--", ".", ":(exclude)*.example")


@pytest.mark.asyncio
async def test_diff_against_index_uses_merge_base(tmp_path: Path) -> None:
    mock_exec = AsyncMock(side_effect=[_process("abc123\n"), _process("staged diff")])
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        result = await AsyncRepo(tmp_path).diff("main", None)

    assert result == Ok("staged diff")
    first, second = (call.args for call in mock_exec.await_args_list)
    assert first[:4] == ("git", "merge-base", "main", "HEAD")
    assert "--cached" in second
    assert "abc123" in second


@pytest.mark.asyncio
async def test_failed_command_returns_err(tmp_path: Path) -> None:
    mock_exec = AsyncMock(return_value=_process(stderr="fatal: bad revision", returncode=128))
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        result = await AsyncRepo(tmp_path).staged_paths()

    assert isinstance(result, Err)
    assert isinstance(result.error, GitError)
    assert result.error.message == "fatal: bad revision"
    assert result.error.context["returncode"] == 128


@pytest.mark.asyncio
async def test_missing_git_binary(tmp_path: Path) -> None:
    mock_exec = AsyncMock(side_effect=FileNotFoundError("git"))
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        result = await AsyncRepo(tmp_path).head()

    assert isinstance(result, Err)
    assert "not found" in result.error.message


@pytest.mark.asyncio
async def test_staged_paths_parses_names(tmp_path: Path) -> None:
    mock_exec = AsyncMock(return_value=_process(".env\nsrc/app.py\n\n"))
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        result = await AsyncRepo(tmp_path).staged_paths()

    assert result == Ok([".env", "src/app.py"])


@pytest.mark.asyncio
async def test_detached_head_is_an_error(tmp_path: Path) -> None:
    mock_exec = AsyncMock(return_value=_process("\n"))
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        result = await AsyncRepo(tmp_path).current_branch()

    assert isinstance(result, Err)
    assert "detached" in result.error.message


@pytest.mark.asyncio
async def test_push_sets_upstream(tmp_path: Path) -> None:
    mock_exec = AsyncMock(return_value=_process())
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        result = await AsyncRepo(tmp_path).push("origin")

    assert result == Ok(None)
    assert mock_exec.await_args.args == ("git", "push", "--set-upstream", "origin", "HEAD")


@pytest.mark.asyncio
async def test_nonexistent_path(tmp_path: Path) -> None:
    result = await AsyncRepo(tmp_path / "missing").head()
    assert isinstance(result, Err)


@pytest.mark.parametrize(
    ("token", "expected"),
    [
        ("plain/path.py", "plain/path.py"),
        ('"caf\\303\\251.py"', "café.py"),
        ('"b/tab\\there.txt"', "b/tab\there.txt"),
        ('"quote\\"d.txt"', 'quote"d.txt'),
        ('"back\\\\slash"', "back\\slash"),
    ],
)
def test_unquote_path(token: str, expected: str) -> None:
    assert unquote_path(token) == expected


@pytest.mark.asyncio
async def test_staged_paths_unquotes_and_can_skip_deletions(tmp_path: Path) -> None:
    mock_exec = AsyncMock(return_value=_process('"caf\\303\\251.py"\nsrc/app.py\n'))
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        result = await AsyncRepo(tmp_path).staged_paths(include_deleted=False)

    assert result == Ok(["café.py", "src/app.py"])
    args = mock_exec.await_args.args
    assert args[1:3] == ("-c", "core.quotePath=false")
    assert args[-1] == "--diff-filter=d"


@pytest.mark.asyncio
async def test_staged_paths_includes_deletions_by_default(tmp_path: Path) -> None:
    mock_exec = AsyncMock(return_value=_process(".env\n"))
    with patch.object(client.asyncio, "create_subprocess_exec", mock_exec):
        await AsyncRepo(tmp_path).staged_paths()

    assert "--diff-filter=d" not in mock_exec.await_args.args
