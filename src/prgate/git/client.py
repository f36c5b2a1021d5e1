from __future__ import annotations

import asyncio
from collections.abc import Sequence
from pathlib import Path

from prgate.core.result import Err, GitError, Ok, Result


# Keep non-ASCII paths literal in diff headers and name listings
_LITERAL_PATHS = ("-c", "core.quotePath=false")

_C_ESCAPES = {"a": 7, "b": 8, "t": 9, "n": 10, "v": 11, "f": 12, "r": 13, '"': 34, "\\": 92}
_OCTAL = frozenset("01234567")


def exclusion_pathspecs(exclusions: Sequence[str]) -> list[str]:
    """Translate exclusion globs into git ``:(exclude)`` pathspecs."""
    return [f":(exclude){pattern}" for pattern in exclusions]


def unquote_path(token: str) -> str:
    """Undo git's C-style path quoting, e.g. ``"caf\\303\\251.py"`` -> ``café.py``.

    Unquoted tokens are returned unchanged.
    """
    if len(token) < 2 or not (token.startswith('"') and token.endswith('"')):
        return token
    body = token[1:-1]
    raw = bytearray()
    index = 0
    while index < len(body):
        char = body[index]
        if char != "\\":
            raw.extend(char.encode("utf-8"))
            index += 1
            continue
        escape = body[index + 1 : index + 2]
        octal = body[index + 1 : index + 4]
        if escape in _C_ESCAPES:
            raw.append(_C_ESCAPES[escape])
            index += 2
        elif len(octal) == 3 and set(octal) <= _OCTAL:
            raw.append(int(octal, 8) & 0xFF)
            index += 4
        else:
            raw.append(92)
            index += 1
    return raw.decode("utf-8", errors="replace")


async def _run_git(cwd: Path, *args: str) -> Result[str, GitError]:
    """Run git with asyncio and return stdout as text, wrapping failures."""
    if not cwd.exists():
        return Err(GitError("Repository path does not exist", context={"cwd": str(cwd)}))

    try:
        process = await asyncio.create_subprocess_exec(
            "git",
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            cwd=cwd,
        )
    except FileNotFoundError:
        return Err(GitError("git executable not found on PATH", context={"cwd": str(cwd)}))
    except OSError as exc:
        return Err(
            GitError(
                "Failed to start git",
                context={"cwd": str(cwd), "args": list(args), "error": str(exc)},
            )
        )

    stdout, stderr = await process.communicate()
    if process.returncode != 0:
        message = stderr.decode("utf-8", errors="replace").strip()
        stdout_text = stdout.decode("utf-8", errors="replace").strip()
        detail = message or stdout_text or f"git {' '.join(args)} failed"
        return Err(
            GitError(
                detail,
                context={"cwd": str(cwd), "args": list(args), "returncode": process.returncode},
            )
        )

    return Ok(stdout.decode("utf-8", errors="replace"))


def _parse_name_list(output: str) -> list[str]:
    return [unquote_path(line.strip()) for line in output.splitlines() if line.strip()]


def _parse_status_short(output: str) -> list[tuple[str, str]]:
    entries: list[tuple[str, str]] = []
    for line in output.splitlines():
        if not line:
            continue
        status_code = line[:2].strip()
        path = line[3:] if len(line) > 3 else ""
        # Renames are reported as "old -> new"
        entries.append((status_code, unquote_path(path.split(" -> ", 1)[-1])))
    return entries


async def _resolve_worktree(path: Path) -> Result[Path, GitError]:
    match await _run_git(path, "rev-parse", "--show-toplevel"):
        case Ok(raw):
            return Ok(Path(raw.strip()).resolve())
        case Err(err):
            return Err(err)


class AsyncRepo:
    """Async git wrapper providing the version-control queries prgate needs.

    All methods return ``Result`` values; nothing here raises for a failed
    git invocation.
    """

    def __init__(self, root: Path) -> None:
        self._root = root

    @property
    def path(self) -> Path:
        return self._root

    @classmethod
    async def open(cls, path: Path | str = ".") -> Result[AsyncRepo, GitError]:
        root = Path(path).expanduser()
        match await _resolve_worktree(root):
            case Ok(resolved_root):
                return Ok(cls(resolved_root))
            case Err(err):
                return Err(err)

    async def merge_base(self, base_ref: str, head_ref: str = "HEAD") -> Result[str, GitError]:
        match await _run_git(self._root, "merge-base", base_ref, head_ref):
            case Ok(output):
                return Ok(output.strip())
            case Err(err):
                return Err(err)

    async def diff(
        self,
        base_ref: str,
        head_ref: str | None = "HEAD",
        exclusions: Sequence[str] = (),
    ) -> Result[str, GitError]:
        """Return the unified diff from the merge base of ``base_ref`` to ``head_ref``.

        ``head_ref=None`` diffs against the index instead of a commit, so staged
        but uncommitted content is included.
        """
        pathspecs = ["--", ".", *exclusion_pathspecs(exclusions)]
        if head_ref is not None:
            return await _run_git(
                self._root,
                *_LITERAL_PATHS,
                "diff",
                "--no-color",
                "--no-ext-diff",
                f"{base_ref}...{head_ref}",
                *pathspecs,
            )

        match await self.merge_base(base_ref):
            case Err(err):
                return Err(err)
            case Ok(base_sha):
                pass
        return await _run_git(
            self._root, *_LITERAL_PATHS, "diff", "--no-color", "--no-ext-diff", "--cached", base_sha, *pathspecs
        )

    async def staged_paths(self, *, include_deleted: bool = True) -> Result[list[str], GitError]:
        """Paths in the index that differ from HEAD, optionally without staged deletions."""
        args = [*_LITERAL_PATHS, "diff", "--cached", "--name-only"]
        if not include_deleted:
            args.append("--diff-filter=d")
        match await _run_git(self._root, *args):
            case Ok(output):
                return Ok(_parse_name_list(output))
            case Err(err):
                return Err(err)

    async def status_short(self) -> Result[list[tuple[str, str]], GitError]:
        """Return short status entries as (status_code, path)."""
        match await _run_git(self._root, *_LITERAL_PATHS, "status", "--porcelain", "--untracked-files=all"):
            case Ok(output):
                return Ok(_parse_status_short(output))
            case Err(err):
                return Err(err)

    async def add(
        self, *, all: bool = False, paths: Sequence[Path] | None = None
    ) -> Result[None, GitError]:
        args: list[str] = ["add"]
        if all:
            args.append("--all")
        elif paths:
            args.extend(str(path) for path in paths)
        else:
            return Ok(None)
        result = await _run_git(self._root, *args)
        return result.map(lambda _: None)

    async def commit(self, message: str) -> Result[str, GitError]:
        match await _run_git(self._root, "commit", "-m", message):
            case Err(err):
                return Err(err)
            case Ok(_):
                pass

        return await self.head(short=False)

    async def head(self, short: bool = True) -> Result[str, GitError]:
        args = ["rev-parse", "--short", "HEAD"] if short else ["rev-parse", "HEAD"]
        match await _run_git(self._root, *args):
            case Ok(output):
                return Ok(output.strip())
            case Err(err):
                return Err(err)

    async def current_branch(self) -> Result[str, GitError]:
        match await _run_git(self._root, "branch", "--show-current"):
            case Ok(output):
                branch = output.strip()
                if not branch:
                    return Err(GitError("HEAD is detached", context={"cwd": str(self._root)}))
                return Ok(branch)
            case Err(err):
                return Err(err)

    async def push(self, remote: str = "origin", *, set_upstream: bool = True) -> Result[None, GitError]:
        args = ["push"]
        if set_upstream:
            args.append("--set-upstream")
        args.extend([remote, "HEAD"])
        result = await _run_git(self._root, *args)
        return result.map(lambda _: None)
