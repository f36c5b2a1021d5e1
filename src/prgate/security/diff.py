"""Diff Extractor: the change set between two revisions, minus excluded paths.

Exclusions exist so files whose whole purpose is holding example or
placeholder secrets (``.env.example``, ``*.sample``) are never scanned.
They are applied twice: as git ``:(exclude)`` pathspecs when the diff is
produced, and again on the parsed file sections, so a diff obtained from any
source obeys the same rules.
"""

from __future__ import annotations

import fnmatch
import re
from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from pathlib import PurePosixPath

from prgate.core.console import get_logger
from prgate.core.result import Err, GitError, Ok, Result
from prgate.git.client import AsyncRepo, unquote_path

logger = get_logger(__name__)

_HUNK_HEADER = re.compile(r"^@@ -\d+(?:,\d+)? \+(\d+)(?:,\d+)? @@")
_QUOTED = r'"(?:[^"\\]|\\.)*"'
_DIFF_HEADER = re.compile(rf"^diff --git (?:{_QUOTED}|a/.+?) (?P<new>{_QUOTED}|b/.+)$")


@dataclass(frozen=True)
class FileDiff:
    """The slice of a unified diff that belongs to one file."""

    path: str
    text: str


@dataclass(frozen=True)
class AddedLine:
    """One added line of a diff with its new-side position."""

    path: str
    line: int
    text: str


def is_excluded(path: str, exclusions: Sequence[str]) -> bool:
    """Return True when ``path`` or its basename matches any exclusion glob."""
    name = PurePosixPath(path).name
    return any(
        fnmatch.fnmatch(path, pattern) or fnmatch.fnmatch(name, pattern) for pattern in exclusions
    )


def _strip_prefix(path: str) -> str:
    return path[2:] if path.startswith(("a/", "b/")) else path


def _path_from_marker(line: str) -> str | None:
    target = unquote_path(line[4:].strip())
    if target == "/dev/null":
        return None
    return _strip_prefix(target)


def split_file_sections(diff_text: str) -> list[FileDiff]:
    """Split a multi-file unified diff into per-file sections.

    Handles both ``git diff`` output (``diff --git`` headers) and plain
    ``---``/``+++`` diffs.
    """
    sections: list[FileDiff] = []
    current_path: str | None = None
    current_lines: list[str] = []
    in_header = False
    git_mode = False

    def flush() -> None:
        if current_lines:
            sections.append(FileDiff(path=current_path or "", text="\n".join(current_lines)))

    lines = diff_text.splitlines()
    for index, line in enumerate(lines):
        header = _DIFF_HEADER.match(line)
        if header:
            flush()
            current_lines = [line]
            current_path = _strip_prefix(unquote_path(header.group("new")))
            in_header = True
            git_mode = True
            continue

        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        is_file_marker = line.startswith("--- ") and next_line.startswith("+++ ")
        if is_file_marker and (in_header or not git_mode):
            if not in_header and current_lines:
                # Plain diffs have no "diff --git" line; a new ---/+++ pair starts a file.
                flush()
                current_lines = []
            in_header = True
            current_path = _path_from_marker(next_line) or _path_from_marker(line)
        elif line.startswith("@@"):
            in_header = False

        current_lines.append(line)

    flush()
    return sections


def filter_excluded(diff_text: str, exclusions: Sequence[str]) -> str:
    """Drop every file section whose path matches an exclusion."""
    if not exclusions:
        return diff_text
    kept: list[str] = []
    for section in split_file_sections(diff_text):
        if section.path and is_excluded(section.path, exclusions):
            logger.debug("Excluding %s from scan", section.path)
            continue
        kept.append(section.text)
    return "\n".join(kept)


def iter_added_lines(diff_text: str) -> Iterator[AddedLine]:
    """Yield added lines only; context and removed lines never reach a scanner."""
    for section in split_file_sections(diff_text):
        current_line = 0
        in_hunk = False
        for line in section.text.splitlines():
            hunk = _HUNK_HEADER.match(line)
            if hunk:
                current_line = int(hunk.group(1))
                in_hunk = True
                continue
            if not in_hunk:
                continue
            if line.startswith("+"):
                yield AddedLine(path=section.path, line=current_line, text=line[1:])
                current_line += 1
            elif line.startswith("-"):
                # Removed line: does not advance the new-side counter
                continue
            elif line.startswith("\\"):
                # "\ No newline at end of file"
                continue
            else:
                current_line += 1


class DiffExtractor:
    """Produces the scannable diff between two references."""

    def __init__(self, repo: AsyncRepo) -> None:
        self._repo = repo

    async def extract(
        self,
        base_ref: str,
        head_ref: str | None = "HEAD",
        exclusions: Sequence[str] = (),
    ) -> Result[str, GitError]:
        """Return diff text for ``base_ref...head_ref`` (or the index when ``head_ref`` is None)."""
        match await self._repo.diff(base_ref, head_ref, exclusions):
            case Err(err):
                return Err(err)
            case Ok(raw):
                return Ok(filter_excluded(raw, exclusions))


__all__ = [
    "AddedLine",
    "DiffExtractor",
    "FileDiff",
    "filter_excluded",
    "is_excluded",
    "iter_added_lines",
    "split_file_sections",
]
