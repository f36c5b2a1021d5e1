"""External fix applier.

Writes an iteration's new comments to ``<feedback_dir>/iteration-<n>.json``
and ``.md``, then runs the configured fix command with
``PRGATE_FEEDBACK_FILE`` and ``PRGATE_ITERATION`` in its environment. File
changes are detected by fingerprinting dirty paths before and after the
command; the feedback directory itself never counts as a change.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import os
import shlex
from collections.abc import Mapping, Sequence
from pathlib import Path

from prgate.core.console import get_logger
from prgate.core.result import ConfigurationError
from prgate.feedback.classifier import by_priority
from prgate.feedback.types import Classification, FixOutcome, ReviewComment
from prgate.git.client import AsyncRepo

logger = get_logger(__name__)

_SECTION_TITLES = {
    Classification.BLOCKING: "Blocking",
    Classification.SUGGESTION: "Suggestions",
    Classification.OTHER: "Other",
}


def render_feedback_markdown(
    iteration: int,
    comments: Sequence[ReviewComment],
    classifications: Mapping[str, Classification],
) -> str:
    lines = [f"# Review feedback: iteration {iteration}", ""]
    for kind, title in _SECTION_TITLES.items():
        group = [c for c in comments if classifications.get(c.id, Classification.OTHER) is kind]
        if not group:
            continue
        lines.append(f"## {title} ({len(group)})")
        lines.append("")
        for comment in group:
            where = f"{comment.path}:{comment.line}" if comment.location else (comment.path or "general")
            lines.append(f"- **{where}** ({comment.author})")
            for body_line in comment.body.strip().splitlines() or [""]:
                lines.append(f"  {body_line}")
            if comment.url:
                lines.append(f"  <{comment.url}>")
        lines.append("")
    return "\n".join(lines)


def feedback_payload(
    iteration: int,
    comments: Sequence[ReviewComment],
    classifications: Mapping[str, Classification],
) -> dict[str, object]:
    return {
        "iteration": iteration,
        "comments": [
            {
                "id": c.id,
                "author": c.author,
                "path": c.path,
                "line": c.line,
                "body": c.body,
                "timestamp": c.timestamp,
                "url": c.url,
                "classification": classifications.get(c.id, Classification.OTHER).value,
            }
            for c in comments
        ],
    }


def _fingerprint(root: Path, paths: Sequence[str]) -> dict[str, str | None]:
    prints: dict[str, str | None] = {}
    for rel in paths:
        target = root / rel
        if target.is_file():
            prints[rel] = hashlib.sha256(target.read_bytes()).hexdigest()
        else:
            prints[rel] = None
    return prints


class CommandFixApplier:
    """Delegates edits to an external command; without one it only writes the artifacts."""

    def __init__(
        self,
        repo: AsyncRepo,
        feedback_dir: Path = Path(".prgate/feedback"),
        command: str | None = None,
    ) -> None:
        self.repo = repo
        self.feedback_dir = feedback_dir if feedback_dir.is_absolute() else repo.path / feedback_dir
        self.command = command

    def _is_artifact(self, rel_path: str) -> bool:
        try:
            (self.repo.path / rel_path).resolve().relative_to(self.feedback_dir.resolve())
        except ValueError:
            return False
        return True

    async def _dirty_paths(self) -> list[str]:
        entries = (await self.repo.status_short()).unwrap()
        return [path for _, path in entries if not self._is_artifact(path)]

    def write_artifacts(
        self,
        iteration: int,
        comments: Sequence[ReviewComment],
        classifications: Mapping[str, Classification],
    ) -> Path:
        self.feedback_dir.mkdir(parents=True, exist_ok=True)
        ordered = by_priority(comments, dict(classifications))
        json_path = self.feedback_dir / f"iteration-{iteration}.json"
        json_path.write_text(
            json.dumps(feedback_payload(iteration, ordered, classifications), indent=2) + "\n",
            encoding="utf-8",
        )
        (self.feedback_dir / f"iteration-{iteration}.md").write_text(
            render_feedback_markdown(iteration, ordered, classifications), encoding="utf-8"
        )
        return json_path

    async def _run_command(self, command: str, feedback_file: Path, iteration: int) -> int:
        argv = shlex.split(command)
        if not argv:
            raise ConfigurationError("fix_command is empty")
        env = {
            **os.environ,
            "PRGATE_FEEDBACK_FILE": str(feedback_file),
            "PRGATE_ITERATION": str(iteration),
        }
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                cwd=self.repo.path,
                env=env,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as exc:
            raise ConfigurationError(
                "Fix command not found", context={"command": argv[0]}
            ) from exc
        return await proc.wait()

    async def apply(
        self,
        iteration: int,
        comments: Sequence[ReviewComment],
        classifications: Mapping[str, Classification],
    ) -> FixOutcome:
        feedback_file = self.write_artifacts(iteration, comments, classifications)
        logger.info("Wrote %d comment(s) to %s", len(comments), feedback_file)

        if self.command is None:
            logger.warning("No fix command configured; address %s manually", feedback_file)
            return FixOutcome(feedback_file=feedback_file)

        before_paths = await self._dirty_paths()
        before = _fingerprint(self.repo.path, before_paths)

        returncode = await self._run_command(self.command, feedback_file, iteration)
        if returncode != 0:
            logger.warning("Fix command exited with %d", returncode)

        after_paths = await self._dirty_paths()
        after = _fingerprint(self.repo.path, sorted(set(before_paths) | set(after_paths)))
        changed = tuple(path for path in after if after[path] != before.get(path, "<clean>"))
        logger.info("Fix command changed %d file(s)", len(changed))
        return FixOutcome(files_changed=changed, feedback_file=feedback_file)


__all__ = [
    "CommandFixApplier",
    "feedback_payload",
    "render_feedback_markdown",
]
