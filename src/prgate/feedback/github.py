"""GitHub collaborators backed by the ``gh`` CLI.

- GhCommentSource: inline review comments plus conversation comments on a PR
- GhPublisher: stage, gate, commit, push, then make sure a PR exists

``gh`` resolves ``{owner}/{repo}`` in API paths from the current checkout, so
both collaborators run inside the repository root.
"""

from __future__ import annotations

import asyncio
import json
import re
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError

from prgate.core.console import get_logger
from prgate.core.result import (
    CommentSourceError,
    ConfigurationError,
    Err,
    Ok,
    PRGateError,
    PublishError,
    Result,
)
from prgate.feedback.types import PublishResult, ReviewComment
from prgate.git.client import AsyncRepo
from prgate.security.gate import SecurityGate

logger = get_logger(__name__)

_PR_NUMBER = re.compile(r"/pull/(\d+)")


class GhUser(BaseModel):
    model_config = ConfigDict(extra="ignore")

    login: str


class GhComment(BaseModel):
    """Subset of the REST comment payload shared by review and issue comments."""

    model_config = ConfigDict(extra="ignore")

    id: int
    user: GhUser | None = None
    body: str = ""
    path: str | None = None
    line: int | None = None
    original_line: int | None = None
    created_at: str = ""
    html_url: str = ""

    def to_review_comment(self, kind: str) -> ReviewComment:
        return ReviewComment(
            id=f"{kind}-{self.id}",
            author=self.user.login if self.user else "ghost",
            body=self.body,
            path=self.path,
            line=self.line if self.line is not None else self.original_line,
            timestamp=self.created_at,
            url=self.html_url,
        )


class GhPullRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    number: int
    url: str


async def _run_gh(
    binary: str,
    cwd: Path,
    *args: str,
    error_cls: type[PRGateError] = PRGateError,
) -> Result[str, PRGateError]:
    try:
        proc = await asyncio.create_subprocess_exec(
            binary,
            *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            stdin=asyncio.subprocess.DEVNULL,
            cwd=cwd,
        )
    except FileNotFoundError:
        return Err(ConfigurationError("GitHub CLI (gh) is required.", context={"binary": binary}))

    stdout, stderr = await proc.communicate()
    if proc.returncode != 0:
        error_text = stderr.decode("utf-8", errors="replace").strip() or stdout.decode(
            "utf-8", errors="replace"
        ).strip()
        return Err(
            error_cls(
                error_text or f"{binary} {' '.join(args)} failed",
                context={"returncode": proc.returncode},
            )
        )
    return Ok(stdout.decode("utf-8", errors="replace"))


def parse_comments(raw: str, kind: str) -> list[ReviewComment]:
    """Parse a REST comment listing into ReviewComment records.

    Accepts a single page (a list of comments) or the list of pages that
    ``gh api --paginate --slurp`` prints.
    """
    try:
        data = json.loads(raw or "[]")
    except json.JSONDecodeError as exc:
        raise CommentSourceError(f"gh returned invalid JSON: {exc}", context={"kind": kind}) from exc
    if not isinstance(data, list):
        raise CommentSourceError("Expected a JSON list of comments", context={"kind": kind})
    if all(isinstance(page, list) for page in data):
        data = [item for page in data for item in page]
    try:
        return [GhComment.model_validate(item).to_review_comment(kind) for item in data]
    except ValidationError as exc:
        raise CommentSourceError(f"Unexpected comment payload: {exc}", context={"kind": kind}) from exc


async def ensure_gh_ready(binary: str = "gh", cwd: Path | None = None) -> None:
    """Raise ConfigurationError unless ``gh`` is installed and logged in."""
    match await _run_gh(binary, cwd or Path.cwd(), "auth", "status", error_cls=ConfigurationError):
        case Ok(_):
            return
        case Err(ConfigurationError() as err):
            raise err
        case Err(err):
            raise ConfigurationError(f"gh is not authenticated: {err.message}") from err


class GhCommentSource:
    """Comment source for one GitHub repository checkout."""

    def __init__(self, repo_path: Path, gh_binary: str = "gh") -> None:
        self.repo_path = repo_path
        self.gh_binary = gh_binary

    async def _listing(self, endpoint: str, kind: str) -> list[ReviewComment]:
        raw = (
            await _run_gh(
                self.gh_binary,
                self.repo_path,
                "api",
                "--paginate",
                "--slurp",
                f"{endpoint}?per_page=100",
                error_cls=CommentSourceError,
            )
        ).unwrap()
        return parse_comments(raw, kind)

    async def fetch(self, change_id: str) -> list[ReviewComment]:
        review = await self._listing(f"repos/{{owner}}/{{repo}}/pulls/{change_id}/comments", "review")
        issue = await self._listing(f"repos/{{owner}}/{{repo}}/issues/{change_id}/comments", "issue")
        return sorted(review + issue, key=lambda c: c.timestamp)


class GhPublisher:
    """Publish operation: the gate runs on the staged content before every commit.

    Push and PR failures raise :class:`PublishError` and are never retried.
    """

    def __init__(
        self,
        repo: AsyncRepo,
        gate: SecurityGate,
        *,
        base_ref: str = "main",
        remote: str = "origin",
        gh_binary: str = "gh",
        draft: bool = False,
    ) -> None:
        self.repo = repo
        self.gate = gate
        self.base_ref = base_ref
        self.remote = remote
        self.gh_binary = gh_binary
        self.draft = draft

    async def _gh(self, *args: str) -> Result[str, PRGateError]:
        return await _run_gh(self.gh_binary, self.repo.path, *args, error_cls=PublishError)

    async def find_pull_request(self) -> GhPullRequest | None:
        match await self._gh("pr", "view", "--json", "number,url"):
            case Ok(raw):
                try:
                    return GhPullRequest.model_validate_json(raw)
                except ValidationError as exc:
                    raise PublishError(f"Unexpected gh pr view output: {exc}") from exc
            case Err(ConfigurationError() as err):
                raise err
            case Err(err):
                # gh exits non-zero when the branch has no pull request
                logger.debug("No pull request for current branch: %s", err.message)
                return None

    async def create_pull_request(self) -> GhPullRequest:
        args = ["pr", "create", "--base", self.base_ref, "--fill"]
        if self.draft:
            args.append("--draft")
        output = (await self._gh(*args)).unwrap().strip()
        # gh prints the new PR URL as the last line
        url = output.splitlines()[-1] if output else ""
        number = _PR_NUMBER.search(url)
        if number is None:
            raise PublishError("Could not determine pull request number", context={"output": output})
        return GhPullRequest(number=int(number.group(1)), url=url)

    async def publish(self, message: str) -> PublishResult:
        (await self.repo.add(all=True)).unwrap()
        await self.gate.enforce(self.base_ref, head_ref=None)

        staged = (await self.repo.staged_paths()).unwrap()
        if staged:
            commit = (await self.repo.commit(message)).unwrap()
            logger.info("Committed %d file(s) as %s", len(staged), commit[:12])
        else:
            commit = (await self.repo.head(short=False)).unwrap()
            logger.info("Nothing staged; publishing existing HEAD %s", commit[:12])

        match await self.repo.push(self.remote, set_upstream=True):
            case Err(err):
                raise PublishError(f"git push failed: {err.message}", context={"remote": self.remote}) from err
            case Ok(_):
                pass

        pr = await self.find_pull_request()
        created = pr is None
        if pr is None:
            pr = await self.create_pull_request()
            logger.info("Opened pull request #%d: %s", pr.number, pr.url)

        return PublishResult(change_id=str(pr.number), url=pr.url, commit=commit, created=created)


__all__ = [
    "GhComment",
    "GhCommentSource",
    "GhPublisher",
    "GhPullRequest",
    "ensure_gh_ready",
    "parse_comments",
]
