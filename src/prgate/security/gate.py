"""Security Gate: the single pass/fail check that precedes every publish.

Composition, in fixed order:

1. Ignore-List Auditor (side effect only, never blocks)
2. Staged environment-file check (blocks on its own; the scanners are skipped)
3. Secret Scanner
4. Credential Heuristic Detector

Both scanners always run, so one verdict carries every finding.

Precondition: the caller has exclusive use of the pending change set. If
anything alters staged content between ``run()`` and the subsequent publish,
the verdict is stale. prgate is a single local actor and does no locking.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import PurePosixPath

from prgate.core.config import GateConfig
from prgate.core.console import get_logger
from prgate.core.result import GateBlocked
from prgate.git.client import AsyncRepo
from prgate.security.credentials import CredentialHeuristicDetector
from prgate.security.diff import DiffExtractor, is_excluded
from prgate.security.ignore_file import ensure_ignore_patterns
from prgate.security.patterns import PatternRegistry
from prgate.security.secret_scanner import SecretScanner
from prgate.security.types import FindingKind, GateVerdict, ScanFinding

logger = get_logger(__name__)

ENV_FILE_LABEL = "Environment file staged"


def is_env_file(path: str, exclusions: Sequence[str] = ()) -> bool:
    """True for ``.env`` / ``.env.*`` basenames that are not excluded templates."""
    name = PurePosixPath(path).name
    if name != ".env" and not name.startswith(".env."):
        return False
    return not is_excluded(path, exclusions)


def check_env_files(staged_paths: Sequence[str], exclusions: Sequence[str] = ()) -> GateVerdict:
    return GateVerdict.from_findings(
        ScanFinding(
            pattern_label=ENV_FILE_LABEL,
            excerpt=path,
            kind=FindingKind.ENV_FILE,
            file=path,
        )
        for path in staged_paths
        if is_env_file(path, exclusions)
    )


class SecurityGate:
    """Runs the full pre-publish check against one repository."""

    def __init__(
        self,
        repo: AsyncRepo,
        config: GateConfig | None = None,
        *,
        registry: PatternRegistry | None = None,
    ) -> None:
        self.repo = repo
        self.config = config or GateConfig()
        self.extractor = DiffExtractor(repo)
        self.secret_scanner = SecretScanner(registry)
        self.credential_detector = CredentialHeuristicDetector(
            min_length=self.config.credential_min_length,
            suppression_markers=self.config.suppression_markers,
            registry=self.secret_scanner.registry,
        )

    async def run(self, base_ref: str | None = None, head_ref: str | None = "HEAD") -> GateVerdict:
        """Evaluate the change between ``base_ref`` and ``head_ref``.

        ``head_ref=None`` scans the index, i.e. what the next commit will contain.
        Git failures raise :class:`~prgate.core.result.GitError`.
        """
        base = base_ref or self.config.base_ref
        exclusions = self.config.exclusions

        ignore_path = self.config.ignore_file
        if not ignore_path.is_absolute():
            ignore_path = self.repo.path / ignore_path
        ensure_ignore_patterns(self.config.required_ignores, ignore_path)

        staged = (await self.repo.staged_paths(include_deleted=False)).unwrap()
        env_verdict = check_env_files(staged, exclusions)
        if not env_verdict.passed:
            logger.error("Environment file(s) staged: %s", ", ".join(f.excerpt for f in env_verdict.findings))
            return env_verdict

        diff_text = (await self.extractor.extract(base, head_ref, exclusions)).unwrap()
        verdict = self.secret_scanner.scan(diff_text).merge(self.credential_detector.scan(diff_text))

        target = head_ref or "index"
        if verdict.passed:
            logger.info("Security gate passed for %s...%s", base, target)
        else:
            logger.error(
                "Security gate blocked %s...%s with %d finding(s)", base, target, len(verdict.findings)
            )
        return verdict

    async def enforce(self, base_ref: str | None = None, head_ref: str | None = "HEAD") -> GateVerdict:
        """Run the gate and raise :class:`GateBlocked` unless it passes."""
        verdict = await self.run(base_ref, head_ref)
        if not verdict.passed:
            raise GateBlocked(verdict)
        return verdict


__all__ = [
    "ENV_FILE_LABEL",
    "SecurityGate",
    "check_env_files",
    "is_env_file",
]
