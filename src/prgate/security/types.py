"""Types and data structures for the pre-publish security gate."""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum


class FindingKind(Enum):
    """What produced a finding."""

    SECRET = "secret"  # Pattern Registry match
    HARDCODED_CREDENTIAL = "hardcoded_credential"  # assignment-shaped heuristic
    ENV_FILE = "env_file"  # environment file staged for commit


@dataclass(frozen=True)
class SecretPattern:
    """A named secret signature. Pure data: adding one touches no scanning logic."""

    label: str
    expression: re.Pattern[str]

    @classmethod
    def compile(cls, label: str, regex: str, flags: int = 0) -> SecretPattern:
        return cls(label=label, expression=re.compile(regex, flags))


@dataclass(frozen=True)
class ScanFinding:
    """A single reported violation.

    ``excerpt`` is already redacted; the raw secret never leaves the scanner.
    """

    pattern_label: str
    excerpt: str
    kind: FindingKind
    file: str | None = None
    line: int | None = None
    context: str = ""

    @property
    def location(self) -> str:
        if self.file is None:
            return "(unknown)"
        return f"{self.file}:{self.line}" if self.line is not None else self.file


@dataclass(frozen=True)
class GateVerdict:
    """Outcome of one gate (or sub-check) evaluation.

    ``passed`` is derived from ``findings`` so a passing verdict can never
    carry findings.
    """

    findings: tuple[ScanFinding, ...] = field(default_factory=tuple)

    @property
    def passed(self) -> bool:
        return not self.findings

    @classmethod
    def from_findings(cls, findings: Iterable[ScanFinding]) -> GateVerdict:
        return cls(findings=tuple(findings))

    def merge(self, other: GateVerdict) -> GateVerdict:
        return GateVerdict(findings=self.findings + other.findings)

    def by_kind(self, kind: FindingKind) -> tuple[ScanFinding, ...]:
        return tuple(f for f in self.findings if f.kind is kind)


def redact(value: str, keep: int = 4) -> str:
    """Mask all but the first ``keep`` characters of a matched secret."""
    if len(value) <= keep:
        return "*" * len(value)
    return value[:keep] + "*" * min(len(value) - keep, 16)


def redact_line(text: str, secrets: Iterable[str]) -> str:
    """Return ``text`` stripped, with every occurrence of every secret masked."""
    unique = sorted({s for s in secrets if s}, key=len, reverse=True)
    if not unique:
        return text.strip()
    combined = re.compile("|".join(re.escape(s) for s in unique))
    return combined.sub(lambda m: redact(m.group(0)), text).strip()


__all__ = [
    "FindingKind",
    "GateVerdict",
    "ScanFinding",
    "SecretPattern",
    "redact",
    "redact_line",
]
