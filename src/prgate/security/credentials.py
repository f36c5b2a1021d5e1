"""Credential Heuristic Detector.

A looser, assignment-shaped check (``api_key = "long-opaque-value"``) run over
the same added diff lines as the Secret Scanner. Matches are discarded when
the line carries a suppression marker such as ``example``, ``your_`` or a
template placeholder.
"""

from __future__ import annotations

import re
from collections.abc import Sequence

from prgate.core.console import get_logger
from prgate.security.diff import iter_added_lines
from prgate.security.patterns import PatternRegistry
from prgate.security.types import FindingKind, GateVerdict, ScanFinding, redact, redact_line

logger = get_logger(__name__)

CREDENTIAL_LABEL = "Hardcoded credential"
# Identifier characters allowed on each side of a key stem
NAME_AFFIX_LIMIT = 64
DEFAULT_KEY_STEMS: tuple[str, ...] = (
    r"api[_-]?key",
    "key",
    "secret",
    r"passw(?:or)?d",
    "token",
    "auth",
    "credential",
)
DEFAULT_SUPPRESSION_MARKERS: tuple[str, ...] = (
    "example",
    "placeholder",
    "your_",
    "dummy",
    "changeme",
    "${",
    "{{",
)


def build_credential_pattern(min_length: int, stems: Sequence[str] = DEFAULT_KEY_STEMS) -> re.Pattern[str]:
    """Compile the assignment heuristic for values of at least ``min_length`` characters."""
    alternatives = "|".join(stems)
    return re.compile(
        rf"""(?ix)
        (?<![a-z0-9_\-])
        (?P<name>[a-z0-9_\-]{{0,{NAME_AFFIX_LIMIT}}}(?:{alternatives})[a-z0-9_\-]{{0,{NAME_AFFIX_LIMIT}}})
        ["'\s]*[:=]\s*["']?
        (?P<value>[a-z0-9_\-]{{{min_length},}})
        (?=["'\s,;]|$)
        """
    )


class CredentialHeuristicDetector:
    """Broad assignment match, then suppression by marker."""

    def __init__(
        self,
        min_length: int = 20,
        suppression_markers: Sequence[str] = DEFAULT_SUPPRESSION_MARKERS,
        registry: PatternRegistry | None = None,
    ) -> None:
        self.min_length = min_length
        self.suppression_markers = tuple(marker.lower() for marker in suppression_markers)
        self._pattern = build_credential_pattern(min_length)
        # context lines also mask any signature match sharing the line
        self.registry = registry or PatternRegistry.default()

    def is_suppressed(self, line: str) -> bool:
        lowered = line.lower()
        return any(marker in lowered for marker in self.suppression_markers)

    def scan(self, diff_text: str) -> GateVerdict:
        findings: list[ScanFinding] = []
        suppressed = 0

        for added in iter_added_lines(diff_text):
            matches = list(self._pattern.finditer(added.text))
            if not matches:
                continue
            if self.is_suppressed(added.text):
                suppressed += len(matches)
                continue
            secrets = [m.group("value") for m in matches]
            secrets.extend(matched for _, matched in self.registry.match_all(added.text))
            context = redact_line(added.text, secrets)
            for match in matches:
                value = match.group("value")
                findings.append(
                    ScanFinding(
                        pattern_label=CREDENTIAL_LABEL,
                        excerpt=f"{match.group('name')}={redact(value)}",
                        kind=FindingKind.HARDCODED_CREDENTIAL,
                        file=added.path,
                        line=added.line,
                        context=context,
                    )
                )

        if suppressed:
            logger.debug("Credential heuristic: suppressed %d placeholder match(es)", suppressed)
        return GateVerdict.from_findings(findings)


__all__ = [
    "CREDENTIAL_LABEL",
    "CredentialHeuristicDetector",
    "build_credential_pattern",
]
