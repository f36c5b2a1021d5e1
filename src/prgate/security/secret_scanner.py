"""Secret Scanner: applies the Pattern Registry to the added lines of a diff."""

from __future__ import annotations

from prgate.core.console import get_logger
from prgate.security.diff import iter_added_lines
from prgate.security.patterns import PatternRegistry
from prgate.security.types import FindingKind, GateVerdict, ScanFinding, redact, redact_line

logger = get_logger(__name__)


class SecretScanner:
    """Reports every registry match in added diff content.

    There is no early exit: all patterns are evaluated against all added
    lines, so one run lists every violation. Findings are ordered by registry
    order, then by position in the diff.
    """

    def __init__(self, registry: PatternRegistry | None = None) -> None:
        self.registry = registry or PatternRegistry.default()

    def scan(self, diff_text: str) -> GateVerdict:
        order = {label: index for index, label in enumerate(self.registry.labels)}
        findings: list[ScanFinding] = []

        for added in iter_added_lines(diff_text):
            matches = self.registry.match_all(added.text)
            context = redact_line(added.text, (matched for _, matched in matches))
            for label, matched in matches:
                findings.append(
                    ScanFinding(
                        pattern_label=label,
                        excerpt=redact(matched),
                        kind=FindingKind.SECRET,
                        file=added.path,
                        line=added.line,
                        context=context,
                    )
                )

        # sorted() is stable, so diff order is kept within a pattern
        findings = sorted(findings, key=lambda f: order[f.pattern_label])
        if findings:
            logger.debug(
                "Secret scan: %d finding(s) across %d pattern(s)",
                len(findings),
                len({f.pattern_label for f in findings}),
            )
        return GateVerdict.from_findings(findings)


__all__ = ["SecretScanner"]
