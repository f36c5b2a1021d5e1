"""Feedback Classifier: keyword heuristics over comment bodies.

Classification is advisory. It drives the reported breakdown and the order
in which feedback is handed to the fix applier; it never gates the loop.
When a body matches both keyword sets, blocking wins.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from prgate.feedback.types import Classification, ClassifiedCounts, ReviewComment

DEFAULT_BLOCKING_KEYWORDS: tuple[str, ...] = (
    "must fix",
    "must",
    "critical",
    "security",
    "vulnerab",
    "error",
    "bug",
    "blocking",
    "breaking",
)
DEFAULT_SUGGESTION_KEYWORDS: tuple[str, ...] = (
    "consider",
    "optional",
    "nit",
    "suggest",
    "could",
    "might",
    "minor",
    "style",
)

_PRIORITY = {
    Classification.BLOCKING: 0,
    Classification.SUGGESTION: 1,
    Classification.OTHER: 2,
}


def _keyword_pattern(keywords: Iterable[str]) -> re.Pattern[str] | None:
    # Longest first so "must fix" is preferred over "must" in the alternation
    ordered = sorted({k.strip() for k in keywords if k.strip()}, key=len, reverse=True)
    if not ordered:
        return None
    alternatives = "|".join(re.escape(keyword) for keyword in ordered)
    return re.compile(rf"\b(?:{alternatives})", re.IGNORECASE)


class FeedbackClassifier:
    def __init__(
        self,
        blocking_keywords: Sequence[str] = DEFAULT_BLOCKING_KEYWORDS,
        suggestion_keywords: Sequence[str] = DEFAULT_SUGGESTION_KEYWORDS,
    ) -> None:
        self._blocking = _keyword_pattern(blocking_keywords)
        self._suggestion = _keyword_pattern(suggestion_keywords)

    def classify_text(self, body: str) -> Classification:
        if self._blocking is not None and self._blocking.search(body):
            return Classification.BLOCKING
        if self._suggestion is not None and self._suggestion.search(body):
            return Classification.SUGGESTION
        return Classification.OTHER

    def classify(self, comment: ReviewComment) -> Classification:
        return self.classify_text(comment.body)

    def classify_all(self, comments: Iterable[ReviewComment]) -> dict[str, Classification]:
        return {comment.id: self.classify(comment) for comment in comments}

    def count(self, comments: Iterable[ReviewComment]) -> ClassifiedCounts:
        return ClassifiedCounts.from_labels(self.classify(comment) for comment in comments)


def by_priority(
    comments: Iterable[ReviewComment], classifications: dict[str, Classification]
) -> list[ReviewComment]:
    """Order comments blocking first, then suggestions, then the rest (stable)."""
    return sorted(
        comments,
        key=lambda c: _PRIORITY[classifications.get(c.id, Classification.OTHER)],
    )


__all__ = [
    "DEFAULT_BLOCKING_KEYWORDS",
    "DEFAULT_SUGGESTION_KEYWORDS",
    "FeedbackClassifier",
    "by_priority",
]
