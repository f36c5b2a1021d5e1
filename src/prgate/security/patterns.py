"""Pattern Registry: ordered, labelled secret signatures.

Order only affects report ordering. Every pattern is always evaluated, so a
single report lists every violated signature instead of the first one.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence

from prgate.security.types import SecretPattern

_DEFAULT_SIGNATURES: tuple[tuple[str, str], ...] = (
    ("OpenAI API key", r"sk-[a-zA-Z0-9]{48}"),
    ("GitHub personal access token", r"ghp_[a-zA-Z0-9]{36}"),
    ("GitHub OAuth token", r"gho_[a-zA-Z0-9]{36}"),
    ("GitHub user-to-server token", r"ghu_[a-zA-Z0-9]{36}"),
    ("GitHub server-to-server token", r"ghs_[a-zA-Z0-9]{36}"),
    ("GitHub refresh token", r"ghr_[a-zA-Z0-9]{36}"),
    ("GitHub fine-grained PAT", r"github_pat_[a-zA-Z0-9_]{82}"),
    ("PostgreSQL URL with password", r"postgres(?:ql)?://[^:\s/]+:[^@\s]+@"),
    ("MySQL URL with password", r"mysql://[^:\s/]+:[^@\s]+@"),
    ("AWS access key/secret pair", r"[A-Z0-9]{20}:[A-Z0-9]{40}"),
    ("AWS access key ID", r"AKIA[0-9A-Z]{16}"),
    ("Google API key", r"AIza[0-9A-Za-z_\-]{35}"),
    ("Google OAuth access token", r"ya29\.[0-9A-Za-z_\-]+"),
    ("Google OAuth client ID", r"[0-9]+-[0-9A-Za-z_\-]{32}\.apps\.googleusercontent\.com"),
    ("Secret key (sk- prefix)", r"sk-[a-zA-Z0-9_\-]{48,}"),
    ("Stripe publishable live key", r"pk_live_[0-9a-zA-Z]{24,}"),
    ("Stripe secret live key", r"sk_live_[0-9a-zA-Z]{24,}"),
    ("Slack token", r"xox[baprs]-[0-9]{10,13}-[0-9]{10,13}-[a-zA-Z0-9]{24,}"),
    ("Square access token", r"sq0atp-[0-9A-Za-z_\-]{22}"),
    ("Square OAuth secret", r"sq0csp-[0-9A-Za-z_\-]{43}"),
    ("SendGrid API key", r"SG\.[a-zA-Z0-9_\-]{22}\.[a-zA-Z0-9_\-]{43}"),
    ("Mailchimp API key", r"[0-9a-f]{32}-us[0-9]{1,2}"),
    ("Mailgun API key", r"key-[0-9a-zA-Z]{32}"),
    ("Private key block", r"-----BEGIN(?: [A-Z]+)* PRIVATE KEY-----"),
)


class PatternRegistry:
    """Immutable ordered collection of :class:`SecretPattern` records."""

    def __init__(self, patterns: Iterable[SecretPattern]) -> None:
        self._patterns: tuple[SecretPattern, ...] = tuple(patterns)
        labels = [p.label for p in self._patterns]
        if len(labels) != len(set(labels)):
            raise ValueError("Secret pattern labels must be unique")

    @classmethod
    def default(cls) -> PatternRegistry:
        return cls(SecretPattern.compile(label, regex) for label, regex in _DEFAULT_SIGNATURES)

    def with_patterns(self, extra: Sequence[SecretPattern]) -> PatternRegistry:
        """Return a new registry with ``extra`` appended after the existing patterns."""
        return PatternRegistry((*self._patterns, *extra))

    def __iter__(self) -> Iterator[SecretPattern]:
        return iter(self._patterns)

    def __len__(self) -> int:
        return len(self._patterns)

    @property
    def labels(self) -> tuple[str, ...]:
        return tuple(p.label for p in self._patterns)

    def match_all(self, text: str) -> list[tuple[str, str]]:
        """Return ``(label, excerpt)`` for every match of every pattern, in registry order."""
        matches: list[tuple[str, str]] = []
        for pattern in self._patterns:
            for match in pattern.expression.finditer(text):
                matches.append((pattern.label, match.group(0)))
        return matches


__all__ = ["PatternRegistry"]
