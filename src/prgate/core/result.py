"""
Unified Result types and error hierarchy for prgate.

This module provides:
1. Result[T, E] type for explicit error handling in subprocess plumbing
2. Domain-specific exception hierarchy

Usage:
    from prgate.core.result import Ok, Err, Result, GitError

    async def staged_paths() -> Result[list[str], GitError]:
        if failed:
            return Err(GitError("git diff --cached failed"))
        return Ok(paths)

    match await staged_paths():
        case Ok(paths):
            ...
        case Err(err):
            ...
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Generic, TypeVar

if TYPE_CHECKING:
    from prgate.security.types import GateVerdict

T = TypeVar("T")
U = TypeVar("U")
E = TypeVar("E", bound=Exception)


@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """Represents a successful result containing a value."""

    value: T

    def unwrap(self) -> T:
        """Return the contained value."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply a function to the contained value."""
        return Ok(fn(self.value))


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """Represents a failed result containing an error."""

    error: E

    def unwrap(self) -> T:
        """Raise the contained error."""
        raise self.error

    def map(self, fn: Callable[[T], U]) -> Err[E]:
        return self


Result = Ok[T] | Err[E]


# ---------------------------------------------------------------------------
# Domain-specific error hierarchy
# ---------------------------------------------------------------------------


class PRGateError(Exception):
    """Base exception for all prgate errors.

    Carries a human-readable message plus optional structured context that is
    rendered after the message, e.g. ``git push failed [remote=origin]``.
    """

    def __init__(self, message: str, *, context: dict | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} [{ctx_str}]"
        return self.message


class ConfigurationError(PRGateError):
    """Raised when a required collaborator is unavailable or unauthenticated.

    Examples:
    - git or gh not on PATH
    - gh not logged in
    - Fix command cannot be started
    """


class GitError(PRGateError):
    """Raised when a git command fails."""


class GateBlocked(PRGateError):
    """Raised when the security gate verdict did not pass.

    The failing verdict is attached so callers can render every finding.
    There is no override flag; the content has to be fixed and the gate re-run.
    """

    def __init__(self, verdict: GateVerdict, message: str | None = None) -> None:
        count = len(verdict.findings)
        super().__init__(
            message or f"Security gate blocked publish ({count} finding{'s' if count != 1 else ''})"
        )
        self.verdict = verdict


class PublishError(PRGateError):
    """Raised when pushing or opening the review request fails for a non-content reason."""


class CommentSourceError(PRGateError):
    """Raised when review comments cannot be fetched or parsed."""


__all__ = [
    "Ok",
    "Err",
    "Result",
    "PRGateError",
    "ConfigurationError",
    "GitError",
    "GateBlocked",
    "PublishError",
    "CommentSourceError",
]
