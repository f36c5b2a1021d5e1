"""Review-feedback data model and collaborator protocols.

This module contains the types shared by the poller, classifier and the
Convergence Controller, plus the protocols the controller's external
collaborators (comment source, fix applier, publisher) implement.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Protocol

Location = tuple[str, int]


@dataclass(frozen=True, slots=True)
class ReviewComment:
    """One comment on a published change.

    ``id`` is stable across polls. ``author`` is the only trust signal for
    "is this a reviewer bot"; spoofed identities are not detected.
    """

    id: str
    author: str
    body: str
    path: str | None = None
    line: int | None = None
    timestamp: str = ""
    url: str = ""

    @property
    def location(self) -> Location | None:
        if self.path is None or self.line is None:
            return None
        return (self.path, self.line)


class Classification(Enum):
    """Advisory severity of a comment."""

    BLOCKING = "blocking"
    SUGGESTION = "suggestion"
    OTHER = "other"


@dataclass(frozen=True, slots=True)
class ClassifiedCounts:
    blocking: int = 0
    suggestion: int = 0
    other: int = 0

    @classmethod
    def from_labels(cls, labels: Iterable[Classification]) -> ClassifiedCounts:
        values = list(labels)
        return cls(
            blocking=values.count(Classification.BLOCKING),
            suggestion=values.count(Classification.SUGGESTION),
            other=values.count(Classification.OTHER),
        )

    @property
    def total(self) -> int:
        return self.blocking + self.suggestion + self.other


@dataclass(frozen=True)
class IterationSnapshot:
    """Everything observed during one controller iteration."""

    iteration: int
    comments: tuple[ReviewComment, ...] = ()
    """Full filtered listing returned by the poller."""

    new_comments: tuple[ReviewComment, ...] = ()
    """Comments absent from the previous iteration's snapshot."""

    classifications: Mapping[str, Classification] = field(default_factory=dict)
    classified_counts: ClassifiedCounts = field(default_factory=ClassifiedCounts)
    locations: frozenset[Location] = frozenset()
    files_changed: tuple[str, ...] = ()

    @property
    def comment_ids(self) -> frozenset[str]:
        return frozenset(comment.id for comment in self.comments)


class ConvergenceStatus(Enum):
    RUNNING = "running"
    CLEAN = "clean"
    LIMIT_REACHED = "limit_reached"
    LOOP_DETECTED = "loop_detected"
    NO_PROGRESS = "no_progress"

    @property
    def is_terminal(self) -> bool:
        return self is not ConvergenceStatus.RUNNING


@dataclass
class ConvergenceState:
    """Mutable loop state, owned by a single controller.

    Status only ever moves from RUNNING to one terminal value.
    """

    max_iterations: int
    iteration: int = 1
    prior_locations: frozenset[Location] = frozenset()
    status: ConvergenceStatus = ConvergenceStatus.RUNNING

    def transition(self, status: ConvergenceStatus) -> None:
        if self.status.is_terminal:
            raise RuntimeError(
                f"Convergence already finished with {self.status.value}; cannot move to {status.value}"
            )
        self.status = status

    def advance(self, locations: frozenset[Location]) -> None:
        if self.status.is_terminal:
            raise RuntimeError(f"Convergence already finished with {self.status.value}")
        self.prior_locations = locations
        self.iteration += 1


@dataclass(frozen=True)
class ConvergenceResult:
    status: ConvergenceStatus
    change_id: str
    iterations: tuple[IterationSnapshot, ...]
    message: str

    @property
    def locations_by_iteration(self) -> dict[int, frozenset[Location]]:
        return {snapshot.iteration: snapshot.locations for snapshot in self.iterations}


@dataclass(frozen=True, slots=True)
class PublishResult:
    """Identifier of the reviewable unit plus what was pushed."""

    change_id: str
    url: str | None = None
    commit: str | None = None
    created: bool = False


@dataclass(frozen=True, slots=True)
class FixOutcome:
    files_changed: tuple[str, ...] = ()
    feedback_file: Path | None = None

    @property
    def changed(self) -> bool:
        return bool(self.files_changed)


class CommentSource(Protocol):
    """Returns every comment currently attached to a change."""

    async def fetch(self, change_id: str) -> list[ReviewComment]: ...


class FixApplier(Protocol):
    """External actor that edits files in response to feedback."""

    async def apply(
        self,
        iteration: int,
        comments: Sequence[ReviewComment],
        classifications: Mapping[str, Classification],
    ) -> FixOutcome: ...


class Publisher(Protocol):
    """Commits, gates and pushes the pending change, ensuring a review request exists."""

    async def publish(self, message: str) -> PublishResult: ...


__all__ = [
    "Classification",
    "ClassifiedCounts",
    "CommentSource",
    "ConvergenceResult",
    "ConvergenceState",
    "ConvergenceStatus",
    "FixApplier",
    "FixOutcome",
    "IterationSnapshot",
    "Location",
    "PublishResult",
    "Publisher",
    "ReviewComment",
]
