"""Convergence Controller.

Drives the review loop for one published change::

    poll -> diff against previous snapshot -> classify -> fix -> publish -> loop check

and stops in exactly one terminal status:

- CLEAN: no new reviewer comments (including "nothing arrived in time")
- NO_PROGRESS: the fix applier made no edits for a non-empty comment set
- LOOP_DETECTED: a (file, line) from the previous iteration came back
- LIMIT_REACHED: ``max_iterations`` iterations ran with feedback still arriving

Publish failures (``GateBlocked``, ``PublishError``) propagate as hard
failures. Cancellation is re-raised; ``state`` and ``history`` keep
describing where the loop stopped.
"""

from __future__ import annotations

import asyncio
from dataclasses import replace

from prgate.core.console import get_logger
from prgate.feedback.classifier import FeedbackClassifier, by_priority
from prgate.feedback.differ import new_since
from prgate.feedback.poller import FeedbackPoller
from prgate.feedback.types import (
    CommentSource,
    ConvergenceResult,
    ConvergenceState,
    ConvergenceStatus,
    FixApplier,
    IterationSnapshot,
    Location,
    Publisher,
)

logger = get_logger(__name__)

REMEDIATION: dict[ConvergenceStatus, str] = {
    ConvergenceStatus.CLEAN: "No outstanding reviewer feedback. The change is ready for human review.",
    ConvergenceStatus.LIMIT_REACHED: (
        "Iteration limit reached with feedback still arriving. The change is published; "
        "review the remaining comments manually."
    ),
    ConvergenceStatus.LOOP_DETECTED: (
        "The same location was flagged again after an attempted fix. Automated fixing is not "
        "converging; a human needs to look at it."
    ),
    ConvergenceStatus.NO_PROGRESS: (
        "The fix step made no changes for new feedback. Address the comments in the feedback "
        "file, then re-run."
    ),
    ConvergenceStatus.RUNNING: "Convergence was interrupted before reaching a terminal status.",
}


class ConvergenceController:
    """Bounded, loop-safe fix/publish cycle. One controller runs once."""

    def __init__(
        self,
        source: CommentSource,
        fixer: FixApplier,
        publisher: Publisher,
        *,
        poller: FeedbackPoller | None = None,
        classifier: FeedbackClassifier | None = None,
        max_iterations: int = 3,
    ) -> None:
        if max_iterations < 1:
            raise ValueError("max_iterations must be at least 1")
        self.source = source
        self.fixer = fixer
        self.publisher = publisher
        self.poller = poller or FeedbackPoller()
        self.classifier = classifier or FeedbackClassifier()
        self.state = ConvergenceState(max_iterations=max_iterations)
        self.history: list[IterationSnapshot] = []
        self.change_id: str | None = None

    def _finish(self, status: ConvergenceStatus) -> None:
        self.state.transition(status)
        log = logger.info if status is ConvergenceStatus.CLEAN else logger.warning
        log("Convergence finished after %d iteration(s): %s", len(self.history), status.value)

    def result(self) -> ConvergenceResult:
        return ConvergenceResult(
            status=self.state.status,
            change_id=self.change_id or "",
            iterations=tuple(self.history),
            message=REMEDIATION[self.state.status],
        )

    async def run(self, change_id: str) -> ConvergenceResult:
        if self.state.status.is_terminal or self.history:
            raise RuntimeError("ConvergenceController instances are single-use")
        self.change_id = change_id

        try:
            while not self.state.status.is_terminal:
                if self.state.iteration > self.state.max_iterations:
                    self._finish(ConvergenceStatus.LIMIT_REACHED)
                    break
                self.change_id = await self._iterate(self.change_id or change_id)
        except asyncio.CancelledError:
            logger.warning(
                "Convergence cancelled during iteration %d (%d completed)",
                self.state.iteration,
                len(self.history),
            )
            raise

        return self.result()

    async def _iterate(self, change_id: str) -> str:
        iteration = self.state.iteration
        previous = self.history[-1] if self.history else None
        logger.info("Iteration %d/%d on %s", iteration, self.state.max_iterations, change_id)

        current = await self.poller.poll(
            self.source,
            change_id,
            seen=previous.comment_ids if previous else frozenset(),
        )
        fresh = new_since(previous.comments if previous else None, current)
        classifications = self.classifier.classify_all(fresh)
        locations: frozenset[Location] = frozenset(
            c.location for c in fresh if c.location is not None
        )
        snapshot = IterationSnapshot(
            iteration=iteration,
            comments=tuple(current),
            new_comments=tuple(fresh),
            classifications=classifications,
            classified_counts=self.classifier.count(fresh),
            locations=locations,
        )

        if not fresh:
            self.history.append(snapshot)
            self._finish(ConvergenceStatus.CLEAN)
            return change_id

        counts = snapshot.classified_counts
        logger.info(
            "%d new comment(s): %d blocking, %d suggestion, %d other",
            len(fresh),
            counts.blocking,
            counts.suggestion,
            counts.other,
        )

        outcome = await self.fixer.apply(
            iteration, by_priority(fresh, classifications), classifications
        )
        snapshot = replace(snapshot, files_changed=outcome.files_changed)
        self.history.append(snapshot)
        if not outcome.changed:
            self._finish(ConvergenceStatus.NO_PROGRESS)
            return change_id

        published = await self.publisher.publish(f"Address review feedback (iteration {iteration})")
        change_id = published.change_id or change_id

        repeated = locations & self.state.prior_locations
        if repeated:
            logger.warning(
                "Location(s) flagged again: %s",
                ", ".join(f"{path}:{line}" for path, line in sorted(repeated)),
            )
            self._finish(ConvergenceStatus.LOOP_DETECTED)
            return change_id

        self.state.advance(locations)
        return change_id


__all__ = ["REMEDIATION", "ConvergenceController"]
