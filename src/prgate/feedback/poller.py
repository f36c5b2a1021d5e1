"""Feedback Poller.

Fetches comments on a fixed interval until one from a reviewer identity
shows up or the attempt budget runs out. An empty result means "no feedback,
assume clean" and is not an error.

The wait between attempts is the only suspension point in the loop. Cancelling
the awaiting task there abandons polling; the poller holds no state of its own.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Collection, Sequence

from prgate.core.console import get_logger
from prgate.feedback.types import CommentSource, ReviewComment

logger = get_logger(__name__)

Sleeper = Callable[[float], Awaitable[object]]

DEFAULT_REVIEWER_IDENTITIES: tuple[str, ...] = ("claude", "bot", "github-actions")


def matches_identity(author: str, identities: Sequence[str]) -> bool:
    """Case-insensitive substring match of ``author`` against the allow-list."""
    lowered = author.lower()
    return any(marker.lower() in lowered for marker in identities if marker)


async def poll(
    source: CommentSource,
    change_id: str,
    identities: Sequence[str] = DEFAULT_REVIEWER_IDENTITIES,
    interval: float = 30.0,
    max_attempts: int = 10,
    *,
    seen: Collection[str] = frozenset(),
    sleep: Sleeper = asyncio.sleep,
) -> list[ReviewComment]:
    """Poll ``source`` for reviewer comments on ``change_id``.

    Stops early once the filtered listing holds a comment whose id is not in
    ``seen``. Returns the filtered listing from the last attempt made.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    filtered: list[ReviewComment] = []
    for attempt in range(1, max_attempts + 1):
        comments = await source.fetch(change_id)
        filtered = [c for c in comments if matches_identity(c.author, identities)]
        unseen = [c for c in filtered if c.id not in seen]
        logger.debug(
            "Poll %d/%d for %s: %d comment(s), %d from reviewers, %d unseen",
            attempt,
            max_attempts,
            change_id,
            len(comments),
            len(filtered),
            len(unseen),
        )
        if unseen:
            return filtered
        if attempt < max_attempts:
            await sleep(interval)

    logger.info(
        "No new reviewer feedback on %s after %d attempt(s); assuming clean", change_id, max_attempts
    )
    return filtered


class FeedbackPoller:
    """``poll`` bound to one identity allow-list and attempt budget."""

    def __init__(
        self,
        identities: Sequence[str] = DEFAULT_REVIEWER_IDENTITIES,
        interval: float = 30.0,
        max_attempts: int = 10,
        *,
        sleep: Sleeper = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if interval < 0:
            raise ValueError("interval cannot be negative")
        self.identities = tuple(identities)
        self.interval = interval
        self.max_attempts = max_attempts
        self._sleep = sleep

    async def poll(
        self, source: CommentSource, change_id: str, *, seen: Collection[str] = frozenset()
    ) -> list[ReviewComment]:
        return await poll(
            source,
            change_id,
            self.identities,
            self.interval,
            self.max_attempts,
            seen=seen,
            sleep=self._sleep,
        )


__all__ = [
    "DEFAULT_REVIEWER_IDENTITIES",
    "FeedbackPoller",
    "matches_identity",
    "poll",
]
