"""Comment Differencer."""

from __future__ import annotations

from collections.abc import Iterable

from prgate.feedback.types import ReviewComment


def new_since(
    previous: Iterable[ReviewComment] | None, current: Iterable[ReviewComment]
) -> list[ReviewComment]:
    """Comments in ``current`` whose id is absent from ``previous``.

    With no previous snapshot every current comment is new. Order of
    ``current`` is kept and duplicate ids are reported once.
    """
    known = {comment.id for comment in previous} if previous is not None else set()
    fresh: list[ReviewComment] = []
    for comment in current:
        if comment.id in known:
            continue
        known.add(comment.id)
        fresh.append(comment)
    return fresh


__all__ = ["new_since"]
