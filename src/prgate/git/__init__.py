"""Git operations used by the security gate and the publisher.

This package provides async git operations:
    - AsyncRepo: Non-blocking git commands
    - Diffs between revisions (or against the index)
    - Staged paths, staging, commit and push
"""

from __future__ import annotations

from .client import AsyncRepo, exclusion_pathspecs, unquote_path

__all__ = [
    "AsyncRepo",
    "exclusion_pathspecs",
    "unquote_path",
]
