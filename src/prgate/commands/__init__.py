"""CLI command modules for prgate.

    - gate: run the security gate (check) and list its patterns
    - converge: the review-feedback loop (converge) and publish-then-converge (ship)
"""

from __future__ import annotations

from . import converge, gate

__all__ = ["converge", "gate"]
