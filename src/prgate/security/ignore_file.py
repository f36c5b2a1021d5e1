"""Ignore-List Auditor.

Makes sure sensitive path patterns (environment files, private keys, the
feedback artifact directory) can never be tracked. Missing entries are
appended one per line; existing content and order are left untouched. This
step warns and repairs, it never blocks.
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

from prgate.core.console import get_logger

logger = get_logger(__name__)


def _existing_entries(text: str) -> set[str]:
    return {line.strip() for line in text.splitlines() if line.strip()}


def ensure_ignore_patterns(required_patterns: Sequence[str], ignore_file: Path) -> list[str]:
    """Append every required pattern missing from ``ignore_file``.

    Returns the patterns that were appended (empty on a second run).
    """
    existing_text = ignore_file.read_text(encoding="utf-8") if ignore_file.exists() else ""
    present = _existing_entries(existing_text)

    missing: list[str] = []
    for pattern in required_patterns:
        entry = pattern.strip()
        if entry and entry not in present and entry not in missing:
            missing.append(entry)

    if not missing:
        logger.debug("%s already covers %d required patterns", ignore_file, len(required_patterns))
        return []

    for entry in missing:
        logger.warning("Adding missing pattern to %s: %s", ignore_file.name, entry)

    prefix = "" if not existing_text or existing_text.endswith("\n") else "\n"
    ignore_file.parent.mkdir(parents=True, exist_ok=True)
    with ignore_file.open("a", encoding="utf-8") as handle:
        handle.write(prefix + "\n".join(missing) + "\n")

    return missing


__all__ = ["ensure_ignore_patterns"]
