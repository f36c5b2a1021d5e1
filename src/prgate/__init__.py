"""prgate - secret scanning gate and review-feedback convergence loop.

This package provides the core functionality for the `prgate` command-line tool:
a security gate that must pass before a change is published, and a bounded
loop that drives a published pull request toward zero reviewer feedback.

Exports:
    __version__: Package version string.
"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.3.0"
