"""Pre-publish security gate.

Detects secrets and credential-shaped literals in a change set before it may
leave the local environment:

- patterns: ordered registry of labelled secret signatures
- diff: change set between two revisions, honoring path exclusions
- ignore_file: keeps sensitive paths out of version control
- secret_scanner / credentials: the two content scanners
- gate: composes all of the above into one verdict
"""

from prgate.security.credentials import CredentialHeuristicDetector
from prgate.security.diff import DiffExtractor, filter_excluded, iter_added_lines
from prgate.security.gate import SecurityGate, check_env_files, is_env_file
from prgate.security.ignore_file import ensure_ignore_patterns
from prgate.security.patterns import PatternRegistry
from prgate.security.secret_scanner import SecretScanner
from prgate.security.types import FindingKind, GateVerdict, ScanFinding, SecretPattern

__all__ = [
    "CredentialHeuristicDetector",
    "DiffExtractor",
    "FindingKind",
    "GateVerdict",
    "PatternRegistry",
    "ScanFinding",
    "SecretPattern",
    "SecretScanner",
    "SecurityGate",
    "check_env_files",
    "ensure_ignore_patterns",
    "filter_excluded",
    "is_env_file",
    "iter_added_lines",
]
