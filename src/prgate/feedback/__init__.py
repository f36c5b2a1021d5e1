"""Review-feedback convergence loop.

- poller / differ / classifier: observe and label reviewer comments
- github: comment source and publisher backed by the gh CLI
- fixer: hands feedback to an external fix command
- controller: the bounded, loop-safe iteration state machine
"""

from prgate.feedback.classifier import FeedbackClassifier
from prgate.feedback.controller import ConvergenceController
from prgate.feedback.differ import new_since
from prgate.feedback.poller import FeedbackPoller, poll
from prgate.feedback.types import (
    Classification,
    ConvergenceResult,
    ConvergenceStatus,
    IterationSnapshot,
    PublishResult,
    ReviewComment,
)

__all__ = [
    "Classification",
    "ConvergenceController",
    "ConvergenceResult",
    "ConvergenceStatus",
    "FeedbackClassifier",
    "FeedbackPoller",
    "IterationSnapshot",
    "PublishResult",
    "ReviewComment",
    "new_since",
    "poll",
]
