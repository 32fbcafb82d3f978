"""Verification collaborator interface.

The pipeline triggers verification but does not implement it:
- VerificationRunner: protocol for running verification on a project issue
- CommandVerificationRunner: adapter that invokes an external verifier
- Result formatting as GitHub markdown and status labels
"""

from supervisor.verification.formatting import (
    STATUS_LABELS,
    format_result_markdown,
    format_verification_comment,
    labels_for_status,
)
from supervisor.verification.models import (
    VerificationError,
    VerificationResult,
    VerificationRunner,
    VerificationStatus,
)
from supervisor.verification.runner import CommandVerificationRunner

__all__ = [
    "CommandVerificationRunner",
    "STATUS_LABELS",
    "VerificationError",
    "VerificationResult",
    "VerificationRunner",
    "VerificationStatus",
    "format_result_markdown",
    "format_verification_comment",
    "labels_for_status",
]
