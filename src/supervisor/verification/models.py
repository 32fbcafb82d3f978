"""Verification collaborator models.

The pipeline does not verify anything itself. It calls a VerificationRunner
for a project issue and reports the VerificationResult it gets back.
"""

from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from pydantic import BaseModel, Field


class VerificationStatus(str, Enum):
    """Overall verification outcome.

    Attributes:
        PASSED: Build and tests succeeded and no placeholders were found.
        FAILED: Build or tests failed.
        PARTIAL: Build and tests succeeded but placeholders were found.
        ERROR: The verifier itself could not complete.
    """

    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"
    ERROR = "error"


class VerificationResult(BaseModel):
    """Result returned by a verification run.

    Attributes:
        status: Overall outcome.
        build_success: Whether the build completed.
        tests_passed: Whether tests passed.
        mocks_detected: Whether mock or placeholder code was found.
        summary: Markdown summary suitable for posting.
        details: Verifier-specific details (outputs, file lists).
    """

    status: VerificationStatus

    build_success: bool = False

    tests_passed: bool = False

    mocks_detected: bool = False

    summary: Optional[str] = None

    details: Dict[str, Any] = Field(default_factory=dict)


class VerificationError(Exception):
    """Raised when a verification run cannot produce a result.

    Attributes:
        message: Human-readable error description.
        exit_code: Verifier exit code, if a process ran.
    """

    def __init__(self, message: str, exit_code: Optional[int] = None):
        self.message = message
        self.exit_code = exit_code
        super().__init__(message)


@runtime_checkable
class VerificationRunner(Protocol):
    """Runs verification for one project issue."""

    async def run_verification(
        self,
        project_name: str,
        issue_number: int,
        workspace_root: Path,
    ) -> VerificationResult:
        """Verify a project's workspace for an issue.

        Raises:
            Exception: Any failure; the caller records it on the event.
        """
        ...
