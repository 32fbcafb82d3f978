"""Verification result formatting for GitHub issues.

Formats a VerificationResult as a GitHub-flavored markdown comment and maps
its status to the label applied to the issue.

Source:
- src/supervisor/verification/models.py (VerificationResult)
"""

from typing import List

from supervisor.verification.models import VerificationResult, VerificationStatus


COMMENT_HEADER = "## 🤖 Automated Verification Results"

COMMENT_FOOTER = "*Verification triggered by supervisor-service*"

STATUS_LABELS = {
    VerificationStatus.PASSED: "verification-passed",
    VerificationStatus.FAILED: "verification-failed",
    VerificationStatus.PARTIAL: "verification-partial",
}

_STATUS_ICONS = {
    VerificationStatus.PASSED: "✅",
    VerificationStatus.FAILED: "❌",
    VerificationStatus.PARTIAL: "⚠️",
    VerificationStatus.ERROR: "💥",
}


def format_result_markdown(result: VerificationResult) -> str:
    """Format the body of a verification result.

    Uses the verifier's own summary when it provides one, otherwise builds
    a checklist from the individual checks.

    Args:
        result: The verification result.

    Returns:
        Markdown text without header or footer.
    """
    if result.summary:
        return result.summary

    icon = _STATUS_ICONS[result.status]
    lines = [
        f"**Status:** {icon} {result.status.value}",
        "",
        _check_line("Build", result.build_success),
        _check_line("Tests", result.tests_passed),
        _check_line("No mocks or placeholders", not result.mocks_detected),
    ]
    return "\n".join(lines)


def format_verification_comment(result: VerificationResult) -> str:
    """Format a complete verification comment.

    Example:
        >>> result = VerificationResult(status=VerificationStatus.PASSED,
        ...                             summary="All checks passed")
        >>> print(format_verification_comment(result))
        ## 🤖 Automated Verification Results
        <BLANKLINE>
        All checks passed
        <BLANKLINE>
        ---
        *Verification triggered by supervisor-service*
    """
    return (
        f"{COMMENT_HEADER}\n\n{format_result_markdown(result)}\n\n---\n"
        f"{COMMENT_FOOTER}"
    )


def labels_for_status(status: VerificationStatus) -> List[str]:
    """Return the labels to apply for a status; none for ERROR."""
    label = STATUS_LABELS.get(status)
    return [label] if label else []


def _check_line(name: str, ok: bool) -> str:
    return f"- [{'x' if ok else ' '}] {name}"
