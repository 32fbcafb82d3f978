"""GitHub webhook delivery models.

This module defines the narrow, validated view of a GitHub webhook payload
that the pipeline actually reads, together with the small result types
returned by the validator, the classifier and the receiver.

Only the following payload fields are projected:

{
  "repository": {"name": ..., "full_name": ..., "owner": {"login": ...}},
  "issue": {"number": ...},
  "pull_request": {"number": ...},
  "comment": {"body": ..., "user": {"login": ...}}
}

Everything else in the payload is ignored by the projection but stored
verbatim alongside the event.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError


# Largest value the INTEGER issue_number column can hold
MAX_ISSUE_NUMBER = 2**31 - 1


class MalformedPayloadError(Exception):
    """Raised when a delivery body cannot be projected.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class _Projection(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class GitHubUser(_Projection):
    login: Optional[str] = Field(default=None, strict=True)


class RepositoryRef(_Projection):
    name: Optional[str] = Field(default=None, strict=True)
    full_name: Optional[str] = Field(default=None, strict=True)
    owner: Optional[GitHubUser] = None


class NumberedRef(_Projection):
    """An issue or pull request; only the number is needed."""

    number: Optional[int] = Field(
        default=None, strict=True, gt=0, le=MAX_ISSUE_NUMBER
    )


class CommentRef(_Projection):
    body: Optional[str] = Field(default=None, strict=True)
    user: Optional[GitHubUser] = None


class DeliveryProjection(_Projection):
    """Validated subset of a GitHub webhook payload.

    Known fields with an unexpected shape (a string issue number, a
    repository that is not an object) make the whole delivery malformed
    instead of silently resolving to None.

    Attributes:
        repository: Repository the delivery belongs to, if any.
        issue: Issue the delivery refers to, if any.
        pull_request: Pull request the delivery refers to, if any.
        comment: Comment carried by comment events, if any.
    """

    repository: Optional[RepositoryRef] = None
    issue: Optional[NumberedRef] = None
    pull_request: Optional[NumberedRef] = None
    comment: Optional[CommentRef] = None

    @classmethod
    def from_payload(cls, payload: Any) -> "DeliveryProjection":
        """Project a decoded JSON payload.

        Args:
            payload: The decoded webhook body.

        Returns:
            The validated projection.

        Raises:
            MalformedPayloadError: If the payload is not a JSON object or
                a projected field has the wrong shape.
        """
        if not isinstance(payload, dict):
            raise MalformedPayloadError(
                f"Expected a JSON object, got {type(payload).__name__}"
            )
        try:
            return cls.model_validate(payload)
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first["loc"])
            raise MalformedPayloadError(
                f"Invalid field '{location}': {first['msg']}"
            ) from e

    @property
    def repository_name(self) -> Optional[str]:
        if self.repository is None:
            return None
        return self.repository.name

    @property
    def work_item_number(self) -> Optional[int]:
        """Issue number, falling back to the pull request number."""
        if self.issue is not None and self.issue.number is not None:
            return self.issue.number
        if self.pull_request is not None:
            return self.pull_request.number
        return None

    @property
    def comment_author(self) -> Optional[str]:
        if self.comment is None or self.comment.user is None:
            return None
        return self.comment.user.login

    @property
    def comment_body(self) -> str:
        if self.comment is None or self.comment.body is None:
            return ""
        return self.comment.body


@dataclass(frozen=True)
class Classification:
    """Result of classifying a delivery.

    Attributes:
        project_name: Resolved project, or None when the repository is unknown.
        issue_number: Issue or pull request number, if present.
        trigger: Whether the delivery should trigger verification.
    """

    project_name: Optional[str]
    issue_number: Optional[int]
    trigger: bool


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a signature check."""

    valid: bool
    error: Optional[str] = None


@dataclass(frozen=True)
class ReceiveResult:
    """HTTP-level outcome of receiving one delivery.

    Attributes:
        status_code: HTTP status to return to the sender.
        body: JSON response body.
    """

    status_code: int
    body: Dict[str, Any] = field(default_factory=dict)

    @property
    def accepted(self) -> bool:
        return self.status_code == 200
