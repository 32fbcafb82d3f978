"""Stored webhook event model.

A WebhookEvent is one row of the `webhook_events` table: a received
delivery, the classification computed when it arrived, and its processing
state. Rows move from unprocessed to processed exactly once.

Source:
- migrations/001_webhook_events.sql (schema definition)
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator


class WebhookEvent(BaseModel):
    """A received webhook delivery and its processing state.

    Attributes:
        id: Unique event identifier, assigned at insert.
        event_type: GitHub event type (issue_comment, issues, ...).
        project_name: Resolved project, or None when unresolvable.
        issue_number: Issue or pull request number, if present.
        trigger: Whether the delivery should trigger verification.
        delivery_id: GitHub delivery id, kept for tracing.
        payload: The full original delivery body.
        processed: Whether a processing attempt has completed.
        processed_at: When the event was marked processed.
        error_message: Terminal failure message; None on success.
        created_at: When the event was stored (UTC).
    """

    model_config = ConfigDict(frozen=True)

    id: UUID

    event_type: str = Field(..., min_length=1)

    project_name: Optional[str] = None

    issue_number: Optional[int] = Field(default=None, gt=0)

    trigger: bool = False

    delivery_id: Optional[str] = None

    payload: Dict[str, Any] = Field(default_factory=dict)

    processed: bool = False

    processed_at: Optional[datetime] = None

    error_message: Optional[str] = None

    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @model_validator(mode="after")
    def check_processed_fields(self) -> "WebhookEvent":
        """An unprocessed event carries no processing results."""
        if not self.processed and self.processed_at is not None:
            raise ValueError("processed_at must be unset until processed")
        return self

    @property
    def succeeded(self) -> bool:
        """True for events processed without an error."""
        return self.processed and self.error_message is None

    def summary(self) -> Dict[str, Any]:
        """Event fields without the payload, for listings."""
        return self.model_dump(mode="json", exclude={"payload"})
