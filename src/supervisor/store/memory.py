"""In-memory event store for local development and tests.

Implements the same contract as PostgresEventStore, including FIFO polling
and guarded mark-processed updates. State is lost when the process exits.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from supervisor.store.models import WebhookEvent


logger = logging.getLogger(__name__)


class InMemoryEventStore:
    """List-backed EventStore implementation."""

    def __init__(self) -> None:
        self._events: List[WebhookEvent] = []

    async def append(
        self,
        event_type: str,
        project_name: Optional[str],
        issue_number: Optional[int],
        trigger: bool,
        payload: Dict[str, Any],
        delivery_id: Optional[str] = None,
    ) -> WebhookEvent:
        event = WebhookEvent(
            id=uuid4(),
            event_type=event_type,
            project_name=project_name,
            issue_number=issue_number,
            trigger=trigger,
            delivery_id=delivery_id,
            payload=payload,
        )
        self._events.append(event)
        return event

    async def fetch_unprocessed(self, limit: int) -> List[WebhookEvent]:
        # sorted() is stable, so equal timestamps keep insertion order
        pending = [e for e in self._events if not e.processed]
        return sorted(pending, key=lambda e: e.created_at)[:limit]

    async def mark_processed(
        self, event_id: UUID, error_message: Optional[str] = None
    ) -> bool:
        for index, event in enumerate(self._events):
            if event.id != event_id:
                continue
            if event.processed:
                logger.warning(
                    "Event already processed",
                    extra={"event_id": str(event_id)},
                )
                return False
            self._events[index] = event.model_copy(
                update={
                    "processed": True,
                    "processed_at": datetime.now(timezone.utc),
                    "error_message": error_message,
                }
            )
            return True
        return False

    async def get(self, event_id: UUID) -> Optional[WebhookEvent]:
        for event in self._events:
            if event.id == event_id:
                return event
        return None

    async def find_for_issue(
        self, project_name: str, issue_number: int
    ) -> List[WebhookEvent]:
        matching = [
            e
            for e in self._events
            if e.project_name == project_name and e.issue_number == issue_number
        ]
        return list(reversed(matching))

    async def list_recent(
        self, limit: int = 50, processed: Optional[bool] = None
    ) -> List[WebhookEvent]:
        events = [
            e for e in self._events if processed is None or e.processed == processed
        ]
        return list(reversed(events))[:limit]

    async def health_check(self) -> bool:
        return True

    def __len__(self) -> int:
        return len(self._events)
