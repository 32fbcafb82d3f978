"""Webhook event persistence.

Received deliveries are appended to the `webhook_events` table and later
marked processed by the event processor. The table is the only coupling
between the HTTP receiver and the background processor.
"""

from supervisor.store.memory import InMemoryEventStore
from supervisor.store.models import WebhookEvent
from supervisor.store.repository import (
    DatabaseError,
    EventStore,
    PostgresEventStore,
)

__all__ = [
    "DatabaseError",
    "EventStore",
    "InMemoryEventStore",
    "PostgresEventStore",
    "WebhookEvent",
]
