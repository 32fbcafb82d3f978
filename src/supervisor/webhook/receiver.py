"""GitHub webhook receiver.

The receiver is the producer side of the pipeline. For each delivery it:
1. Validates the X-Hub-Signature-256 signature over the raw body
2. Decodes and projects the JSON payload
3. Classifies the delivery
4. Appends one event row to the store, whether or not it triggers anything

Verification never runs on the request path, so the acknowledgement time
depends only on the store insert. That insert is bounded by
store_timeout_seconds to stay inside GitHub's 10 second delivery timeout.

Boundary errors are returned as ReceiveResult values with an HTTP status;
nothing is stored for a rejected delivery.
"""

import asyncio
import json
import logging
from typing import Mapping, Optional

from supervisor.metrics import WebhookMetrics
from supervisor.store.repository import EventStore
from supervisor.webhook.classifier import EventClassifier
from supervisor.webhook.models import (
    DeliveryProjection,
    MalformedPayloadError,
    ReceiveResult,
)
from supervisor.webhook.validator import SignatureValidator

logger = logging.getLogger(__name__)


class IngestReceiver:
    """Accepts, authenticates, classifies and stores webhook deliveries.

    Attributes:
        validator: Signature validator, or None when no secret is configured.
        classifier: Delivery classifier.
        store: Event store the deliveries are appended to.
        metrics: Optional metrics container.
        store_timeout_seconds: Bound on the store insert.
    """

    def __init__(
        self,
        validator: Optional[SignatureValidator],
        classifier: EventClassifier,
        store: EventStore,
        metrics: Optional[WebhookMetrics] = None,
        store_timeout_seconds: float = 5.0,
    ) -> None:
        self.validator = validator
        self.classifier = classifier
        self.store = store
        self.metrics = metrics
        self.store_timeout_seconds = store_timeout_seconds

    @property
    def configured(self) -> bool:
        """Whether the receiver can accept deliveries at all."""
        return self.validator is not None

    async def receive(
        self, headers: Mapping[str, str], raw_body: bytes
    ) -> ReceiveResult:
        """Receive one webhook delivery.

        Args:
            headers: Request headers.
            raw_body: The exact request body bytes.

        Returns:
            ReceiveResult with status 200 (stored), 400 (malformed),
            401 (bad signature) or 500 (misconfigured or store failure).
        """
        if self.validator is None:
            logger.error("Webhook secret not configured; rejecting delivery")
            self._record(None, "error")
            return ReceiveResult(
                status_code=500,
                body={
                    "error": "Webhook secret not configured",
                    "message": "The service cannot validate webhook signatures",
                },
            )

        event_type = self.validator.get_event_type(headers)
        delivery_id = self.validator.get_delivery_id(headers)

        validation = self.validator.validate(headers, raw_body)
        if not validation.valid:
            logger.warning(
                "Webhook signature validation failed: %s",
                validation.error,
                extra={"event_type": event_type, "delivery_id": delivery_id},
            )
            # Unauthenticated headers never become metric labels
            self._record(None, "unauthorized")
            return ReceiveResult(
                status_code=401,
                body={
                    "error": "Signature validation failed",
                    "message": validation.error,
                },
            )

        logger.info("Webhook received: %s (%s)", event_type, delivery_id)

        if event_type is None:
            self._record(None, "malformed")
            return self._malformed("Missing X-GitHub-Event header")

        try:
            payload = json.loads(raw_body)
            delivery = DeliveryProjection.from_payload(payload)
        except (ValueError, MalformedPayloadError) as e:
            logger.warning(
                "Rejecting malformed webhook payload: %s",
                e,
                extra={"event_type": event_type, "delivery_id": delivery_id},
            )
            self._record(event_type, "malformed")
            return self._malformed(str(e))

        classification = self.classifier.classify(event_type, delivery)

        try:
            event = await asyncio.wait_for(
                self.store.append(
                    event_type=event_type,
                    project_name=classification.project_name,
                    issue_number=classification.issue_number,
                    trigger=classification.trigger,
                    payload=payload,
                    delivery_id=delivery_id,
                ),
                timeout=self.store_timeout_seconds,
            )
        except asyncio.TimeoutError:
            logger.error(
                "Timed out storing webhook event after %.1fs",
                self.store_timeout_seconds,
                extra={"event_type": event_type, "delivery_id": delivery_id},
            )
            self._record(event_type, "error")
            return ReceiveResult(
                status_code=500,
                body={
                    "error": "Internal error",
                    "message": "Timed out storing webhook event",
                },
            )
        except Exception as e:
            logger.exception(
                "Failed to store webhook event",
                extra={"event_type": event_type, "delivery_id": delivery_id},
            )
            self._record(event_type, "error")
            return ReceiveResult(
                status_code=500,
                body={"error": "Internal error", "message": str(e)},
            )

        self._record(event_type, "accepted")

        if classification.trigger:
            logger.info(
                "Verification trigger queued",
                extra={
                    "event_id": str(event.id),
                    "project_name": classification.project_name,
                    "issue_number": classification.issue_number,
                },
            )

        return ReceiveResult(
            status_code=200,
            body={
                "status": "accepted",
                "event_id": str(event.id),
                "event_type": event_type,
                "project_name": classification.project_name,
                "trigger": classification.trigger,
            },
        )

    def _malformed(self, message: str) -> ReceiveResult:
        return ReceiveResult(
            status_code=400,
            body={"error": "Malformed payload", "message": message},
        )

    def _record(self, event_type: Optional[str], outcome: str) -> None:
        if self.metrics is not None:
            self.metrics.record_delivery(event_type, outcome)
