"""GitHub webhook ingestion.

This module receives GitHub webhook deliveries and queues them for
asynchronous processing:
- Signature validation with the shared webhook secret
- Narrow projection of the payload fields the pipeline reads
- Classification into project, issue number and trigger decision
- Storage of every accepted delivery

The events of interest are `issue_comment` deliveries in which the
automation account announces completed work.
"""

from supervisor.webhook.classifier import COMMENT_EVENT_TYPE, COMPLETION_PHRASES, EventClassifier
from supervisor.webhook.models import (
    Classification,
    DeliveryProjection,
    MalformedPayloadError,
    ReceiveResult,
    ValidationResult,
)
from supervisor.webhook.receiver import IngestReceiver
from supervisor.webhook.validator import (
    ConfigurationError,
    SignatureValidator,
    create_signature_validator,
)

__all__ = [
    "COMMENT_EVENT_TYPE",
    "COMPLETION_PHRASES",
    "Classification",
    "ConfigurationError",
    "DeliveryProjection",
    "EventClassifier",
    "IngestReceiver",
    "MalformedPayloadError",
    "ReceiveResult",
    "SignatureValidator",
    "ValidationResult",
    "create_signature_validator",
]
