"""Prometheus metrics for webhook pipeline observability.

Metrics are exposed at the `/metrics` endpoint in Prometheus format.

Metrics Defined:
- webhook_deliveries_total: Counter of deliveries by event type and outcome
- webhook_events_processed_total: Counter of processed events by result
- webhook_verification_duration_seconds: Histogram of verification time
- webhook_verifications_in_flight: Gauge of running verification calls
- webhook_processor_ticks_total: Counter of processor polling ticks
"""

import logging
from typing import Optional

from prometheus_client import (
    REGISTRY,
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)


logger = logging.getLogger(__name__)


# Covers range from 1 second to 1 hour with exponential growth
DEFAULT_DURATION_BUCKETS = (
    1.0,
    5.0,
    10.0,
    30.0,
    60.0,
    120.0,
    300.0,
    600.0,
    1800.0,
    3600.0,
)

DELIVERY_OUTCOMES = ("accepted", "unauthorized", "malformed", "error")

PROCESSING_RESULTS = ("success", "failure", "skipped")

# Event types kept as their own label value; anything else counts as "other"
TRACKED_EVENT_TYPES = frozenset(
    {
        "check_run",
        "check_suite",
        "create",
        "delete",
        "issue_comment",
        "issues",
        "ping",
        "pull_request",
        "pull_request_review",
        "pull_request_review_comment",
        "push",
        "release",
        "workflow_run",
    }
)


class WebhookMetrics:
    """Container for all pipeline Prometheus metrics.

    Supports custom registries so tests can create isolated instances.

    Example:
        >>> metrics = WebhookMetrics(registry=CollectorRegistry())
        >>> metrics.record_delivery("issue_comment", "accepted")
        >>> metrics.record_event_processed("success")
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None):
        """Initialize pipeline metrics.

        Args:
            registry: Optional Prometheus registry. If None, uses the
                      default REGISTRY. Pass a custom registry for testing.
        """
        self.registry = registry or REGISTRY

        self.deliveries_total = Counter(
            "webhook_deliveries_total",
            "Total number of webhook deliveries received",
            labelnames=["event_type", "outcome"],
            registry=self.registry,
        )

        self.events_processed_total = Counter(
            "webhook_events_processed_total",
            "Total number of stored events marked processed",
            labelnames=["result"],
            registry=self.registry,
        )

        self.verification_duration_seconds = Histogram(
            "webhook_verification_duration_seconds",
            "Time spent in verification calls in seconds",
            labelnames=["project"],
            buckets=DEFAULT_DURATION_BUCKETS,
            registry=self.registry,
        )

        self.verifications_in_flight = Gauge(
            "webhook_verifications_in_flight",
            "Number of verification calls currently running",
            registry=self.registry,
        )

        self.processor_ticks_total = Counter(
            "webhook_processor_ticks_total",
            "Total number of event processor polling ticks",
            registry=self.registry,
        )

        for result in PROCESSING_RESULTS:
            self.events_processed_total.labels(result=result)

    def record_delivery(self, event_type: Optional[str], outcome: str) -> None:
        """Record a delivery outcome.

        Args:
            event_type: The X-GitHub-Event value, or None if missing or
                        not authenticated. Untracked types are folded into
                        "other".
            outcome: One of accepted, unauthorized, malformed, error.
        """
        if event_type is None:
            label = "unknown"
        elif event_type in TRACKED_EVENT_TYPES:
            label = event_type
        else:
            label = "other"
        self.deliveries_total.labels(
            event_type=label,
            outcome=outcome,
        ).inc()

    def record_event_processed(self, result: str) -> None:
        """Record a processed event.

        Args:
            result: One of success, failure, skipped.
        """
        self.events_processed_total.labels(result=result).inc()

    def record_verification_duration(
        self, project: str, duration_seconds: float
    ) -> None:
        self.verification_duration_seconds.labels(project=project).observe(
            duration_seconds
        )

    def record_tick(self) -> None:
        self.processor_ticks_total.inc()


_metrics: Optional[WebhookMetrics] = None


def get_metrics(registry: Optional[CollectorRegistry] = None) -> WebhookMetrics:
    """Get or create the process-wide metrics instance.

    Passing a registry always creates a fresh, unshared instance.

    Args:
        registry: Optional custom registry.

    Returns:
        The WebhookMetrics instance.
    """
    global _metrics

    if registry is not None:
        return WebhookMetrics(registry=registry)

    if _metrics is None:
        _metrics = WebhookMetrics()
        logger.info("Initialized webhook pipeline metrics")

    return _metrics


def generate_metrics_output(registry: Optional[CollectorRegistry] = None) -> bytes:
    """Generate Prometheus text format output.

    Args:
        registry: Optional registry; defaults to the global REGISTRY.

    Returns:
        Metrics in Prometheus exposition format.
    """
    return generate_latest(registry or REGISTRY)
