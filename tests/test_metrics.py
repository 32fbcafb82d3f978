"""Tests for pipeline Prometheus metrics."""

from prometheus_client import CollectorRegistry

from supervisor.metrics import WebhookMetrics, generate_metrics_output


def test_metrics_use_isolated_registry():
    registry = CollectorRegistry()
    metrics = WebhookMetrics(registry=registry)

    metrics.record_delivery(None, "malformed")
    metrics.record_delivery("issue_comment", "accepted")
    metrics.record_event_processed("skipped")
    metrics.record_verification_duration("demo", 12.5)
    metrics.record_tick()

    assert registry.get_sample_value(
        "webhook_deliveries_total", {"event_type": "unknown", "outcome": "malformed"}
    ) == 1.0
    assert registry.get_sample_value(
        "webhook_events_processed_total", {"result": "skipped"}
    ) == 1.0
    assert registry.get_sample_value(
        "webhook_verification_duration_seconds_count", {"project": "demo"}
    ) == 1.0
    assert registry.get_sample_value("webhook_processor_ticks_total") == 1.0


def test_processing_results_are_preinitialized():
    registry = CollectorRegistry()
    WebhookMetrics(registry=registry)

    for result in ("success", "failure", "skipped"):
        assert registry.get_sample_value(
            "webhook_events_processed_total", {"result": result}
        ) == 0.0


def test_exposition_output():
    registry = CollectorRegistry()
    WebhookMetrics(registry=registry).record_tick()

    output = generate_metrics_output(registry).decode()

    assert "webhook_processor_ticks_total 1.0" in output
    assert "webhook_verifications_in_flight" in output
