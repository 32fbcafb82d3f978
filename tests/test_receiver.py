"""Tests for the webhook ingest receiver.

Covers the boundary statuses (200, 400, 401, 500), the one-row-per-delivery
rule and delivery metrics.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from prometheus_client import CollectorRegistry

from supervisor.metrics import WebhookMetrics
from supervisor.store import DatabaseError, InMemoryEventStore
from supervisor.webhook import EventClassifier, IngestReceiver, SignatureValidator


def run_async(coro):
    return asyncio.run(coro)


@pytest.fixture
def store():
    return InMemoryEventStore()


@pytest.fixture
def metrics():
    return WebhookMetrics(registry=CollectorRegistry())


@pytest.fixture
def receiver(webhook_secret, store, metrics):
    return IngestReceiver(
        validator=SignatureValidator(webhook_secret),
        classifier=EventClassifier(repository_projects={"demo-repo": "demo"}),
        store=store,
        metrics=metrics,
    )


def _delivery_count(metrics, event_type, outcome):
    return metrics.registry.get_sample_value(
        "webhook_deliveries_total",
        {"event_type": event_type, "outcome": outcome},
    )


class TestAccepted:
    def test_trigger_delivery_is_stored(
        self, receiver, store, signed_delivery, completion_comment
    ):
        headers, body = signed_delivery(
            "issue_comment", completion_comment(repository="demo-repo")
        )

        result = run_async(receiver.receive(headers, body))

        assert result.status_code == 200
        assert result.accepted
        assert result.body["status"] == "accepted"
        assert result.body["project_name"] == "demo"
        assert result.body["trigger"] is True

        (event,) = run_async(store.list_recent())
        assert str(event.id) == result.body["event_id"]
        assert event.processed is False
        assert event.trigger is True
        assert event.issue_number == 42
        assert event.delivery_id == "delivery-1"
        assert event.payload == json.loads(body)

    def test_non_trigger_delivery_is_still_stored(
        self, receiver, store, signed_delivery
    ):
        headers, body = signed_delivery("push", {"ref": "refs/heads/main"})

        result = run_async(receiver.receive(headers, body))

        assert result.status_code == 200
        assert result.body["trigger"] is False
        assert len(store) == 1

    def test_unresolvable_repository_is_stored_without_project(
        self, receiver, store, signed_delivery, completion_comment
    ):
        headers, body = signed_delivery(
            "issue_comment", completion_comment(repository="elsewhere")
        )

        result = run_async(receiver.receive(headers, body))

        assert result.status_code == 200
        (event,) = run_async(store.list_recent())
        assert event.project_name is None

    def test_each_delivery_creates_one_row(
        self, receiver, store, signed_delivery, completion_comment
    ):
        headers, body = signed_delivery("issue_comment", completion_comment())

        for _ in range(3):
            assert run_async(receiver.receive(headers, body)).status_code == 200

        assert len(store) == 3

    def test_records_accepted_metric(
        self, receiver, metrics, signed_delivery, completion_comment
    ):
        headers, body = signed_delivery("issue_comment", completion_comment())
        run_async(receiver.receive(headers, body))
        assert _delivery_count(metrics, "issue_comment", "accepted") == 1.0


class TestRejected:
    def test_invalid_signature_returns_401_without_storing(
        self, receiver, store, signed_delivery, completion_comment
    ):
        headers, body = signed_delivery(
            "issue_comment", completion_comment(), secret="wrong-secret"
        )

        result = run_async(receiver.receive(headers, body))

        assert result.status_code == 401
        assert result.body == {
            "error": "Signature validation failed",
            "message": "invalid signature",
        }
        assert len(store) == 0

    def test_missing_signature_returns_401(self, receiver, store):
        result = run_async(
            receiver.receive({"X-GitHub-Event": "push"}, b'{"ref": "main"}')
        )

        assert result.status_code == 401
        assert result.body["message"] == "missing signature header"
        assert len(store) == 0

    def test_malformed_json_returns_400(self, receiver, store, webhook_secret):
        validator = SignatureValidator(webhook_secret)
        body = b"{not json"
        headers = {
            "X-Hub-Signature-256": validator.compute_signature(body),
            "X-GitHub-Event": "push",
        }

        result = run_async(receiver.receive(headers, body))

        assert result.status_code == 400
        assert result.body["error"] == "Malformed payload"
        assert len(store) == 0

    @pytest.mark.parametrize(
        "payload",
        [
            ["not", "an", "object"],
            {"issue": {"number": "7"}},
            {"issue": {"number": 2**31}},
        ],
    )
    def test_wrong_shape_returns_400(self, receiver, store, signed_delivery, payload):
        headers, body = signed_delivery("issues", payload)

        result = run_async(receiver.receive(headers, body))

        assert result.status_code == 400
        assert len(store) == 0

    def test_missing_event_type_returns_400(
        self, receiver, store, signed_delivery, metrics
    ):
        headers, body = signed_delivery("push", {})
        del headers["X-GitHub-Event"]

        result = run_async(receiver.receive(headers, body))

        assert result.status_code == 400
        assert len(store) == 0

    def test_unconfigured_receiver_returns_500(
        self, store, signed_delivery, completion_comment
    ):
        receiver = IngestReceiver(
            validator=None, classifier=EventClassifier(), store=store
        )
        headers, body = signed_delivery("issue_comment", completion_comment())

        result = run_async(receiver.receive(headers, body))

        assert not receiver.configured
        assert result.status_code == 500
        assert result.body["error"] == "Webhook secret not configured"
        assert len(store) == 0

    def test_store_failure_returns_500(
        self, webhook_secret, signed_delivery, completion_comment, metrics
    ):
        store = AsyncMock()
        store.append.side_effect = DatabaseError("insert failed")
        receiver = IngestReceiver(
            validator=SignatureValidator(webhook_secret),
            classifier=EventClassifier(),
            store=store,
            metrics=metrics,
        )
        headers, body = signed_delivery("issue_comment", completion_comment())

        result = run_async(receiver.receive(headers, body))

        assert result.status_code == 500
        assert result.body["error"] == "Internal error"
        assert _delivery_count(metrics, "issue_comment", "error") == 1.0

    def test_records_unauthorized_metric(
        self, receiver, metrics, signed_delivery
    ):
        headers, body = signed_delivery("push", {}, secret="nope")
        run_async(receiver.receive(headers, body))
        assert _delivery_count(metrics, "unknown", "unauthorized") == 1.0
        assert _delivery_count(metrics, "push", "unauthorized") is None

    def test_forged_event_types_share_one_series(self, receiver, store, metrics):
        for n in range(50):
            run_async(
                receiver.receive(
                    {
                        "X-GitHub-Event": f"forged-{n}",
                        "X-Hub-Signature-256": "sha256=" + "0" * 64,
                    },
                    b"{}",
                )
            )

        assert _delivery_count(metrics, "unknown", "unauthorized") == 50.0
        series = [
            sample
            for family in metrics.registry.collect()
            if family.name == "webhook_deliveries"
            for sample in family.samples
            if sample.name == "webhook_deliveries_total"
        ]
        assert len(series) == 1
        assert len(store) == 0

    def test_untracked_event_type_is_labelled_other(
        self, receiver, metrics, signed_delivery
    ):
        headers, body = signed_delivery("custom_event", {})
        run_async(receiver.receive(headers, body))
        assert _delivery_count(metrics, "other", "accepted") == 1.0


class TestStoreTimeout:
    def test_hanging_store_returns_500_within_bound(
        self, webhook_secret, signed_delivery, completion_comment, metrics
    ):
        async def hang(**kwargs):
            await asyncio.sleep(3600)

        store = AsyncMock()
        store.append.side_effect = hang
        receiver = IngestReceiver(
            validator=SignatureValidator(webhook_secret),
            classifier=EventClassifier(),
            store=store,
            metrics=metrics,
            store_timeout_seconds=0.05,
        )
        headers, body = signed_delivery("issue_comment", completion_comment())

        async def scenario():
            return await asyncio.wait_for(receiver.receive(headers, body), timeout=5)

        result = run_async(scenario())

        assert result.status_code == 500
        assert result.body["message"] == "Timed out storing webhook event"
        assert _delivery_count(metrics, "issue_comment", "error") == 1.0
