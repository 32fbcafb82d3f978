"""Pytest configuration and shared fixtures for all tests."""

import hashlib
import hmac
import json

import pytest
from hypothesis import settings

settings.register_profile("ci", max_examples=100, deadline=None)
settings.load_profile("ci")


WEBHOOK_SECRET = "test-webhook-secret"


@pytest.fixture
def webhook_secret():
    return WEBHOOK_SECRET


@pytest.fixture
def signed_delivery(webhook_secret):
    """Build (headers, raw_body) for a delivery signed with the test secret."""

    def build(event_type, payload, delivery_id="delivery-1", secret=None):
        raw_body = json.dumps(payload).encode("utf-8")
        key = (secret or webhook_secret).encode("utf-8")
        digest = hmac.new(key, raw_body, hashlib.sha256).hexdigest()
        headers = {
            "X-Hub-Signature-256": f"sha256={digest}",
            "X-GitHub-Event": event_type,
            "X-GitHub-Delivery": delivery_id,
            "Content-Type": "application/json",
        }
        return headers, raw_body

    return build


@pytest.fixture
def completion_comment():
    """Build an issue_comment payload."""

    def build(
        body="✅ Implementation complete",
        author="scar-bot",
        repository="consilio",
        issue_number=42,
        owner="acme",
    ):
        return {
            "action": "created",
            "repository": {
                "name": repository,
                "full_name": f"{owner}/{repository}",
                "owner": {"login": owner},
            },
            "issue": {"number": issue_number, "title": "Add feature"},
            "comment": {"body": body, "user": {"login": author}},
        }

    return build
