"""Tests for configuration loading."""

import os

import pytest
from pydantic import ValidationError

from supervisor.config import (
    DEFAULT_AUTOMATION_IDENTITIES,
    DEFAULT_REPOSITORY_PROJECTS,
    SupervisorSettings,
    get_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Start every test from an environment with only the required token."""
    for key in list(os.environ):
        if key.startswith("SUPERVISOR_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("SUPERVISOR_GITHUB_TOKEN", "ghp_test")


class TestDefaults:
    def test_defaults(self):
        settings = get_settings()

        assert settings.github_webhook_secret is None
        assert settings.database_url is None
        assert settings.processor_enabled is True
        assert settings.processor_poll_interval_seconds == 30.0
        assert settings.processor_concurrency == 3
        assert settings.processor_fetch_limit == 10
        assert settings.verifier_timeout_seconds == 1800
        assert settings.store_timeout_seconds == 5.0
        assert settings.repository_projects == DEFAULT_REPOSITORY_PROJECTS
        assert settings.automation_identities == DEFAULT_AUTOMATION_IDENTITIES
        assert settings.port == 8080

    def test_default_mapping_covers_planning_repositories(self):
        assert DEFAULT_REPOSITORY_PROJECTS["consilio-planning"] == "consilio"
        assert DEFAULT_REPOSITORY_PROJECTS["openhorizon.cc"] == "openhorizon"


class TestFromEnvironment:
    def test_values_load_from_env(self, monkeypatch):
        monkeypatch.setenv("SUPERVISOR_GITHUB_WEBHOOK_SECRET", "hook-secret")
        monkeypatch.setenv("SUPERVISOR_DATABASE_URL", "postgresql://u:p@db/events")
        monkeypatch.setenv("SUPERVISOR_PROCESSOR_CONCURRENCY", "5")
        monkeypatch.setenv("SUPERVISOR_LOG_LEVEL", "debug")

        settings = get_settings()

        assert settings.github_webhook_secret == "hook-secret"
        assert settings.database_url == "postgresql://u:p@db/events"
        assert settings.processor_concurrency == 5
        assert settings.log_level == "DEBUG"

    def test_json_mapping_and_list(self, monkeypatch):
        monkeypatch.setenv("SUPERVISOR_REPOSITORY_PROJECTS", '{"demo-repo": "demo"}')
        monkeypatch.setenv("SUPERVISOR_AUTOMATION_IDENTITIES", '["release-bot"]')

        settings = get_settings()

        assert settings.repository_projects == {"demo-repo": "demo"}
        assert settings.automation_identities == ["release-bot"]

    def test_blank_webhook_secret_is_unset(self, monkeypatch):
        monkeypatch.setenv("SUPERVISOR_GITHUB_WEBHOOK_SECRET", "   ")
        assert get_settings().github_webhook_secret is None


class TestValidation:
    def test_token_required(self, monkeypatch):
        monkeypatch.delenv("SUPERVISOR_GITHUB_TOKEN")
        with pytest.raises(ValidationError):
            get_settings()

    @pytest.mark.parametrize(
        "field,value",
        [
            ("github_token", " "),
            ("database_url", "mysql://db/events"),
            ("workspace_base_path", "relative/path"),
            ("processor_concurrency", 0),
            ("processor_fetch_limit", 0),
            ("processor_poll_interval_seconds", 0),
            ("store_timeout_seconds", 0),
            ("log_level", "verbose"),
            ("log_format", "xml"),
            ("port", 70000),
        ],
    )
    def test_invalid_values_rejected(self, field, value):
        values = {"github_token": "ghp_test", field: value}
        with pytest.raises(ValidationError):
            SupervisorSettings(**values)
