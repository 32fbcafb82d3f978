"""Service configuration using pydantic-settings.

This module defines the SupervisorSettings class that reads configuration
from environment variables with the SUPERVISOR_ prefix. Only the GitHub API
token is strictly required; everything else has a development default.

The webhook secret is deliberately optional at load time. A missing secret
does not stop the service from starting, but the webhook receiver refuses
every delivery with a 500 until it is configured.
"""

from pathlib import Path
from typing import Dict, List, Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Repository name -> project name. Planning repositories report into the
# project they plan for.
DEFAULT_REPOSITORY_PROJECTS: Dict[str, str] = {
    "consilio": "consilio",
    "consilio-planning": "consilio",
    "openhorizon.cc": "openhorizon",
    "openhorizon-planning": "openhorizon",
    "health-agent": "health-agent",
    "health-agent-planning": "health-agent",
    "odin": "odin",
    "odin-planning": "odin",
    "quiculum-monitor": "quiculum-monitor",
    "quiculum-monitor-planning": "quiculum-monitor",
    "supervisor-service": "supervisor-service",
    "supervisor-service-planning": "supervisor-service",
}

DEFAULT_AUTOMATION_IDENTITIES: List[str] = [
    "github-actions[bot]",
    "scar-bot",
]


class SupervisorSettings(BaseSettings):
    """Webhook pipeline configuration from environment variables.

    All environment variables are prefixed with SUPERVISOR_
    (e.g., SUPERVISOR_GITHUB_TOKEN). Mapping and list fields are parsed
    from JSON (e.g., SUPERVISOR_REPOSITORY_PROJECTS='{"demo": "demo"}').
    """

    model_config = SettingsConfigDict(
        env_prefix="SUPERVISOR_",
        case_sensitive=False,
    )

    # -------------------------------------------------------------------------
    # GitHub Configuration
    # -------------------------------------------------------------------------
    # Shared secret for X-Hub-Signature-256 validation
    github_webhook_secret: Optional[str] = None

    # GitHub API token for posting comments and labels
    github_token: str

    # Base URL for GitHub API (supports GitHub Enterprise)
    github_base_url: str = "https://api.github.com"

    # -------------------------------------------------------------------------
    # Database Configuration
    # -------------------------------------------------------------------------
    # PostgreSQL connection string; unset means an in-memory store
    database_url: Optional[str] = None

    database_min_pool_size: int = 2

    database_max_pool_size: int = 10

    # Upper bound on the receiver's insert; GitHub gives up on a delivery after 10s
    store_timeout_seconds: float = 5.0

    # -------------------------------------------------------------------------
    # Verification Configuration
    # -------------------------------------------------------------------------
    # Root under which each project's workspace lives
    workspace_base_path: str = "/var/lib/supervisor/workspaces"

    # External verifier executable
    verifier_command: str = "/usr/local/bin/verify-workspace"

    verifier_timeout_seconds: int = 1800

    # -------------------------------------------------------------------------
    # Event Processor Configuration
    # -------------------------------------------------------------------------
    processor_enabled: bool = True

    processor_poll_interval_seconds: float = 30.0

    # Maximum unprocessed events pulled per tick
    processor_fetch_limit: int = 10

    # Maximum verification calls in flight at once
    processor_concurrency: int = 3

    # -------------------------------------------------------------------------
    # Classification Configuration
    # -------------------------------------------------------------------------
    repository_projects: Dict[str, str] = DEFAULT_REPOSITORY_PROJECTS

    automation_identities: List[str] = DEFAULT_AUTOMATION_IDENTITIES

    # -------------------------------------------------------------------------
    # Server Configuration
    # -------------------------------------------------------------------------
    host: str = "0.0.0.0"

    port: int = 8080

    log_level: str = "INFO"

    # "json" renders records and their extra fields as JSON lines
    log_format: str = "json"

    # -------------------------------------------------------------------------
    # Validators
    # -------------------------------------------------------------------------
    @field_validator("github_webhook_secret")
    @classmethod
    def normalize_webhook_secret(cls, v: Optional[str]) -> Optional[str]:
        """Treat a blank webhook secret as not configured."""
        if v is None or not v.strip():
            return None
        return v

    @field_validator("github_token")
    @classmethod
    def validate_github_token(cls, v: str) -> str:
        """Validate that GitHub token is not empty."""
        if not v or not v.strip():
            raise ValueError("github_token cannot be empty")
        return v

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: Optional[str]) -> Optional[str]:
        """Validate the database URL format when one is given."""
        if v is None or not v.strip():
            return None
        if not v.startswith(("postgresql://", "postgres://")):
            raise ValueError(
                "database_url must start with postgresql:// or postgres://"
            )
        return v

    @field_validator("workspace_base_path")
    @classmethod
    def validate_workspace_path(cls, v: str) -> str:
        """Validate that workspace base path is an absolute path."""
        if not Path(v).is_absolute():
            raise ValueError("workspace_base_path must be an absolute path")
        return v

    @field_validator(
        "verifier_timeout_seconds",
        "processor_fetch_limit",
        "processor_concurrency",
        "database_min_pool_size",
        "database_max_pool_size",
    )
    @classmethod
    def validate_positive(cls, v: int) -> int:
        """Validate that counts and timeouts are positive."""
        if v < 1:
            raise ValueError("value must be at least 1")
        return v

    @field_validator("processor_poll_interval_seconds", "store_timeout_seconds")
    @classmethod
    def validate_positive_seconds(cls, v: float) -> float:
        """Validate that a duration is positive."""
        if v <= 0:
            raise ValueError("duration must be positive")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level name."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Validate the log output format."""
        fmt = v.lower()
        if fmt not in {"json", "text"}:
            raise ValueError(f"Unknown log format: {v}")
        return fmt

    @field_validator("port")
    @classmethod
    def validate_port(cls, v: int) -> int:
        """Validate that port is in valid range."""
        if not 1 <= v <= 65535:
            raise ValueError("port must be between 1 and 65535")
        return v


def get_settings() -> SupervisorSettings:
    """Create and return SupervisorSettings instance.

    Returns:
        SupervisorSettings: Configured settings instance.

    Raises:
        pydantic.ValidationError: If required fields are missing or invalid.
    """
    return SupervisorSettings()
