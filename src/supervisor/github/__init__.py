"""GitHub API integration for result reporting.

This module provides:
- GitHubClient: async REST client with retry and rate limit handling
- GitHubReporter: posts verification comments and status labels
- parse_repo_info: recovers owner/repo from stored webhook payloads
"""

from supervisor.github.client import (
    GitHubAPIError,
    GitHubClient,
    RateLimitError,
    RetryPolicy,
)
from supervisor.github.reporter import (
    GitHubReporter,
    RepoInfo,
    ResultReporter,
    parse_repo_info,
)

__all__ = [
    "GitHubAPIError",
    "GitHubClient",
    "GitHubReporter",
    "RateLimitError",
    "RepoInfo",
    "ResultReporter",
    "RetryPolicy",
    "parse_repo_info",
]
