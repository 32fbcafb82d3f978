"""Verification result reporting to GitHub.

The event processor reports results through the ResultReporter protocol;
GitHubReporter implements it on top of GitHubClient. Repository addressing
is recovered from stored webhook payloads with parse_repo_info.
"""

import logging
from typing import (
    Any,
    List,
    Mapping,
    NamedTuple,
    Optional,
    Protocol,
    runtime_checkable,
)

from supervisor.github.client import GitHubClient
from supervisor.webhook.models import DeliveryProjection, MalformedPayloadError

logger = logging.getLogger(__name__)


class RepoInfo(NamedTuple):
    owner: str
    repo: str


def parse_repo_info(payload: Mapping[str, Any]) -> Optional[RepoInfo]:
    """Extract repository owner and name from a webhook payload.

    Prefers `repository.full_name` ("owner/repo") and falls back to
    `repository.owner.login` plus `repository.name`.

    Args:
        payload: A stored webhook payload.

    Returns:
        RepoInfo, or None if the payload does not identify a repository.
    """
    try:
        repository = DeliveryProjection.from_payload(payload).repository
    except MalformedPayloadError:
        return None

    if repository is None:
        return None

    if repository.full_name:
        owner, _, repo = repository.full_name.partition("/")
        if owner and repo and "/" not in repo:
            return RepoInfo(owner=owner, repo=repo)

    if repository.owner is not None and repository.owner.login and repository.name:
        return RepoInfo(owner=repository.owner.login, repo=repository.name)

    return None


@runtime_checkable
class ResultReporter(Protocol):
    """Posts verification results back to the origin system."""

    async def post_result(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> None:
        ...

    async def apply_labels(
        self, owner: str, repo: str, issue_number: int, labels: List[str]
    ) -> None:
        ...


class GitHubReporter:
    """ResultReporter that comments and labels GitHub issues.

    Attributes:
        github_client: Authenticated GitHub API client.
    """

    def __init__(self, github_client: GitHubClient):
        self.github_client = github_client

    async def post_result(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> None:
        await self.github_client.create_comment(owner, repo, issue_number, body)
        logger.info(
            "Posted verification results to %s/%s#%d", owner, repo, issue_number
        )

    async def apply_labels(
        self, owner: str, repo: str, issue_number: int, labels: List[str]
    ) -> None:
        if not labels:
            return
        await self.github_client.add_labels(owner, repo, issue_number, labels)
