"""Minimal GitHub REST client for posting verification results.

Only the two issue calls the processor needs are implemented: adding a
comment and adding labels. Both go through one POST path that retries
transient failures (connection errors, 408 and 5xx) with capped
exponential backoff and full jitter.

Rate limiting is detected from a 429, or a 403 whose
X-RateLimit-Remaining is 0. A short Retry-After (no longer than the
policy's max_delay) is waited out inside the retry budget; anything longer
raises RateLimitError so the caller can give up on the report.
"""

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import httpx


logger = logging.getLogger(__name__)


class GitHubAPIError(Exception):
    """A GitHub request that could not be completed.

    Attributes:
        message: What went wrong.
        status_code: Final HTTP status, if a response arrived.
        response_body: Final response text, if any.
        request_url: URL of the failed request.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        request_url: Optional[str] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_body = response_body
        self.request_url = request_url
        super().__init__(message)


class RateLimitError(GitHubAPIError):
    """GitHub refused the request until the rate limit resets.

    Attributes:
        reset_at: Unix time of the reset, from X-RateLimit-Reset.
        retry_after: Seconds to wait, from Retry-After or the reset time.
    """

    def __init__(
        self,
        message: str,
        reset_at: Optional[int] = None,
        retry_after: Optional[int] = None,
        **kwargs: Any,
    ):
        super().__init__(message, **kwargs)
        self.reset_at = reset_at
        self.retry_after = retry_after


@dataclass(frozen=True)
class RetryPolicy:
    """Retry budget and backoff shape for GitHub requests.

    Attributes:
        max_retries: Retries after the first attempt.
        base_delay: Backoff unit in seconds.
        max_delay: Cap on any single wait, including Retry-After waits.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0

    def backoff(self, attempt: int) -> float:
        """Full-jitter delay before retry number `attempt` (0-indexed)."""
        ceiling = min(self.base_delay * (2 ** attempt), self.max_delay)
        return random.uniform(0, ceiling)


RETRYABLE_STATUS_CODES = frozenset({408, 500, 502, 503, 504})


def _int_header(response: httpx.Response, name: str) -> Optional[int]:
    try:
        return int(response.headers[name])
    except (KeyError, ValueError):
        return None


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return (
        response.status_code == 403
        and _int_header(response, "x-ratelimit-remaining") == 0
    )


def _rate_limit_error(response: httpx.Response) -> RateLimitError:
    reset_at = _int_header(response, "x-ratelimit-reset")
    retry_after = _int_header(response, "retry-after")
    if retry_after is None and reset_at is not None:
        retry_after = max(0, reset_at - int(time.time()))

    return RateLimitError(
        "GitHub API rate limit exceeded",
        status_code=response.status_code,
        request_url=str(response.url),
        reset_at=reset_at,
        retry_after=retry_after,
    )


class GitHubClient:
    """Async client for issue comments and labels.

    Works against github.com and GitHub Enterprise Server (pass the
    Enterprise API root as base_url).

    Example:
        >>> async with GitHubClient(token="ghp_xxx") as client:
        ...     await client.create_comment("acme", "demo", 7, "Verified")
    """

    def __init__(
        self,
        token: str,
        base_url: str = "https://api.github.com",
        retry: Optional[RetryPolicy] = None,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            token: Token with issues write access.
            base_url: API root.
            retry: Retry policy; defaults to RetryPolicy().
            timeout: Per-request timeout in seconds.
            transport: Optional httpx transport, used by tests.
        """
        self.token = token
        self.base_url = base_url.rstrip("/")
        self.retry = retry or RetryPolicy()
        self.timeout = timeout
        self._transport = transport
        self._http: Optional[httpx.AsyncClient] = None

    @property
    def http(self) -> httpx.AsyncClient:
        """Shared httpx client, recreated after close()."""
        if self._http is None or self._http.is_closed:
            self._http = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                    "User-Agent": "supervisor-service/1.0",
                },
            )
        return self._http

    async def close(self) -> None:
        if self._http is not None and not self._http.is_closed:
            await self._http.aclose()
        self._http = None

    async def __aenter__(self) -> "GitHubClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _post(self, path: str, payload: Dict[str, Any]) -> Any:
        """POST JSON and return the decoded response.

        Raises:
            RateLimitError: If rate limited for longer than max_delay.
            GitHubAPIError: On a non-retryable error status, or once the
                retry budget is spent.
        """
        failure = "no attempt made"

        for attempt in range(self.retry.max_retries + 1):
            retries_left = attempt < self.retry.max_retries

            try:
                response = await self.http.post(path, json=payload)
            except httpx.RequestError as e:
                failure = f"{type(e).__name__}: {e}"
                wait = self.retry.backoff(attempt)
            else:
                if response.is_success:
                    return response.json()

                if _is_rate_limited(response):
                    error = _rate_limit_error(response)
                    logger.warning(
                        "GitHub rate limit hit",
                        extra={"path": path, "retry_after": error.retry_after},
                    )
                    if (
                        not retries_left
                        or error.retry_after is None
                        or error.retry_after > self.retry.max_delay
                    ):
                        raise error
                    failure = error.message
                    wait = float(error.retry_after)
                elif response.status_code in RETRYABLE_STATUS_CODES:
                    failure = f"HTTP {response.status_code}"
                    wait = self.retry.backoff(attempt)
                else:
                    logger.error(
                        "GitHub rejected request",
                        extra={
                            "path": path,
                            "status_code": response.status_code,
                            "response_body": response.text[:500],
                        },
                    )
                    raise GitHubAPIError(
                        f"GitHub API error: {response.status_code}",
                        status_code=response.status_code,
                        response_body=response.text,
                        request_url=str(response.url),
                    )

            if not retries_left:
                break

            logger.warning(
                "Retrying GitHub request in %.2fs (%s)",
                wait,
                failure,
                extra={"path": path, "attempt": attempt + 1},
            )
            await asyncio.sleep(wait)

        raise GitHubAPIError(
            f"Request failed after {self.retry.max_retries} retries: {failure}",
            request_url=f"{self.base_url}{path}",
        )

    @staticmethod
    def _issue_path(owner: str, repo: str, issue_number: int, resource: str) -> str:
        return f"/repos/{owner}/{repo}/issues/{issue_number}/{resource}"

    async def create_comment(
        self, owner: str, repo: str, issue_number: int, body: str
    ) -> Dict[str, Any]:
        """Comment on an issue or pull request.

        Returns:
            The created comment object.
        """
        logger.info(
            "Posting comment to %s/%s#%d",
            owner,
            repo,
            issue_number,
            extra={"body_length": len(body)},
        )
        return await self._post(
            self._issue_path(owner, repo, issue_number, "comments"),
            {"body": body},
        )

    async def add_labels(
        self, owner: str, repo: str, issue_number: int, labels: List[str]
    ) -> List[Dict[str, Any]]:
        """Add labels to an issue; returns the issue's full label list."""
        logger.info(
            "Adding labels %s to %s/%s#%d", labels, owner, repo, issue_number
        )
        return await self._post(
            self._issue_path(owner, repo, issue_number, "labels"),
            {"labels": labels},
        )
