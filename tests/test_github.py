"""Unit tests for the GitHub client and result reporter."""

import asyncio
import json

import httpx
import pytest

from supervisor.github import (
    GitHubAPIError,
    GitHubClient,
    GitHubReporter,
    RateLimitError,
    RepoInfo,
    ResultReporter,
    RetryPolicy,
    parse_repo_info,
)


def run_async(coro):
    return asyncio.run(coro)


def _client(handler, max_retries=3):
    return GitHubClient(
        token="ghp_test",
        retry=RetryPolicy(max_retries=max_retries, base_delay=0.0, max_delay=1.0),
        transport=httpx.MockTransport(handler),
    )


# =============================================================================
# GitHubClient
# =============================================================================


class TestGitHubClient:
    def test_create_comment_posts_body(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(201, json={"id": 1})

        async def scenario():
            async with _client(handler) as client:
                return await client.create_comment("acme", "demo", 7, "hello")

        assert run_async(scenario()) == {"id": 1}
        (request,) = requests
        assert request.method == "POST"
        assert request.url.path == "/repos/acme/demo/issues/7/comments"
        assert json.loads(request.content) == {"body": "hello"}
        assert request.headers["Authorization"] == "Bearer ghp_test"

    def test_add_labels_posts_label_list(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, json=[{"name": "verification-passed"}])

        async def scenario():
            async with _client(handler) as client:
                return await client.add_labels(
                    "acme", "demo", 7, ["verification-passed"]
                )

        run_async(scenario())
        (request,) = requests
        assert request.url.path == "/repos/acme/demo/issues/7/labels"
        assert json.loads(request.content) == {"labels": ["verification-passed"]}

    def test_retries_transient_server_errors(self):
        responses = iter([httpx.Response(502), httpx.Response(201, json={"id": 2})])

        async def scenario():
            async with _client(lambda request: next(responses)) as client:
                return await client.create_comment("acme", "demo", 7, "x")

        assert run_async(scenario()) == {"id": 2}

    def test_retries_connection_errors_then_gives_up(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            raise httpx.ConnectError("connection refused", request=request)

        async def scenario():
            async with _client(handler, max_retries=2) as client:
                await client.create_comment("acme", "demo", 7, "x")

        with pytest.raises(GitHubAPIError, match="after 2 retries"):
            run_async(scenario())
        assert len(attempts) == 3

    def test_client_error_is_not_retried(self):
        attempts = []

        def handler(request):
            attempts.append(request)
            return httpx.Response(404, json={"message": "Not Found"})

        async def scenario():
            async with _client(handler) as client:
                await client.create_comment("acme", "demo", 7, "x")

        with pytest.raises(GitHubAPIError) as exc_info:
            run_async(scenario())
        assert exc_info.value.status_code == 404
        assert len(attempts) == 1

    def test_rate_limit_raises(self):
        def handler(request):
            return httpx.Response(
                403,
                headers={"x-ratelimit-remaining": "0", "retry-after": "30"},
            )

        async def scenario():
            async with _client(handler) as client:
                await client.add_labels("acme", "demo", 7, ["x"])

        with pytest.raises(RateLimitError) as exc_info:
            run_async(scenario())
        assert exc_info.value.retry_after == 30

    def test_forbidden_without_exhausted_quota_is_plain_error(self):
        def handler(request):
            return httpx.Response(403, headers={"x-ratelimit-remaining": "10"})

        async def scenario():
            async with _client(handler) as client:
                await client.add_labels("acme", "demo", 7, ["x"])

        with pytest.raises(GitHubAPIError) as exc_info:
            run_async(scenario())
        assert not isinstance(exc_info.value, RateLimitError)

    def test_short_retry_after_is_waited_out(self):
        responses = iter(
            [
                httpx.Response(429, headers={"retry-after": "0"}),
                httpx.Response(201, json={"id": 3}),
            ]
        )

        async def scenario():
            async with _client(lambda request: next(responses)) as client:
                return await client.create_comment("acme", "demo", 7, "x")

        assert run_async(scenario()) == {"id": 3}

    def test_rate_limit_on_last_attempt_raises(self):
        def handler(request):
            return httpx.Response(429, headers={"retry-after": "0"})

        async def scenario():
            async with _client(handler, max_retries=1) as client:
                await client.create_comment("acme", "demo", 7, "x")

        with pytest.raises(RateLimitError):
            run_async(scenario())

    def test_backoff_is_capped(self):
        policy = RetryPolicy(base_delay=1.0, max_delay=5.0)
        for attempt in range(10):
            assert 0.0 <= policy.backoff(attempt) <= 5.0


# =============================================================================
# parse_repo_info
# =============================================================================


class TestParseRepoInfo:
    def test_full_name(self):
        payload = {"repository": {"name": "demo", "full_name": "acme/demo"}}
        assert parse_repo_info(payload) == RepoInfo(owner="acme", repo="demo")

    def test_falls_back_to_owner_login(self):
        payload = {"repository": {"name": "demo", "owner": {"login": "acme"}}}
        assert parse_repo_info(payload) == RepoInfo("acme", "demo")

    def test_malformed_full_name_falls_back(self):
        payload = {
            "repository": {
                "name": "demo",
                "full_name": "not-a-full-name",
                "owner": {"login": "acme"},
            }
        }
        assert parse_repo_info(payload) == RepoInfo("acme", "demo")

    @pytest.mark.parametrize(
        "payload",
        [
            {},
            {"repository": {"name": "demo"}},
            {"repository": {"owner": {"login": "acme"}}},
            {"repository": "acme/demo"},
        ],
    )
    def test_unaddressable_payloads(self, payload):
        assert parse_repo_info(payload) is None


# =============================================================================
# GitHubReporter
# =============================================================================


class TestGitHubReporter:
    def test_satisfies_protocol(self):
        assert isinstance(GitHubReporter(GitHubClient(token="t")), ResultReporter)

    def test_post_result_and_apply_labels(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(201, json={})

        async def scenario():
            async with _client(handler) as client:
                reporter = GitHubReporter(client)
                await reporter.post_result("acme", "demo", 7, "body")
                await reporter.apply_labels("acme", "demo", 7, ["verification-failed"])

        run_async(scenario())
        assert paths == [
            "/repos/acme/demo/issues/7/comments",
            "/repos/acme/demo/issues/7/labels",
        ]

    def test_empty_label_list_makes_no_request(self):
        paths = []

        def handler(request):
            paths.append(request.url.path)
            return httpx.Response(200, json=[])

        async def scenario():
            async with _client(handler) as client:
                await GitHubReporter(client).apply_labels("acme", "demo", 7, [])

        run_async(scenario())
        assert paths == []
